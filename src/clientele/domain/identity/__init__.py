"""Identity resolution core.

Flow for one signal:
1) normalize raw email/phone into lookup keys
2) bulk-match keys against the customer platform
3) decide created/updated/linked/ambiguous/skipped
4) perform one platform write, recovering from create races
"""

from __future__ import annotations

from .batch import ImportEntry, ImportReport, import_batch
from .contracts import CandidateMatches, Decision, Resolution, UpsertOutcome
from .engine import ResolutionEngine
from .match import CandidateMatcher
from .normalize import build_signal, is_valid_email, normalize_email, normalize_phone
from .policy import decide
from .upsert import RaceRetryPolicy, RemoteUpsert

__all__ = [
    "CandidateMatcher",
    "CandidateMatches",
    "Decision",
    "ImportEntry",
    "ImportReport",
    "RaceRetryPolicy",
    "RemoteUpsert",
    "Resolution",
    "ResolutionEngine",
    "UpsertOutcome",
    "build_signal",
    "decide",
    "import_batch",
    "is_valid_email",
    "normalize_email",
    "normalize_phone",
]
