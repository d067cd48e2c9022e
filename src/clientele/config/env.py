"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationValue, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


def _get(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise listing every missing/blank one."""

    values = {name: value for name in names if (value := _get(name)) is not None}
    missing = [name for name in names if name not in values]
    if missing:
        raise MissingConfigurationError(missing)
    return values


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def optional_env_var(name: str, default: str) -> str:
    value = _get(name)
    return default if value is None else value.strip()


def env_bool(name: str, *, default: bool = False) -> bool:
    value = _get(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise InvalidConfigurationValue(name, value, "must be a boolean")


def _env_number[N: (int, float)](
    name: str,
    default: N,
    *,
    parse: Callable[[str], N],
    kind: str,
    minimum: N | None,
) -> N:
    raw = _get(name)
    if raw is None:
        return default
    try:
        value = parse(raw.strip())
    except ValueError as exc:
        raise InvalidConfigurationValue(name, raw, f"must be {kind}") from exc
    if minimum is not None and value < minimum:
        raise InvalidConfigurationValue(name, raw, f"must be >= {minimum}")
    return value


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    return _env_number(name, default, parse=int, kind="an integer", minimum=minimum)


def env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    return _env_number(name, default, parse=float, kind="a number", minimum=minimum)
