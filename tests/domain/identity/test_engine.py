from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable
from clientele.domain.identity import RaceRetryPolicy, RemoteUpsert, ResolutionEngine, build_signal
from clientele.domain.model import CustomerDraft, IdentityLink, Provider, ResolutionAction
from tests.support.outbox import InMemoryReviewQueue
from tests.support.platform import (
    BarrierPlatform,
    ClaimingPlatform,
    InMemoryCustomerPlatform,
    RacingPlatform,
)


def _engine(
    platform: InMemoryCustomerPlatform,
    review_queue: InMemoryReviewQueue | None = None,
) -> ResolutionEngine:
    upsert = RemoteUpsert(platform, sleep=lambda _seconds: None)
    return ResolutionEngine(platform, upsert=upsert, review_queue=review_queue)


def test_creates_then_links_and_fills_phone(platform: InMemoryCustomerPlatform) -> None:
    engine = _engine(platform)

    first = engine.resolve(build_signal(email="Jane@Co.com"))
    second = engine.resolve(build_signal(email="jane@co.com", phone="555-123-4567"))

    assert first.action is ResolutionAction.CREATED
    assert first.customer_id > 0
    assert second.action is ResolutionAction.LINKED
    assert second.customer_id == first.customer_id
    assert platform.customers[first.customer_id].primary_phone == "5551234567"
    assert len(platform.customers) == 1


def test_resolving_twice_with_external_ref_updates(platform: InMemoryCustomerPlatform) -> None:
    engine = _engine(platform)
    signal = build_signal(email="jane@co.com", provider="shopify", external_id="42")

    first = engine.resolve(signal)
    second = engine.resolve(signal)

    assert first.action is ResolutionAction.CREATED
    assert second.action is ResolutionAction.UPDATED
    assert second.customer_id == first.customer_id
    assert len(platform.customers) == 1


def test_update_by_external_ref_refreshes_profile(platform: InMemoryCustomerPlatform) -> None:
    existing = platform.seed(
        CustomerDraft(
            first_name="J.",
            identity=IdentityLink(provider=Provider.AMAZON, external_id="A-1"),
        )
    )

    resolution = _engine(platform).resolve(
        build_signal(
            email="jane@co.com",
            provider="amazon",
            external_id="A-1",
            first_name="Jane",
            company="Co",
        )
    )

    assert resolution.action is ResolutionAction.UPDATED
    assert resolution.customer_id == existing.id
    assert existing.first_name == "Jane"
    assert existing.company == "Co"
    assert existing.primary_email == "jane@co.com"


def test_signal_without_identity_is_skipped(platform: InMemoryCustomerPlatform) -> None:
    resolution = _engine(platform).resolve(build_signal(first_name="Anonymous"))

    assert resolution.action is ResolutionAction.SKIPPED
    assert resolution.customer_id == 0
    assert not platform.calls


def test_ambiguous_links_to_email_match_and_leaves_phone_match_alone(
    platform: InMemoryCustomerPlatform,
    review_queue: InMemoryReviewQueue,
) -> None:
    customer_a = platform.seed(CustomerDraft(email="jane@co.com", first_name="Jane"))
    customer_b = platform.seed(CustomerDraft(phone="5551234567", first_name="Bob"))
    before_b = (customer_b.primary_email, customer_b.first_name, customer_b.external_refs)

    resolution = _engine(platform, review_queue).resolve(
        build_signal(
            email="jane@co.com",
            phone="(555) 123-4567",
            provider="qbo",
            external_id="Q-7",
            first_name="Janet",
        )
    )

    assert resolution.action is ResolutionAction.AMBIGUOUS
    assert resolution.customer_id == customer_a.id
    assert resolution.conflicting_customer_id == customer_b.id
    assert customer_a.has_identity(Provider.QBO, "Q-7")
    assert customer_a.primary_phone is None
    assert (customer_b.primary_email, customer_b.first_name, customer_b.external_refs) == before_b
    [flag] = review_queue.flags
    assert flag.customer_id == customer_a.id
    assert flag.conflicting_customer_id == customer_b.id
    assert flag.external_id == "Q-7"


def test_concurrent_resolutions_converge_on_one_customer() -> None:
    workers = 8
    platform = BarrierPlatform(workers)
    engine = _engine(platform)
    signal = build_signal(email="Jane@Co.com", first_name="Jane")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: engine.resolve(signal), range(workers)))

    assert len(platform.customers) == 1
    [customer_id] = platform.customers
    assert {result.customer_id for result in results} == {customer_id}
    actions = [result.action for result in results]
    assert actions.count(ResolutionAction.CREATED) == 1
    assert actions.count(ResolutionAction.LINKED) == workers - 1
    assert sum(result.already_exists for result in results) == workers - 1


def test_lost_create_race_is_reported_as_linked() -> None:
    platform = RacingPlatform(CustomerDraft(email="jane@co.com", first_name="Other"))
    signal = build_signal(
        email="jane@co.com", phone="5551234567", provider="shopify", external_id="42"
    )

    resolution = _engine(platform).resolve(signal)

    assert resolution.action is ResolutionAction.LINKED
    assert resolution.already_exists
    assert len(platform.customers) == 1
    winner = platform.customers[resolution.customer_id]
    assert winner.has_identity(Provider.SHOPIFY, "42")
    # keys are not filled when linking to a concurrent winner
    assert winner.primary_phone is None


def test_fill_collision_falls_back_to_link_only(platform: InMemoryCustomerPlatform) -> None:
    existing = platform.seed(CustomerDraft(email="jane@co.com"))
    platform.fail(
        "link_external_id",
        DuplicateIdentity("phone already taken", field="phone", value="5551234567"),
    )

    resolution = _engine(platform).resolve(
        build_signal(email="jane@co.com", phone="5551234567", provider="shopify", external_id="9")
    )

    assert resolution.action is ResolutionAction.LINKED
    assert platform.calls["link_external_id"] == 2
    assert existing.primary_phone is None
    assert existing.has_identity(Provider.SHOPIFY, "9")


def test_unavailable_platform_propagates_after_attempts(
    platform: InMemoryCustomerPlatform,
) -> None:
    platform.fail("find_by_normalized_emails", times=3)
    delays: list[float] = []
    policy = RaceRetryPolicy(attempts=3, base_delay=0.1)
    upsert = RemoteUpsert(platform, policy, sleep=delays.append)

    with pytest.raises(RemoteUnavailable) as excinfo:
        ResolutionEngine(platform, upsert=upsert).resolve(build_signal(email="jane@co.com"))

    assert excinfo.value.operation == "find_by_normalized_emails"
    assert platform.calls["find_by_normalized_emails"] == 3
    assert delays == pytest.approx([0.1, 0.2])
    assert platform.customers == {}


def test_transient_lookup_failure_is_retried(platform: InMemoryCustomerPlatform) -> None:
    platform.fail("find_by_normalized_emails")

    resolution = _engine(platform).resolve(build_signal(email="jane@co.com"))

    assert resolution.action is ResolutionAction.CREATED
    assert platform.calls["find_by_normalized_emails"] == 2
    assert len(platform.customers) == 1


def test_transient_link_failure_is_retried(platform: InMemoryCustomerPlatform) -> None:
    existing = platform.seed(CustomerDraft(email="jane@co.com"))
    platform.fail("link_external_id")

    resolution = _engine(platform).resolve(
        build_signal(email="jane@co.com", provider="shopify", external_id="42")
    )

    assert resolution.action is ResolutionAction.LINKED
    assert resolution.customer_id == existing.id
    assert platform.calls["link_external_id"] == 2
    assert existing.has_identity(Provider.SHOPIFY, "42")


def test_reference_claimed_before_link_resolves_to_its_owner() -> None:
    platform = ClaimingPlatform(
        CustomerDraft(
            email="other@co.com",
            identity=IdentityLink(provider=Provider.SHOPIFY, external_id="42"),
        )
    )
    jane = platform.seed(CustomerDraft(email="jane@co.com"))

    resolution = _engine(platform).resolve(
        build_signal(email="jane@co.com", provider="shopify", external_id="42")
    )

    owner = platform.by_email("other@co.com")
    assert owner is not None
    assert resolution.action is ResolutionAction.UPDATED
    assert resolution.customer_id == owner.id
    assert not jane.has_identity(Provider.SHOPIFY, "42")
    assert len(platform.customers) == 2


def test_persistent_key_collision_surfaces_as_unavailable(
    platform: InMemoryCustomerPlatform,
) -> None:
    platform.seed(CustomerDraft(email="jane@co.com"))
    collision = DuplicateIdentity("external id already linked", field="external_id", value="42")
    platform.fail("link_external_id", collision, times=3)

    with pytest.raises(RemoteUnavailable) as excinfo:
        _engine(platform).resolve(
            build_signal(email="jane@co.com", provider="shopify", external_id="42")
        )

    assert excinfo.value.operation == "resolve"
    assert isinstance(excinfo.value.__cause__, DuplicateIdentity)
    assert platform.calls["link_external_id"] == 3


def test_repeated_ambiguous_signal_keeps_one_open_flag(
    platform: InMemoryCustomerPlatform,
    review_queue: InMemoryReviewQueue,
) -> None:
    platform.seed(CustomerDraft(email="jane@co.com"))
    platform.seed(CustomerDraft(phone="5551234567"))
    engine = _engine(platform, review_queue)
    signal = build_signal(email="jane@co.com", phone="5551234567")

    first = engine.resolve(signal)
    second = engine.resolve(signal)

    assert first.action is second.action is ResolutionAction.AMBIGUOUS
    assert len(review_queue.flags) == 1


def test_review_flag_failure_does_not_fail_the_link(
    platform: InMemoryCustomerPlatform,
    review_queue: InMemoryReviewQueue,
    caplog: pytest.LogCaptureFixture,
) -> None:
    jane = platform.seed(CustomerDraft(email="jane@co.com"))
    platform.seed(CustomerDraft(phone="5551234567"))
    review_queue.fail_flags = True

    resolution = _engine(platform, review_queue).resolve(
        build_signal(email="jane@co.com", phone="5551234567", provider="qbo", external_id="Q-1")
    )

    assert resolution.action is ResolutionAction.AMBIGUOUS
    assert jane.has_identity(Provider.QBO, "Q-1")
    assert review_queue.flags == []
    assert "Could not flag customers" in caplog.text


def test_predict_does_not_write(platform: InMemoryCustomerPlatform) -> None:
    platform.seed(CustomerDraft(email="jane@co.com"))
    platform.calls.clear()
    engine = _engine(platform)
    signal = build_signal(email="jane@co.com", phone="5551234567")

    prediction = engine.predict(signal, engine.matcher.match_signal(signal))

    assert prediction.action is ResolutionAction.LINKED
    assert prediction.customer_id == 1
    assert set(platform.calls) == {"find_by_normalized_emails", "find_by_normalized_phones"}
