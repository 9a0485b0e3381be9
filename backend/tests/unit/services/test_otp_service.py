# tests/unit/services/test_otp_service.py
"""
Unit tests for OtpChallengeService wired to in-memory doubles.

Covers generation, verification ordering, attempt counting and lockout,
expiry, resend, corrupted records and concurrent submissions.
"""

from __future__ import annotations

import json
import random
import threading
from collections import Counter

import pytest
from stepup.services._shared.errors import (
    ChallengeExpired,
    ChallengeNotFound,
    InvalidCode,
    LockedOut,
    StorageCorruption,
)
from stepup.services._shared.ports import InMemoryEphemeralStore, ManualClock, OutboxNotifier
from stepup.services.notifications import NotificationDispatcher
from stepup.services.otp import LockoutGuard, OtpChallengeService, OtpConfig, OtpPurpose
from stepup.services.otp import codec

IDENTITY = "a@b.com"


class FixedRandom(random.Random):
    """Random source whose ``randrange`` always yields the same value."""

    def __init__(self, value: int) -> None:
        super().__init__(0)
        self.value = value

    def randrange(self, *args, **kwargs):
        return self.value


class _SyncDispatcher:
    """Dispatcher double delivering inline so tests need no waiting."""

    def __init__(self, notifier):
        self.notifier = notifier

    def submit(self, identity, code, context):
        self.notifier.send(identity, code, context)
        return True


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def store(clock) -> InMemoryEphemeralStore:
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture()
def outbox() -> OutboxNotifier:
    return OutboxNotifier()


def _service(store, clock, outbox, *, code: int = 123456, **cfg) -> OtpChallengeService:
    return OtpChallengeService(
        store=store,
        dispatcher=_SyncDispatcher(outbox),
        config=OtpConfig(**cfg),
        clock=clock,
        rng=FixedRandom(code),
    )


@pytest.fixture()
def service(store, clock, outbox) -> OtpChallengeService:
    return _service(store, clock, outbox)


def _stored(store, identity=IDENTITY):
    raw = store.get(OtpChallengeService.challenge_key(identity))
    return codec.decode("test", raw) if raw is not None else None


# ------------------------------ Generate ---------------------------------- #
def test_generate_stores_challenge_and_returns_masked_receipt(service, store, outbox):
    receipt = service.generate("alice@example.com", OtpPurpose.LOGIN)

    assert receipt.masked_identity == "a***e@example.com"
    assert receipt.expires_in_minutes == 5
    assert "123456" not in receipt.message

    challenge = _stored(store, "alice@example.com")
    assert challenge.code == "123456"
    assert challenge.attempts == 0
    assert challenge.purpose is OtpPurpose.LOGIN
    assert (challenge.expires_at - challenge.created_at).total_seconds() == 300
    assert store.remaining_ttl(OtpChallengeService.challenge_key("alice@example.com")) == 300

    assert outbox.last_code_for("alice@example.com") == "123456"
    assert outbox.sent[0].context.purpose == "LOGIN"


@pytest.mark.parametrize(
    ("seconds", "minutes"),
    [(30, 1), (60, 1), (90, 2), (300, 5)],
)
def test_receipt_rounds_partial_minutes_up(store, clock, outbox, seconds, minutes):
    service = _service(store, clock, outbox, expiration_seconds=seconds)

    receipt = service.generate(IDENTITY, OtpPurpose.LOGIN)

    assert receipt.expires_in_minutes == minutes
    assert outbox.sent[-1].context.expires_in_minutes == minutes


def test_generated_codes_are_fixed_length_digits(store, clock, outbox):
    svc = _service(store, clock, outbox, code=42, length=6)
    svc.generate(IDENTITY, OtpPurpose.LOGIN)
    assert _stored(store).code == "000042"

    real = OtpChallengeService(
        store=store, dispatcher=_SyncDispatcher(outbox), clock=clock, config=OtpConfig(length=8)
    )
    for _ in range(20):
        real.generate(IDENTITY, OtpPurpose.LOGIN)
        code = _stored(store).code
        assert len(code) == 8 and code.isdigit()


def test_generate_replaces_previous_challenge(service, store, clock):
    service.generate(IDENTITY, OtpPurpose.REGISTRATION)
    with pytest.raises(InvalidCode):
        service.verify(IDENTITY, "000000")
    clock.advance(seconds=100)

    service.generate(IDENTITY, OtpPurpose.LOGIN)

    challenge = _stored(store)
    assert challenge.attempts == 0
    assert challenge.purpose is OtpPurpose.LOGIN
    assert challenge.created_at == clock.now()


def test_generate_refused_while_locked(service, outbox):
    service.lockout.lock(IDENTITY, 900)
    with pytest.raises(LockedOut):
        service.generate(IDENTITY, OtpPurpose.LOGIN)
    assert outbox.sent == []


def test_generate_rejects_empty_identity(service):
    with pytest.raises(ValueError):
        service.generate("", OtpPurpose.LOGIN)


def test_generate_survives_notifier_failure(store, clock):
    failing = OutboxNotifier(fail=True)
    dispatcher = NotificationDispatcher(failing, max_workers=1, queue_capacity=1)
    svc = OtpChallengeService(
        store=store, dispatcher=dispatcher, clock=clock, rng=FixedRandom(123456)
    )
    try:
        receipt = svc.generate(IDENTITY, OtpPurpose.LOGIN)
    finally:
        dispatcher.shutdown(wait=True)

    assert receipt.expires_in_minutes == 5
    assert _stored(store).code == "123456"


# ------------------------------- Verify ----------------------------------- #
def test_verify_correct_code_consumes_challenge(service, store):
    service.generate(IDENTITY, OtpPurpose.REGISTRATION)

    consumed = service.verify(IDENTITY, "123456")

    assert consumed.purpose is OtpPurpose.REGISTRATION
    assert _stored(store) is None
    with pytest.raises(ChallengeNotFound):
        service.verify(IDENTITY, "123456")


def test_verify_without_challenge(service):
    with pytest.raises(ChallengeNotFound):
        service.verify(IDENTITY, "123456")


def test_wrong_codes_count_down_then_lock(service, store, clock):
    """Two wrong submissions report 2 then 1; the third locks for ~900s."""
    service.generate(IDENTITY, OtpPurpose.LOGIN)

    with pytest.raises(InvalidCode) as first:
        service.verify(IDENTITY, "000000")
    assert first.value.remaining_attempts == 2

    with pytest.raises(InvalidCode) as second:
        service.verify(IDENTITY, "000000")
    assert second.value.remaining_attempts == 1

    with pytest.raises(LockedOut):
        service.verify(IDENTITY, "000000")

    assert service.lockout.is_locked(IDENTITY)
    assert 899 <= service.lockout.remaining_seconds(IDENTITY) <= 900

    # correct code is refused while locked
    with pytest.raises(LockedOut):
        service.verify(IDENTITY, "123456")

    clock.advance(seconds=901)
    assert not service.lockout.is_locked(IDENTITY)


def test_stored_attempts_never_exceed_max(service, store):
    service.generate(IDENTITY, OtpPurpose.LOGIN)
    for _ in range(2):
        with pytest.raises(InvalidCode):
            service.verify(IDENTITY, "999999")
    with pytest.raises(LockedOut):
        service.verify(IDENTITY, "999999")
    challenge = _stored(store)
    assert challenge is not None
    assert challenge.attempts == 3


def test_exhausted_challenge_is_deleted_and_identity_relocked(service, store, clock):
    """A challenge left at the maximum is removed and the identity locked again."""
    service.generate(IDENTITY, OtpPurpose.LOGIN)
    key = OtpChallengeService.challenge_key(IDENTITY)
    exhausted = _stored(store)
    store.update(key, lambda raw: (codec.encode(_with_attempts(exhausted, 3)), None))

    with pytest.raises(LockedOut):
        service.verify(IDENTITY, "123456")

    assert store.get(key) is None
    assert service.lockout.is_locked(IDENTITY)


def _with_attempts(challenge, attempts):
    from dataclasses import replace

    return replace(challenge, attempts=attempts)


def test_wrong_attempts_do_not_extend_ttl(service, store, clock):
    service.generate(IDENTITY, OtpPurpose.LOGIN)
    key = OtpChallengeService.challenge_key(IDENTITY)
    original_expiry = _stored(store).expires_at

    clock.advance(seconds=120)
    before = store.remaining_ttl(key)
    with pytest.raises(InvalidCode):
        service.verify(IDENTITY, "000000")
    after = store.remaining_ttl(key)

    assert before == 180
    assert after <= before
    assert _stored(store).expires_at == original_expiry
    assert _stored(store).attempts == 1


def test_expired_challenge(store, clock, outbox):
    """A record still present but past ``expires_at`` fails as expired and is removed."""
    svc = _service(store, clock, outbox)
    svc.generate(IDENTITY, OtpPurpose.LOGIN)
    key = OtpChallengeService.challenge_key(IDENTITY)
    challenge = _stored(store)
    # keep the record alive in the store beyond its logical expiry
    store.set_with_ttl(key, codec.encode(challenge), 3600)

    clock.advance(seconds=301)
    with pytest.raises(ChallengeExpired):
        svc.verify(IDENTITY, "123456")
    assert store.get(key) is None


def test_challenge_gone_after_ttl(service, clock):
    service.generate(IDENTITY, OtpPurpose.LOGIN)
    clock.advance(seconds=300)
    with pytest.raises(ChallengeNotFound):
        service.verify(IDENTITY, "123456")


def test_corrupted_record_raises_storage_corruption(service, store):
    key = OtpChallengeService.challenge_key(IDENTITY)
    store.set_with_ttl(key, "{not json", 300)
    with pytest.raises(StorageCorruption):
        service.verify(IDENTITY, "123456")

    store.set_with_ttl(key, json.dumps({"v": 2, "identity": IDENTITY}), 300)
    with pytest.raises(StorageCorruption):
        service.verify(IDENTITY, "123456")


# ------------------------------- Resend ----------------------------------- #
def test_resend_keeps_purpose_and_restarts_counters(service, store, clock, outbox):
    service.generate(IDENTITY, OtpPurpose.REGISTRATION)
    with pytest.raises(InvalidCode):
        service.verify(IDENTITY, "000000")
    clock.advance(seconds=200)

    receipt = service.resend_otp(IDENTITY)

    challenge = _stored(store)
    assert challenge.purpose is OtpPurpose.REGISTRATION
    assert challenge.attempts == 0
    assert challenge.created_at == clock.now()
    assert receipt.expires_in_minutes == 5
    assert len(outbox.sent) == 2


def test_resend_without_challenge_defaults_to_login(service, store):
    service.resend_otp(IDENTITY)
    assert _stored(store).purpose is OtpPurpose.LOGIN


def test_resend_refused_while_locked(service):
    service.lockout.lock(IDENTITY, 900)
    with pytest.raises(LockedOut):
        service.resend_otp(IDENTITY)


def test_resend_surfaces_corrupted_record(service, store):
    store.set_with_ttl(OtpChallengeService.challenge_key(IDENTITY), "[]", 300)
    with pytest.raises(StorageCorruption):
        service.resend_otp(IDENTITY)


# ----------------------------- Concurrency -------------------------------- #
def _hammer(service, submissions: int) -> list[object]:
    barrier = threading.Barrier(submissions)
    outcomes: list[object] = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            service.verify(IDENTITY, "000000")
        except (InvalidCode, LockedOut) as exc:
            with lock:
                outcomes.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(submissions)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    return outcomes


def test_concurrent_wrong_submissions_are_all_counted(store, clock, outbox):
    """K <= M concurrent wrong codes leave exactly K recorded attempts."""
    svc = _service(store, clock, outbox, max_attempts=10)
    svc.generate(IDENTITY, OtpPurpose.LOGIN)

    outcomes = _hammer(svc, 6)

    assert len(outcomes) == 6
    assert _stored(store).attempts == 6
    remaining = sorted(e.remaining_attempts for e in outcomes if isinstance(e, InvalidCode))
    assert remaining == [4, 5, 6, 7, 8, 9]


def test_concurrent_submissions_beyond_budget_lock(store, clock, outbox):
    """K > M: exactly M-1 InvalidCode outcomes, the rest LockedOut, attempts capped at M."""
    svc = _service(store, clock, outbox, max_attempts=3)
    svc.generate(IDENTITY, OtpPurpose.LOGIN)

    outcomes = _hammer(svc, 8)

    kinds = Counter(type(e).__name__ for e in outcomes)
    assert kinds == {"InvalidCode": 2, "LockedOut": 6}
    remaining = sorted(e.remaining_attempts for e in outcomes if isinstance(e, InvalidCode))
    assert remaining == [1, 2]
    assert svc.lockout.is_locked(IDENTITY)
    stored = _stored(store)
    assert stored is None or stored.attempts == 3


def test_lockout_guard_uses_shared_store(store):
    guard = LockoutGuard(store)
    assert not guard.is_locked(IDENTITY)
    guard.lock(IDENTITY, 60)
    assert guard.is_locked(IDENTITY)
    assert guard.remaining_seconds(IDENTITY) == 60
