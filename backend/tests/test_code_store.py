from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from summit_registration.core.exceptions import (
    AccessCodeNotFoundError,
    CodeInUseError,
    InvalidFormatError,
    ValidationError,
)
from summit_registration.db.base import utcnow
from summit_registration.models import Registration
from summit_registration.services.code_generator import CodeGenerator
from summit_registration.services.code_store import CodeStore, ReservationStatus


def _registration_for(code: str) -> Registration:
    return Registration(
        access_code=code,
        participant_id="KDYES2542",
        first_name="Aminata",
        last_name="Kamara",
        participant_email="aminata.kamara@example.com",
        phone="+23276123456",
        age=24,
        gender="Female",
        district="Western Area Urban",
        occupation="Software Developer",
        interest="Networking",
    )


def test_round_trip_preserves_persisted_fields(db):
    store = CodeStore(db)
    created = CodeGenerator(store).generate(expiry_hours=24, event_name="Summit")

    found = store.find_by_code(created.code)

    assert found is not None
    assert found.to_dict() == created.to_dict()
    assert found.id == created.id


def test_find_by_code_rejects_bad_format(db):
    with pytest.raises(InvalidFormatError):
        CodeStore(db).find_by_code("x7k2")


def test_reserve_twice(db, make_code):
    make_code("X7K2P9QT")
    store = CodeStore(db)

    assert store.reserve("X7K2P9QT") is ReservationStatus.OK
    first_used_at = store.find_by_code("X7K2P9QT").used_at

    assert store.reserve("X7K2P9QT") is ReservationStatus.ALREADY_USED
    record = store.find_by_code("X7K2P9QT")
    assert record.is_used is True
    assert record.used_at == first_used_at


def test_reserve_expired_code(db, make_code):
    record = make_code("X7K2P9QT")
    record.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    assert CodeStore(db).reserve("X7K2P9QT") is ReservationStatus.EXPIRED
    assert CodeStore(db).find_by_code("X7K2P9QT").is_used is False


def test_reserve_used_and_expired_reports_used(db, make_code):
    make_code("X7K2P9QT", hours=-1, is_used=True)

    assert CodeStore(db).reserve("X7K2P9QT") is ReservationStatus.ALREADY_USED


def test_reserve_unknown_code(db):
    assert CodeStore(db).reserve("X7K2P9QT") is ReservationStatus.NOT_FOUND


def test_concurrent_reservations_have_one_winner(database, make_code):
    make_code("X7K2P9QT")

    def attempt(_):
        session = database.session()
        try:
            return CodeStore(session).reserve("X7K2P9QT")
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(12)))

    assert results.count(ReservationStatus.OK) == 1
    assert results.count(ReservationStatus.ALREADY_USED) == 11


def test_uncommitted_reservation_rolls_back(db, make_code):
    make_code("X7K2P9QT")
    store = CodeStore(db)

    assert store.reserve("X7K2P9QT", commit=False) is ReservationStatus.OK
    db.rollback()

    assert store.status_of("X7K2P9QT") is ReservationStatus.OK


def test_status_of_does_not_mutate(db, make_code):
    make_code("X7K2P9QT")
    make_code("B4N8R2WQ", is_used=True)
    make_code("K9D3M7PL", hours=-1)
    store = CodeStore(db)

    assert store.status_of("X7K2P9QT") is ReservationStatus.OK
    assert store.status_of("B4N8R2WQ") is ReservationStatus.ALREADY_USED
    assert store.status_of("K9D3M7PL") is ReservationStatus.EXPIRED
    assert store.status_of("Z1Z1Z1Z1") is ReservationStatus.NOT_FOUND
    assert store.find_by_code("X7K2P9QT").is_used is False


def test_is_valid_fails_closed(db, make_code):
    make_code("X7K2P9QT")
    store = CodeStore(db)

    assert store.is_valid("X7K2P9QT") is True
    assert store.is_valid("not-a-code") is False
    assert store.is_valid("Z1Z1Z1Z1") is False


def test_cleanup_removes_every_expired_code(db, make_code):
    make_code("K9D3M7PL", hours=-1)
    make_code("B4N8R2WQ", hours=-1, is_used=True)
    make_code("X7K2P9QT", hours=72)
    store = CodeStore(db)

    assert store.cleanup() == 2
    assert store.exists("X7K2P9QT")
    assert not store.exists("K9D3M7PL")
    assert not store.exists("B4N8R2WQ")


def test_release_returns_code_to_pool(db, make_code):
    make_code("X7K2P9QT")
    store = CodeStore(db)
    store.reserve("X7K2P9QT")

    record = store.release("X7K2P9QT")

    assert record.is_used is False
    assert record.used_at is None
    assert store.reserve("X7K2P9QT") is ReservationStatus.OK


def test_release_refuses_code_held_by_registration(db, make_code):
    make_code("X7K2P9QT", is_used=True)
    db.add(_registration_for("X7K2P9QT"))
    db.commit()

    with pytest.raises(CodeInUseError):
        CodeStore(db).release("X7K2P9QT")


def test_release_refuses_code_of_cancelled_registration(db, make_code):
    make_code("X7K2P9QT", is_used=True)
    registration = _registration_for("X7K2P9QT")
    registration.status = "cancelled"
    db.add(registration)
    db.commit()

    with pytest.raises(CodeInUseError):
        CodeStore(db).release("X7K2P9QT")


def test_code_redeemed_before_cleanup_still_exists(db, make_code):
    make_code("X7K2P9QT", hours=-1, is_used=True)
    db.add(_registration_for("X7K2P9QT"))
    db.commit()
    store = CodeStore(db)

    assert store.cleanup() == 1
    assert store.find_by_code("X7K2P9QT") is None
    assert store.exists("X7K2P9QT")


def test_generator_skips_codes_held_by_registrations(db, make_code):
    make_code("X7K2P9QT", hours=-1, is_used=True)
    db.add(_registration_for("X7K2P9QT"))
    db.commit()
    store = CodeStore(db)
    store.cleanup()
    generator = CodeGenerator(store)
    generator._draw_candidate = MagicMock(side_effect=["X7K2P9QT", "B4N8R2WQ"])

    assert generator.generate().code == "B4N8R2WQ"
    assert store.find_by_code("X7K2P9QT") is None


def test_release_unused_or_unknown_code(db, make_code):
    make_code("X7K2P9QT")
    store = CodeStore(db)

    with pytest.raises(ValidationError):
        store.release("X7K2P9QT")
    with pytest.raises(AccessCodeNotFoundError):
        store.release("Z1Z1Z1Z1")


def test_list_codes_and_stats(db, make_code):
    make_code("X7K2P9QT")
    make_code("B4N8R2WQ", is_used=True)
    make_code("K9D3M7PL", hours=-1)
    store = CodeStore(db)

    assert [c.code for c in store.list_codes(status="used")] == ["B4N8R2WQ"]
    assert [c.code for c in store.list_codes(status="expired")] == ["K9D3M7PL"]
    assert [c.code for c in store.list_codes(status="unused")] == ["X7K2P9QT"]
    assert len(store.list_codes()) == 3
    assert store.stats() == {"total": 3, "used": 1, "unused": 1, "expired": 1}

    with pytest.raises(ValidationError):
        store.list_codes(status="stale")
