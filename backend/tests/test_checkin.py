from concurrent.futures import ThreadPoolExecutor

import pytest

from summit_registration.core.exceptions import NotConfirmedError, RegistrationNotFoundError
from summit_registration.services.checkin import CheckInLedger
from summit_registration.services.registration import RegistrationService


@pytest.fixture
def registration(db, make_code, participant_data):
    make_code("X7K2P9QT")
    return RegistrationService(db).register(participant_data()).registration


def test_check_in_twice_returns_same_timestamp(db, registration):
    ledger = CheckInLedger(db)

    first = ledger.check_in(registration.id)
    second = ledger.check_in(registration.id)

    assert first.already_checked_in is False
    assert second.already_checked_in is True
    assert first.checked_in_at is not None
    assert second.checked_in_at == first.checked_in_at


def test_check_in_by_access_code_or_participant_id(db, registration):
    ledger = CheckInLedger(db)

    by_code = ledger.check_in("X7K2P9QT")
    by_participant = ledger.check_in(registration.participant_id)

    assert by_code.registration.id == registration.id
    assert by_participant.already_checked_in is True


def test_concurrent_scans_stamp_once(database, registration):
    registration_id = registration.id

    def scan(_):
        session = database.session()
        try:
            result = CheckInLedger(session).check_in(registration_id)
            return result.already_checked_in, result.checked_in_at
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(scan, range(10)))

    assert [already for already, _ in results].count(False) == 1
    assert len({stamp for _, stamp in results}) == 1


def test_unknown_registration(db):
    with pytest.raises(RegistrationNotFoundError):
        CheckInLedger(db).check_in("KDYES25999")


def test_cancelled_registration_cannot_check_in(db, registration):
    RegistrationService(db).update_status(registration.id, "cancelled")

    with pytest.raises(NotConfirmedError):
        CheckInLedger(db).check_in(registration.id)


def test_verify_is_a_dry_run(db, registration):
    ledger = CheckInLedger(db)

    preview = ledger.verify(registration.id)

    assert preview["valid"] is True
    assert preview["alreadyCheckedIn"] is False
    assert preview["participant"]["firstName"] == "Aminata"
    assert ledger.find(registration.id).checked_in_at is None
    assert ledger.verify("KDYES25999")["valid"] is False


def test_stats_and_recent(db, make_code, participant_data, registration):
    make_code("B4N8R2WQ")
    RegistrationService(db).register(participant_data(accessCode="B4N8R2WQ", email="fatmata@example.com"))
    ledger = CheckInLedger(db)
    ledger.check_in(registration.id)

    assert ledger.stats() == {
        "totalRegistered": 2,
        "checkedIn": 1,
        "attendanceRate": 50.0,
        "todayCheckins": 1,
    }
    assert [r.id for r in ledger.recent()] == [registration.id]
