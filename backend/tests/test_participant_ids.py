import re

import pytest

from summit_registration.core.exceptions import CapacityExhaustedError, ValidationError
from summit_registration.models import ParticipantNumber
from summit_registration.services.participant_ids import ParticipantIdAllocator, ParticipantIdConflict


def test_allocates_distinct_ids_until_exhausted(db):
    allocator = ParticipantIdAllocator(db, prefix="KDYES25", min_number=1, max_number=3)

    issued = [allocator.allocate() for _ in range(3)]
    db.commit()

    assert sorted(issued) == ["KDYES251", "KDYES252", "KDYES253"]
    with pytest.raises(CapacityExhaustedError):
        allocator.allocate()


def test_default_pool_format(db):
    allocator = ParticipantIdAllocator(db)

    participant_id = allocator.allocate()

    match = re.match(r"^KDYES25(\d+)$", participant_id)
    assert match
    assert 1 <= int(match.group(1)) <= 200


def test_ledger_keeps_numbers_spent(db):
    allocator = ParticipantIdAllocator(db, min_number=1, max_number=2)
    allocator.allocate()
    db.commit()

    assert len(allocator.available_numbers()) == 1
    assert allocator.usage_stats()["used"] == 1


def test_concurrent_claim_raises_conflict(database, db):
    other = database.session()

    def claim_first(available):
        # Another transaction takes the number we are about to use
        other.add(ParticipantNumber(number=available[0], participant_id=f"KDYES25{available[0]}"))
        other.commit()
        return available[0]

    allocator = ParticipantIdAllocator(db, min_number=1, max_number=5, choice=claim_first)
    try:
        with pytest.raises(ParticipantIdConflict):
            allocator.allocate()
    finally:
        db.rollback()
        other.close()


def test_validate_and_extract(db):
    allocator = ParticipantIdAllocator(db)

    assert allocator.validate("KDYES2542") == {"valid": True, "number": 42, "prefix": "KDYES25"}
    assert allocator.validate("KDYES25201")["valid"] is False
    assert allocator.validate("ABC42")["valid"] is False
    assert allocator.validate(42)["valid"] is False
    assert allocator.extract_number("KDYES257") == 7
    assert allocator.extract_number("KDYES250") is None


def test_reserve_specific_and_next_available(db):
    allocator = ParticipantIdAllocator(db, min_number=1, max_number=5, choice=lambda options: options[0])
    allocator.allocate()
    db.commit()

    assert allocator.reserve_specific(2) == "KDYES252"
    with pytest.raises(ValidationError):
        allocator.reserve_specific(1)
    with pytest.raises(ValidationError):
        allocator.reserve_specific(6)
    assert allocator.next_available(2) == ["KDYES252", "KDYES253"]
    assert allocator.is_available("KDYES253") is True
    assert allocator.is_available("KDYES251") is False
    assert allocator.is_available("KDYES250") is False


def test_usage_stats(db):
    allocator = ParticipantIdAllocator(db, min_number=1, max_number=4, choice=lambda options: options[-1])
    allocator.allocate()
    db.commit()

    stats = allocator.usage_stats()

    assert stats == {
        "totalCapacity": 4,
        "used": 1,
        "available": 3,
        "usagePercentage": 25,
        "usedNumbers": [4],
        "prefix": "KDYES25",
        "numberRange": "1-4",
    }
