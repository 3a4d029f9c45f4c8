from sqlalchemy import Column, Integer, String

from summit_registration.db.base import Base, BaseModel


class ParticipantNumber(Base, BaseModel):
    """
    Ledger of every participant number ever issued.

    Rows are never deleted, so a number stays spent even after its
    registration is removed. The unique constraint on ``number`` is what
    makes two concurrent allocations of the same number impossible.
    """

    __tablename__ = "participant_numbers"

    number = Column(Integer, unique=True, index=True, nullable=False)
    participant_id = Column(String(32), unique=True, nullable=False)

    def __repr__(self):
        return f"<ParticipantNumber {self.participant_id}>"
