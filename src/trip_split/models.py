"""Pydantic domain models for trip-split."""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Participant name -> signed balance. Positive = is owed, negative = owes.
BalanceMap = dict[str, Decimal]

# ============================================================================
# Accounts & trips
# ============================================================================


class User(BaseModel):
    """A registered account that can own trips and receive shares."""

    id: int | None = None
    username: str
    created_at: datetime = Field(default_factory=datetime.now)


class Trip(BaseModel):
    """A named travel event owned by one user."""

    id: int | None = None
    user_id: int
    name: str
    start_date: date | None = None
    end_date: date | None = None
    description: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class Destination(BaseModel):
    """A place visited during a trip."""

    id: int | None = None
    trip_id: int
    name: str
    location: str | None = None
    visit_date: date | None = None
    notes: str = ""


class ExpenseRecord(BaseModel):
    """A single payment made by one participant and shared with others.

    Participant names are free text, not account references: "Bob" and
    "bob " are two different people. Business rules (finite, non-negative amount,
    payer not in split_with) are checked by ``calculator.validate_expense``
    rather than here, so malformed rows loaded from storage can still be
    represented and rejected explicitly.
    """

    id: int | None = None
    trip_id: int
    user_id: int | None = None  # owner of the record, not a participant
    description: str = ""
    payer: str
    amount: Decimal = Field(allow_inf_nan=True)
    split_with: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Settlement sharing
# ============================================================================


class ShareKey(BaseModel):
    """Identity of a share: at most one may exist per key."""

    model_config = ConfigDict(frozen=True)

    trip_id: int
    from_user_id: int
    to_user_id: int


class SettlementSnapshot(BaseModel):
    """An immutable copy of a trip's balances with provenance."""

    model_config = ConfigDict(frozen=True)

    trip_id: int
    from_user_id: int
    to_user_id: int
    settlement_data: Mapping[str, Decimal]
    message: str = ""
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("settlement_data", mode="after")
    @classmethod
    def freeze_balances(cls, value: Mapping[str, Decimal]) -> Mapping[str, Decimal]:
        """Store balances as a read-only view over a private copy."""
        return MappingProxyType(dict(value))

    @property
    def key(self) -> ShareKey:
        """The share key this snapshot is addressed to."""
        return ShareKey(
            trip_id=self.trip_id,
            from_user_id=self.from_user_id,
            to_user_id=self.to_user_id,
        )


class ReceivedSettlement(BaseModel):
    """A shared settlement as seen from the recipient's inbox."""

    id: int
    trip_name: str
    from_username: str
    snapshot: SettlementSnapshot

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape existing clients expect."""
        return {
            "id": self.id,
            "trips": {"name": self.trip_name},
            "users": {"username": self.from_username},
            "settlement_data": balances_to_wire(self.snapshot.settlement_data),
            "message": self.snapshot.message,
            "created_at": self.snapshot.created_at.isoformat(),
        }


def balances_to_wire(balances: Mapping[str, Decimal]) -> dict[str, float]:
    """Serialize a balance map as ``{participant: signed number}``."""
    return {name: float(amount) for name, amount in balances.items()}
