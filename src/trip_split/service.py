"""Service layer that composes storage, balance computation and sharing.

This module provides the operations the CLI calls. Each one resolves the
acting user's ownership, then delegates to the pure calculator and snapshot
builder or to the share registry.
"""

import logging
from datetime import date
from decimal import Decimal

from .calculator import compute_balances, validate_expense
from .config import Settings
from .db import Database
from .exceptions import (
    SelfShareError,
    TripNotFoundError,
    UserExistsError,
    UserNotFoundError,
)
from .models import (
    BalanceMap,
    Destination,
    ExpenseRecord,
    ReceivedSettlement,
    ShareKey,
    Trip,
    User,
)
from .registry import ShareRegistry
from .snapshot import build_snapshot

logger = logging.getLogger(__name__)


class TripService:
    """Service for managing trips and sharing their settlements."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the trip service."""
        self.settings = settings
        self.db = database
        self.registry = ShareRegistry(database)

    # ========================================================================
    # Users
    # ========================================================================

    def resolve_user(self, username: str) -> User:
        """
        Look up an account by exact username.

        Raises:
            UserNotFoundError: If no account has that username
        """
        user = self.db.get_user_by_username(username)
        if user is None:
            raise UserNotFoundError(username)
        return user

    def register_user(self, username: str) -> User:
        """Create an account."""
        user = self.db.create_user(username)
        logger.info(f"Created user {username} (id={user.id})")
        return user

    def seed_default_users(self) -> list[str]:
        """
        Create the configured default accounts that don't exist yet.

        Returns:
            Usernames that were created by this call
        """
        created = []
        for username in self.settings.default_users:
            try:
                self.db.create_user(username)
            except UserExistsError:
                logger.debug(f"User {username} already exists")
                continue
            created.append(username)
            logger.info(f"Created default user {username}")
        return created

    # ========================================================================
    # Trips & destinations
    # ========================================================================

    def create_trip(
        self,
        user_id: int,
        name: str,
        start_date: date | None = None,
        end_date: date | None = None,
        description: str = "",
    ) -> Trip:
        """Create a trip owned by the user."""
        trip = self.db.create_trip(
            Trip(
                user_id=user_id,
                name=name,
                start_date=start_date,
                end_date=end_date,
                description=description,
            )
        )
        logger.info(f"Created trip {trip.id} '{name}' for user {user_id}")
        return trip

    def get_trip(self, trip_id: int, user_id: int) -> Trip:
        """
        Get a trip the user owns.

        Raises:
            TripNotFoundError: If the trip doesn't exist or isn't the user's
        """
        trip = self.db.get_trip(trip_id, user_id)
        if trip is None:
            raise TripNotFoundError(trip_id)
        return trip

    def update_trip(self, trip_id: int, user_id: int, **fields) -> Trip:
        """Update a trip's name, dates or description."""
        trip = self.db.update_trip(trip_id, user_id, **fields)
        if trip is None:
            raise TripNotFoundError(trip_id)
        return trip

    def delete_trip(self, trip_id: int, user_id: int) -> None:
        """Delete a trip with its destinations, expenses and shares."""
        if not self.db.delete_trip(trip_id, user_id):
            raise TripNotFoundError(trip_id)
        logger.info(f"Deleted trip {trip_id}")

    def add_destination(
        self,
        trip_id: int,
        user_id: int,
        name: str,
        location: str | None = None,
        visit_date: date | None = None,
        notes: str = "",
    ) -> Destination:
        """Add a destination to a trip the user owns."""
        self.get_trip(trip_id, user_id)
        if not name:
            raise ValueError("Destination name is required")
        return self.db.add_destination(
            Destination(
                trip_id=trip_id,
                name=name,
                location=location,
                visit_date=visit_date,
                notes=notes,
            )
        )

    def list_destinations(self, trip_id: int, user_id: int) -> list[Destination]:
        """List a trip's destinations in visit order."""
        self.get_trip(trip_id, user_id)
        return self.db.list_destinations(trip_id)

    def remove_destination(self, trip_id: int, user_id: int, destination_id: int) -> bool:
        """Remove a destination from a trip the user owns."""
        self.get_trip(trip_id, user_id)
        return self.db.delete_destination(destination_id, trip_id)

    # ========================================================================
    # Expenses & settlement
    # ========================================================================

    def add_expense(
        self,
        trip_id: int,
        user_id: int,
        payer: str,
        amount: Decimal,
        split_with: list[str] | None = None,
        description: str = "",
    ) -> ExpenseRecord:
        """
        Record an expense after validating it.

        Raises:
            TripNotFoundError: If the trip isn't the user's
            InvalidExpenseError: If the expense could never be settled
        """
        self.get_trip(trip_id, user_id)
        expense = ExpenseRecord(
            trip_id=trip_id,
            user_id=user_id,
            description=description,
            payer=payer,
            amount=amount,
            split_with=split_with or [],
        )
        validate_expense(expense)
        saved = self.db.add_expense(expense)
        logger.info(f"Recorded expense {saved.id} on trip {trip_id}: {payer} paid {amount}")
        return saved

    def fetch_expenses(self, trip_id: int, owner_user_id: int) -> list[ExpenseRecord]:
        """Get all and only the trip expenses the user may see."""
        self.get_trip(trip_id, owner_user_id)
        return self.db.list_expenses(trip_id, owner_user_id)

    def remove_expense(self, expense_id: int, user_id: int) -> bool:
        """Delete an expense the user recorded."""
        return self.db.delete_expense(expense_id, user_id)

    def compute_settlement(self, trip_id: int, user_id: int) -> BalanceMap:
        """Compute the current balances for a trip."""
        return compute_balances(self.fetch_expenses(trip_id, user_id))

    def participant_names(self, trip_id: int, user_id: int) -> list[str]:
        """All payer and split names used so far in a trip, sorted."""
        names: set[str] = set()
        for expense in self.fetch_expenses(trip_id, user_id):
            names.add(expense.payer)
            names.update(expense.split_with)
        return sorted(names)

    # ========================================================================
    # Sharing
    # ========================================================================

    def share_settlement(
        self,
        trip_id: int,
        from_user_id: int,
        target_username: str,
        message: str | None = None,
    ) -> ShareKey:
        """
        Freeze the trip's current settlement and share it with another user.

        Raises:
            UserNotFoundError: If the recipient doesn't exist
            SelfShareError: If the recipient is the sharing user
            TripNotFoundError: If the trip isn't the sharing user's
            AlreadySharedError: If already shared with this recipient
            StorageError: If the write fails
        """
        recipient = self.resolve_user(target_username)
        if recipient.id == from_user_id:
            raise SelfShareError("Cannot share a settlement with yourself")
        assert recipient.id is not None

        balances = self.compute_settlement(trip_id, from_user_id)
        snapshot = build_snapshot(
            trip_id=trip_id,
            from_user_id=from_user_id,
            to_user_id=recipient.id,
            balances=balances,
            message=message,
        )
        return self.registry.share(trip_id, from_user_id, recipient.id, snapshot)

    def list_shared_with(self, user_id: int) -> list[ReceivedSettlement]:
        """Settlements other users shared with this user, newest first."""
        return self.registry.list_received(user_id)
