"""SQLite database operations for trip-split."""

import json
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from .exceptions import UserExistsError
from .models import (
    Destination,
    ExpenseRecord,
    ReceivedSettlement,
    SettlementSnapshot,
    ShareKey,
    Trip,
    User,
)

_TRIP_UPDATABLE_FIELDS = ("name", "start_date", "end_date", "description")


def _timestamp(value: datetime) -> str:
    # Fixed width so text ordering matches time ordering
    return value.isoformat(timespec="microseconds")


def _date_or_none(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path, timeout: float = 30.0):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), timeout=timeout)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS trips (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                name TEXT NOT NULL,
                start_date DATE,
                end_date DATE,
                description TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS destinations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trip_id INTEGER NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                location TEXT,
                visit_date DATE,
                notes TEXT NOT NULL DEFAULT ''
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trip_id INTEGER NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL REFERENCES users(id),
                description TEXT NOT NULL DEFAULT '',
                payer TEXT NOT NULL,
                amount TEXT NOT NULL,
                split_with TEXT NOT NULL DEFAULT '[]',
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        # The UNIQUE key is what makes sharing at-most-once across processes
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS shared_settlements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trip_id INTEGER NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                from_user_id INTEGER NOT NULL REFERENCES users(id),
                to_user_id INTEGER NOT NULL REFERENCES users(id),
                settlement_data TEXT NOT NULL,
                message TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP NOT NULL,
                UNIQUE (trip_id, from_user_id, to_user_id)
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def check_connection(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            self.conn.execute("SELECT COUNT(*) FROM users").fetchone()
        except sqlite3.Error:
            return False
        return True

    # ========================================================================
    # User operations
    # ========================================================================

    def create_user(self, username: str) -> User:
        """Create a user account."""
        user = User(username=username)
        cursor = self.conn.cursor()
        try:
            cursor.execute(
                "INSERT INTO users (username, created_at) VALUES (?, ?)",
                (user.username, _timestamp(user.created_at)),
            )
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise UserExistsError(username) from e
        self.conn.commit()
        user.id = cursor.lastrowid
        return user

    def get_user(self, user_id: int) -> User | None:
        """Get a user by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, username, created_at FROM users WHERE id = ?", (user_id,)
        )
        row = cursor.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        """Get a user by exact username."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, username, created_at FROM users WHERE username = ?",
            (username,),
        )
        row = cursor.fetchone()
        return self._row_to_user(row) if row else None

    def list_users(self) -> list[User]:
        """Get all users ordered by username."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, username, created_at FROM users ORDER BY username")
        return [self._row_to_user(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ========================================================================
    # Trip operations
    # ========================================================================

    def create_trip(self, trip: Trip) -> Trip:
        """Save a new trip and return it with its ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO trips (
                user_id, name, start_date, end_date, description, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                trip.user_id,
                trip.name,
                trip.start_date.isoformat() if trip.start_date else None,
                trip.end_date.isoformat() if trip.end_date else None,
                trip.description,
                _timestamp(trip.created_at),
            ),
        )
        self.conn.commit()
        return trip.model_copy(update={"id": cursor.lastrowid})

    def get_trip(self, trip_id: int, user_id: int) -> Trip | None:
        """Get a trip owned by the given user."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, user_id, name, start_date, end_date, description, created_at
            FROM trips
            WHERE id = ? AND user_id = ?
            """,
            (trip_id, user_id),
        )
        row = cursor.fetchone()
        return self._row_to_trip(row) if row else None

    def list_trips(self, user_id: int) -> list[Trip]:
        """Get all trips owned by a user, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, user_id, name, start_date, end_date, description, created_at
            FROM trips
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (user_id,),
        )
        return [self._row_to_trip(row) for row in cursor.fetchall()]

    def update_trip(self, trip_id: int, user_id: int, **fields) -> Trip | None:
        """Update selected trip fields and return the updated trip."""
        unknown = set(fields) - set(_TRIP_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update trip fields: {sorted(unknown)}")

        if fields:
            values = [
                v.isoformat() if isinstance(v, date) else v for v in fields.values()
            ]
            assignments = ", ".join(f"{name} = ?" for name in fields)
            self.conn.execute(
                f"UPDATE trips SET {assignments} WHERE id = ? AND user_id = ?",
                (*values, trip_id, user_id),
            )
            self.conn.commit()

        return self.get_trip(trip_id, user_id)

    def delete_trip(self, trip_id: int, user_id: int) -> bool:
        """Delete a trip and, by cascade, its destinations, expenses and shares."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM trips WHERE id = ? AND user_id = ?", (trip_id, user_id)
        )
        self.conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_trip(row: sqlite3.Row) -> Trip:
        return Trip(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            start_date=_date_or_none(row["start_date"]),
            end_date=_date_or_none(row["end_date"]),
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ========================================================================
    # Destination operations
    # ========================================================================

    def add_destination(self, destination: Destination) -> Destination:
        """Save a destination and return it with its ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO destinations (trip_id, name, location, visit_date, notes)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                destination.trip_id,
                destination.name,
                destination.location,
                destination.visit_date.isoformat() if destination.visit_date else None,
                destination.notes,
            ),
        )
        self.conn.commit()
        return destination.model_copy(update={"id": cursor.lastrowid})

    def list_destinations(self, trip_id: int) -> list[Destination]:
        """Get a trip's destinations by visit date, undated ones last."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, name, location, visit_date, notes
            FROM destinations
            WHERE trip_id = ?
            ORDER BY visit_date IS NULL, visit_date ASC, id ASC
            """,
            (trip_id,),
        )
        return [
            Destination(
                id=row["id"],
                trip_id=row["trip_id"],
                name=row["name"],
                location=row["location"],
                visit_date=_date_or_none(row["visit_date"]),
                notes=row["notes"],
            )
            for row in cursor.fetchall()
        ]

    def delete_destination(self, destination_id: int, trip_id: int) -> bool:
        """Delete a destination from a trip."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM destinations WHERE id = ? AND trip_id = ?",
            (destination_id, trip_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Expense operations
    # ========================================================================

    def add_expense(self, expense: ExpenseRecord) -> ExpenseRecord:
        """Save an expense and return it with its ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expenses (
                trip_id, user_id, description, payer, amount, split_with, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.trip_id,
                expense.user_id,
                expense.description,
                expense.payer,
                str(expense.amount),
                json.dumps(expense.split_with),
                _timestamp(expense.created_at),
            ),
        )
        self.conn.commit()
        return expense.model_copy(update={"id": cursor.lastrowid})

    def list_expenses(self, trip_id: int, user_id: int) -> list[ExpenseRecord]:
        """Get all expenses a user recorded for a trip."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, user_id, description, payer, amount,
                   split_with, created_at
            FROM expenses
            WHERE trip_id = ? AND user_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (trip_id, user_id),
        )
        return [
            ExpenseRecord(
                id=row["id"],
                trip_id=row["trip_id"],
                user_id=row["user_id"],
                description=row["description"],
                payer=row["payer"],
                amount=Decimal(row["amount"]),
                split_with=json.loads(row["split_with"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def delete_expense(self, expense_id: int, user_id: int) -> bool:
        """Delete an expense recorded by the given user."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM expenses WHERE id = ? AND user_id = ?", (expense_id, user_id)
        )
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Shared settlement operations
    # ========================================================================

    def insert_share_if_absent(self, key: ShareKey, snapshot: SettlementSnapshot) -> bool:
        """
        Atomically store a snapshot unless one already exists for the key.

        The existence check and the insert are a single statement against the
        table's UNIQUE constraint, so concurrent writers on separate
        connections cannot both succeed.

        Returns:
            True if inserted, False if a share already existed for the key
        """
        data = {name: str(amount) for name, amount in snapshot.settlement_data.items()}
        cursor = self.conn.cursor()
        try:
            cursor.execute(
                """
                INSERT INTO shared_settlements (
                    trip_id, from_user_id, to_user_id, settlement_data,
                    message, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (trip_id, from_user_id, to_user_id) DO NOTHING
                """,
                (
                    key.trip_id,
                    key.from_user_id,
                    key.to_user_id,
                    json.dumps(data),
                    snapshot.message,
                    _timestamp(snapshot.created_at),
                ),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return cursor.rowcount == 1

    def share_exists(self, key: ShareKey) -> bool:
        """Check whether a share exists for the key."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id FROM shared_settlements
            WHERE trip_id = ? AND from_user_id = ? AND to_user_id = ?
            """,
            (key.trip_id, key.from_user_id, key.to_user_id),
        )
        return cursor.fetchone() is not None

    def list_received_shares(self, to_user_id: int) -> list[ReceivedSettlement]:
        """Get settlements shared with a user, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT s.id, s.trip_id, s.from_user_id, s.to_user_id,
                   s.settlement_data, s.message, s.created_at,
                   t.name AS trip_name, u.username AS from_username
            FROM shared_settlements AS s
            JOIN trips AS t ON t.id = s.trip_id
            JOIN users AS u ON u.id = s.from_user_id
            WHERE s.to_user_id = ?
            ORDER BY s.created_at DESC, s.id DESC
            """,
            (to_user_id,),
        )
        return [
            ReceivedSettlement(
                id=row["id"],
                trip_name=row["trip_name"],
                from_username=row["from_username"],
                snapshot=SettlementSnapshot(
                    trip_id=row["trip_id"],
                    from_user_id=row["from_user_id"],
                    to_user_id=row["to_user_id"],
                    settlement_data={
                        name: Decimal(amount)
                        for name, amount in json.loads(row["settlement_data"]).items()
                    },
                    message=row["message"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                ),
            )
            for row in cursor.fetchall()
        ]
