"""At-most-once delivery of settlement snapshots between users."""

import logging
import sqlite3

from .db import Database
from .exceptions import AlreadySharedError, StorageError
from .models import ReceivedSettlement, SettlementSnapshot, ShareKey

logger = logging.getLogger(__name__)


class ShareRegistry:
    """Stores shared settlements and guarantees one share per key."""

    def __init__(self, database: Database):
        """Initialize the registry."""
        self.db = database

    def share(
        self,
        trip_id: int,
        from_user_id: int,
        to_user_id: int,
        snapshot: SettlementSnapshot,
    ) -> ShareKey:
        """
        Deliver a snapshot to a recipient exactly once.

        Relies on the storage layer's atomic insert-if-absent, never on a
        separate existence check, so concurrent callers in different
        processes cannot both succeed for the same key.

        Args:
            trip_id: Trip being shared
            from_user_id: Sharing user
            to_user_id: Recipient
            snapshot: Snapshot built for this exact key

        Returns:
            The key the snapshot was stored under

        Raises:
            ValueError: If the snapshot's provenance does not match the key
            AlreadySharedError: If this trip was already shared with the recipient
            StorageError: If the database write fails
        """
        key = ShareKey(trip_id=trip_id, from_user_id=from_user_id, to_user_id=to_user_id)
        if snapshot.key != key:
            raise ValueError(
                f"Snapshot is addressed to {snapshot.key}, not {key}"
            )

        try:
            inserted = self.db.insert_share_if_absent(key, snapshot)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store shared settlement: {e}") from e

        if not inserted:
            logger.info(
                f"Trip {trip_id} already shared by user {from_user_id} "
                f"with user {to_user_id}"
            )
            raise AlreadySharedError(trip_id, from_user_id, to_user_id)

        logger.info(
            f"Shared trip {trip_id} settlement from user {from_user_id} "
            f"to user {to_user_id} ({len(snapshot.settlement_data)} balances)"
        )
        return key

    def list_received(self, to_user_id: int) -> list[ReceivedSettlement]:
        """
        Get every settlement shared with a user, newest first.

        Reading does not consume anything; shares stay visible indefinitely.
        """
        try:
            return self.db.list_received_shares(to_user_id)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read shared settlements: {e}") from e

    def has_shared(self, key: ShareKey) -> bool:
        """Whether a share exists for the key. Display only; not a guard for share()."""
        try:
            return self.db.share_exists(key)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read shared settlements: {e}") from e
