"""Freeze computed balances into shareable settlement snapshots."""

import copy
from datetime import datetime

from .models import BalanceMap, SettlementSnapshot


def build_snapshot(
    trip_id: int,
    from_user_id: int,
    to_user_id: int,
    balances: BalanceMap,
    message: str | None = None,
    created_at: datetime | None = None,
) -> SettlementSnapshot:
    """
    Build an immutable settlement snapshot.

    The balance map is deep-copied so that later changes to the source
    (or to the trip's expenses) never alter a snapshot that was already sent.

    Args:
        trip_id: Trip the balances were computed for
        from_user_id: User sharing the settlement
        to_user_id: Recipient
        balances: Computed balance map
        message: Optional note for the recipient
        created_at: Snapshot time, defaults to now

    Returns:
        The snapshot. Nothing is persisted.
    """
    return SettlementSnapshot(
        trip_id=trip_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        settlement_data=copy.deepcopy(dict(balances)),
        message=message or "",
        created_at=created_at or datetime.now(),
    )
