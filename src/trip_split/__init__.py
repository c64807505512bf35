"""trip-split - Track shared travel expenses and share per-trip settlements."""

__version__ = "0.1.0"

from .calculator import compute_balances, round_for_display, validate_expense
from .config import Settings, load_settings
from .db import Database
from .models import (
    BalanceMap,
    ExpenseRecord,
    ReceivedSettlement,
    SettlementSnapshot,
    ShareKey,
)
from .registry import ShareRegistry
from .service import TripService
from .snapshot import build_snapshot

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "BalanceMap",
    "ExpenseRecord",
    "ReceivedSettlement",
    "SettlementSnapshot",
    "ShareKey",
    "compute_balances",
    "round_for_display",
    "validate_expense",
    "build_snapshot",
    "ShareRegistry",
    "TripService",
]
