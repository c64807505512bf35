"""Custom exceptions for trip-split."""


class TripSplitError(Exception):
    """Base exception for all trip-split errors."""

    pass


class ConfigurationError(TripSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidExpenseError(TripSplitError):
    """Raised when an expense record cannot take part in a balance computation."""

    def __init__(self, expense_id: int | None, reason: str):
        self.expense_id = expense_id
        self.reason = reason
        label = f"Expense {expense_id}" if expense_id is not None else "Expense"
        super().__init__(f"{label} is invalid: {reason}")


class UserNotFoundError(TripSplitError):
    """Raised when a username does not resolve to an account."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' not found")


class UserExistsError(TripSplitError):
    """Raised when registering a username that is already taken."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' already exists")


class TripNotFoundError(TripSplitError):
    """Raised when a trip does not exist or is not owned by the acting user."""

    def __init__(self, trip_id: int):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class AlreadySharedError(TripSplitError):
    """Raised when a trip's settlement was already shared with the same recipient."""

    def __init__(self, trip_id: int, from_user_id: int, to_user_id: int):
        self.trip_id = trip_id
        self.from_user_id = from_user_id
        self.to_user_id = to_user_id
        super().__init__(
            f"Settlement for trip {trip_id} has already been shared with user {to_user_id}"
        )


class SelfShareError(TripSplitError):
    """Raised when a user tries to share a settlement with themselves."""

    pass


class StorageError(TripSplitError):
    """Raised when the underlying database operation fails."""

    pass
