"""Tests for TripService layer."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from trip_split.config import Settings
from trip_split.db import Database
from trip_split.exceptions import (
    AlreadySharedError,
    InvalidExpenseError,
    SelfShareError,
    TripNotFoundError,
    UserNotFoundError,
)
from trip_split.service import TripService


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings pointing at a temporary database."""
    return Settings(database_path=tmp_path / "test.db")


@pytest.fixture
def mock_db(mock_settings):
    """Create a temporary database."""
    db = Database(mock_settings.database_path)
    yield db
    db.close()


@pytest.fixture
def service(mock_settings, mock_db):
    """Create a TripService instance with the default users."""
    service = TripService(mock_settings, mock_db)
    service.seed_default_users()
    return service


@pytest.fixture
def alice(service):
    return service.resolve_user("alice")


@pytest.fixture
def trip(service, alice):
    """A trip owned by alice with two expenses."""
    trip = service.create_trip(alice.id, "Lisbon", start_date=date(2024, 9, 1))
    service.add_expense(trip.id, alice.id, "A", Decimal("90"), ["B", "C"], "Dinner")
    service.add_expense(trip.id, alice.id, "B", Decimal("30"), ["A"], "Taxi")
    return trip


class TestSeedDefaultUsers:
    """Tests for seed_default_users."""

    def test_creates_configured_users(self, service):
        """All default users exist after seeding."""
        assert [u.username for u in service.db.list_users()] == [
            "alice",
            "bob",
            "charlie",
            "diana",
        ]

    def test_is_idempotent(self, service):
        """Seeding again creates nothing."""
        assert service.seed_default_users() == []


class TestResolveUser:
    """Tests for resolve_user."""

    def test_unknown_user(self, service):
        """Unknown usernames raise UserNotFoundError."""
        with pytest.raises(UserNotFoundError) as exc_info:
            service.resolve_user("mallory")

        assert exc_info.value.username == "mallory"


class TestExpenses:
    """Tests for expense recording and the expense source."""

    def test_add_expense_validates(self, service, alice, trip):
        """Invalid expenses are rejected before they are stored."""
        with pytest.raises(InvalidExpenseError):
            service.add_expense(trip.id, alice.id, "A", Decimal("-1"), ["B"])

        with pytest.raises(InvalidExpenseError):
            service.add_expense(trip.id, alice.id, "A", Decimal("10"), ["A"])

        assert len(service.fetch_expenses(trip.id, alice.id)) == 2

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_add_expense_rejects_non_finite_amount(self, service, alice, trip, amount):
        """Non-finite amounts raise InvalidExpenseError and nothing is stored."""
        with pytest.raises(InvalidExpenseError, match="not finite"):
            service.add_expense(trip.id, alice.id, "A", Decimal(amount), ["B"])

        assert len(service.fetch_expenses(trip.id, alice.id)) == 2

    def test_fetch_expenses_requires_ownership(self, service, trip):
        """Another user cannot read the trip's expenses."""
        bob = service.resolve_user("bob")

        with pytest.raises(TripNotFoundError):
            service.fetch_expenses(trip.id, bob.id)

    def test_add_expense_to_foreign_trip(self, service, trip):
        """Expenses can only be added to your own trips."""
        bob = service.resolve_user("bob")

        with pytest.raises(TripNotFoundError):
            service.add_expense(trip.id, bob.id, "B", Decimal("5"))

    def test_participant_names(self, service, alice, trip):
        """All payers and split names, sorted."""
        assert service.participant_names(trip.id, alice.id) == ["A", "B", "C"]


class TestComputeSettlement:
    """Tests for compute_settlement."""

    def test_balances_from_stored_expenses(self, service, alice, trip):
        """Balances reflect every stored expense."""
        balances = service.compute_settlement(trip.id, alice.id)

        # A: +60 -15, B: -30 +15, C: -30
        assert balances == {
            "A": Decimal("45"),
            "B": Decimal("-15"),
            "C": Decimal("-30"),
        }

    def test_removing_expense_updates_balances(self, service, alice, trip):
        """Balances are recomputed from the current expense list."""
        taxi = service.fetch_expenses(trip.id, alice.id)[1]
        assert service.remove_expense(taxi.id, alice.id)

        assert service.compute_settlement(trip.id, alice.id) == {
            "A": Decimal("60"),
            "B": Decimal("-30"),
            "C": Decimal("-30"),
        }


class TestShareSettlement:
    """Tests for the sharing flow."""

    def test_share_then_receive(self, service, alice, trip):
        """A shared settlement shows up in the recipient's inbox."""
        service.share_settlement(trip.id, alice.id, "bob", "Settle up please")

        bob = service.resolve_user("bob")
        [received] = service.list_shared_with(bob.id)

        assert received.trip_name == "Lisbon"
        assert received.from_username == "alice"
        assert received.snapshot.message == "Settle up please"
        assert received.snapshot.settlement_data["A"] == Decimal("45")

    def test_shared_data_is_frozen(self, service, alice, trip):
        """Later expenses don't change an already-shared snapshot."""
        service.share_settlement(trip.id, alice.id, "bob")
        service.add_expense(trip.id, alice.id, "C", Decimal("300"), ["A", "B"])

        bob = service.resolve_user("bob")
        [received] = service.list_shared_with(bob.id)

        assert received.snapshot.settlement_data == {
            "A": Decimal("45"),
            "B": Decimal("-15"),
            "C": Decimal("-30"),
        }
        assert received.snapshot.message == ""

    def test_second_share_rejected(self, service, alice, trip):
        """The same trip can only be shared with a user once."""
        service.share_settlement(trip.id, alice.id, "bob")

        with pytest.raises(AlreadySharedError):
            service.share_settlement(trip.id, alice.id, "bob", "again")

    def test_unknown_recipient(self, service, alice, trip):
        """Sharing with an unknown username fails before computing anything."""
        with patch.object(service, "compute_settlement") as mock_compute:
            with pytest.raises(UserNotFoundError):
                service.share_settlement(trip.id, alice.id, "mallory")

        mock_compute.assert_not_called()

    def test_self_share_rejected(self, service, alice, trip):
        """Users cannot share with themselves."""
        with pytest.raises(SelfShareError):
            service.share_settlement(trip.id, alice.id, "alice")

    def test_share_foreign_trip(self, service, trip):
        """Only the owner can share a trip."""
        bob = service.resolve_user("bob")

        with pytest.raises(TripNotFoundError):
            service.share_settlement(trip.id, bob.id, "charlie")


class TestTrips:
    """Tests for trip and destination management."""

    def test_update_trip(self, service, alice, trip):
        """Trips can be renamed."""
        assert service.update_trip(trip.id, alice.id, name="Porto").name == "Porto"

    def test_update_foreign_trip(self, service, trip):
        """Updating someone else's trip raises TripNotFoundError."""
        bob = service.resolve_user("bob")

        with pytest.raises(TripNotFoundError):
            service.update_trip(trip.id, bob.id, name="Mine now")

    def test_destination_requires_name(self, service, alice, trip):
        """A destination needs a name."""
        with pytest.raises(ValueError):
            service.add_destination(trip.id, alice.id, "")

    def test_delete_trip_removes_shares(self, service, alice, trip):
        """Shares disappear with their trip."""
        service.share_settlement(trip.id, alice.id, "bob")
        service.delete_trip(trip.id, alice.id)

        bob = service.resolve_user("bob")
        assert service.list_shared_with(bob.id) == []

        with pytest.raises(TripNotFoundError):
            service.delete_trip(trip.id, alice.id)
