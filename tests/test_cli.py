"""End-to-end tests for the trip-split CLI."""

import json
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from trip_split.cli import app, format_money


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """A CLI runner using a temporary, initialized database."""
    monkeypatch.setenv("TRIP_SPLIT_DATABASE_PATH", str(tmp_path / "cli.db"))
    runner = CliRunner()
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0, result.output
    return runner


@pytest.fixture
def trip_with_expenses(runner):
    """Alice's trip 1 with an expense of 90 split three ways."""
    result = runner.invoke(app, ["trips", "create", "Tokyo", "--as", "alice"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(
        app,
        [
            "expenses", "add", "1", "90",
            "--as", "alice",
            "--payer", "A",
            "--split-with", "B, C",
            "--description", "Sushi",
        ],
    )
    assert result.exit_code == 0, result.output
    return 1


class TestInitDb:
    """Tests for init-db."""

    def test_second_run_reports_existing_users(self, runner):
        """Re-running init-db is harmless."""
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert "already exist" in result.output

    def test_users_listed(self, runner):
        """Default users are created."""
        result = runner.invoke(app, ["users", "list"])

        for name in ("alice", "bob", "charlie", "diana"):
            assert name in result.output


class TestSettlementCommand:
    """Tests for the settlement command."""

    def test_shows_balances(self, runner, trip_with_expenses):
        """Balances are rendered rounded to cents."""
        result = runner.invoke(app, ["settlement", "1", "--as", "alice"])

        assert result.exit_code == 0, result.output
        assert "+$60.00" in result.output
        assert "-$30.00" in result.output

    def test_unknown_acting_user(self, runner, trip_with_expenses):
        """An unknown --as user exits with an error."""
        result = runner.invoke(app, ["settlement", "1", "--as", "mallory"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_expense_rejected(self, runner, trip_with_expenses):
        """Payer inside the split list is refused."""
        result = runner.invoke(
            app,
            ["expenses", "add", "1", "10", "--as", "alice", "-p", "A", "-s", "A,B"],
        )

        assert result.exit_code == 1
        assert "invalid" in result.output

    def test_non_numeric_amount(self, runner, trip_with_expenses):
        """Amounts must be numbers."""
        result = runner.invoke(
            app, ["expenses", "add", "1", "lots", "--as", "alice", "-p", "A", "-s", ""]
        )

        assert result.exit_code != 0


class TestShareAndInbox:
    """Tests for share and inbox."""

    def test_share_once(self, runner, trip_with_expenses):
        """The second share to the same user is refused."""
        first = runner.invoke(
            app, ["share", "1", "bob", "--as", "alice", "--message", "Pay up"]
        )
        second = runner.invoke(app, ["share", "1", "bob", "--as", "alice"])

        assert first.exit_code == 0, first.output
        assert "shared with bob" in first.output
        assert second.exit_code == 1
        assert "already been shared" in second.output

    def test_inbox_json_wire_shape(self, runner, trip_with_expenses):
        """--json prints the wire shape."""
        runner.invoke(app, ["share", "1", "bob", "--as", "alice", "-m", "Pay up"])

        result = runner.invoke(app, ["inbox", "--as", "bob", "--json"])

        assert result.exit_code == 0, result.output
        [item] = json.loads(result.output)
        assert item["trips"] == {"name": "Tokyo"}
        assert item["users"] == {"username": "alice"}
        assert item["settlement_data"] == {"A": 60.0, "B": -30.0, "C": -30.0}
        assert item["message"] == "Pay up"

    def test_empty_inbox(self, runner):
        """A user with no shares sees a friendly message."""
        result = runner.invoke(app, ["inbox", "--as", "diana"])

        assert result.exit_code == 0
        assert "Nobody has shared" in result.output


class TestFormatMoney:
    """Tests for format_money."""

    def test_signs(self):
        """Owed amounts get +, debts get -, zero is plain."""
        assert format_money(Decimal("60"), use_color=False) == "+$60.00"
        assert format_money(Decimal("-33.333"), use_color=False) == "-$33.33"
        assert format_money(Decimal("0.001"), use_color=False) == "$0.00"
