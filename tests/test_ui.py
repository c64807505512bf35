"""Tests for the participant completer and name parsing."""

from prompt_toolkit.document import Document

from trip_split.ui import ParticipantCompleter, parse_names


def completions(completer: ParticipantCompleter, text: str) -> list[str]:
    return [c.text for c in completer.get_completions(Document(text), None)]


class TestParticipantCompleter:
    """Tests for ParticipantCompleter."""

    def test_empty_query_lists_all_names(self):
        """With nothing typed, every known name is offered."""
        completer = ParticipantCompleter(["Charlie", "Alice", "Bob", "Alice"])

        assert completions(completer, "") == ["Alice", "Bob", "Charlie"]

    def test_fuzzy_match(self):
        """Query characters must appear in order."""
        completer = ParticipantCompleter(["Alice", "Bob", "Charlie"])

        assert completions(completer, "chl") == ["Charlie"]
        assert completions(completer, "b") == ["Bob"]

    def test_completes_last_entry_in_list(self):
        """Only the entry after the last comma is completed."""
        completer = ParticipantCompleter(["Alice", "Bob", "Charlie"])
        results = list(completer.get_completions(Document("Alice, ch"), None))

        assert [c.text for c in results] == ["Charlie"]
        assert results[0].start_position == -2

    def test_skips_names_already_entered(self):
        """Names already in the list are not offered again."""
        completer = ParticipantCompleter(["Alice", "Bob", "Charlie"])

        assert completions(completer, "Alice, ") == ["Bob", "Charlie"]


class TestParseNames:
    """Tests for parse_names."""

    def test_splits_and_strips(self):
        """Whitespace around names is removed, empty entries dropped."""
        assert parse_names(" Bob,  Charlie ,, ") == ["Bob", "Charlie"]

    def test_keeps_case(self):
        """Spelling and case are preserved."""
        assert parse_names("bob,Bob") == ["bob", "Bob"]

    def test_empty(self):
        """An empty answer means nobody."""
        assert parse_names("") == []
