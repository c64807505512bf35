"""Interactive prompts for entering expense participants."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

logger = logging.getLogger(__name__)


class ParticipantCompleter(Completer):
    """Fuzzy completer over participant names already used in a trip.

    Completes the last comma-separated entry, so it works for a single payer
    as well as for a list of split participants.
    """

    def __init__(self, names: list[str]):
        """Initialize the completer with known names."""
        self.names = sorted(set(names))

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions for the entry under the cursor."""
        current = document.text_before_cursor.split(",")[-1].lstrip()
        query = current.lower()
        already_entered = {
            part.strip() for part in document.text_before_cursor.split(",")[:-1]
        }

        for name in self.names:
            if name in already_entered:
                continue
            if not query or self._fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(current),
                    display=name,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="chl" matches "Charlie"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def parse_names(text: str) -> list[str]:
    """Split comma-separated names, dropping empty entries.

    Only surrounding whitespace is removed; spelling and case are kept.
    """
    return [part.strip() for part in text.split(",") if part.strip()]


def prompt_payer(known_names: list[str]) -> str | None:
    """
    Ask who paid, completing from names already used in the trip.

    Returns:
        The payer name, or None if the user skipped
    """
    session: PromptSession[str] = PromptSession(
        completer=ParticipantCompleter(known_names)
    )
    try:
        while True:
            result = session.prompt("Paid by: ", complete_while_typing=True).strip()
            if result:
                logger.debug(f"Payer entered: {result}")
                return result
            print("❌ A payer is required. Press Ctrl+C to cancel.")
    except (KeyboardInterrupt, EOFError):
        return None


def prompt_split_with(known_names: list[str], payer: str) -> list[str] | None:
    """
    Ask who shares the cost, excluding the payer.

    An empty answer means the payer bears the full cost alone.

    Returns:
        List of names, or None if the user cancelled
    """
    candidates = [name for name in known_names if name != payer]
    session: PromptSession[str] = PromptSession(
        completer=ParticipantCompleter(candidates)
    )
    print("   Comma-separated names; leave empty if nobody else shares this cost")
    try:
        result = session.prompt("Split with: ", complete_while_typing=True)
    except (KeyboardInterrupt, EOFError):
        return None
    return parse_names(result)
