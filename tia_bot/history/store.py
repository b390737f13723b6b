"""Bounded in-memory conversation history."""

from collections import deque


class InMemoryHistoryStore:
    """
    Append-only turn log with a fixed capacity.

    When the store is full the oldest entries are evicted first. All
    operations are synchronous, so interleaved coroutines on one event
    loop never observe a partially applied append.
    """

    DEFAULT_MAX_ENTRIES = 40

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: deque[dict[str, str]] = deque(maxlen=max_entries)

    def add_turn(self, role: str, content: str) -> None:
        """
        Append one turn to the log.

        Args:
            role: Chat role ("user" or "assistant").
            content: Message text.
        """
        self._entries.append({"role": role, "content": content})

    def get_messages(self) -> list[dict[str, str]]:
        """Return stored turns oldest-first as chat messages."""
        return [dict(e) for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
