"""Per-chat unread counters."""


class UnreadTracker:
    """Dumb counter; the author/active-chat guard lives in the controller."""

    def __init__(self):
        self._counts: dict[str, int] = {}

    def increment(self, chat_id: str, by: int = 1) -> int:
        count = self._counts.get(chat_id, 0) + max(by, 0)
        self._counts[chat_id] = count
        return count

    def reset(self, chat_id: str) -> None:
        """Zero a chat's count. Idempotent."""
        self._counts[chat_id] = 0

    def get(self, chat_id: str) -> int:
        return self._counts.get(chat_id, 0)

    def set_counts(self, counts: dict[str, int]) -> None:
        """Seed counts from the server's unread-count endpoint."""
        for chat_id, count in counts.items():
            self._counts[str(chat_id)] = max(int(count), 0)

    def total(self) -> int:
        return sum(self._counts.values())

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)

    def clear(self) -> None:
        self._counts.clear()
