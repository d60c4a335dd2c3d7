"""Port definition for read-only job statistics used by admin views."""

from datetime import datetime
from typing import Protocol


class JobStatsPort(Protocol):
    def count_posted(self, user_id: str) -> int: ...
    def count_completed(self, user_id: str) -> int: ...
    def sum_earnings(self, user_id: str) -> float: ...

    def count_active(self) -> int:
        """Jobs that are open or in progress."""
        ...

    def count_completed_since(self, since: datetime) -> int: ...

    def count_open_disputes(self) -> int: ...
