"""In-memory implementation of JobStatsPort for testing."""

from datetime import datetime


class FakeJobStats:
    def __init__(self):
        self.jobs: list[dict] = []

    def count_posted(self, user_id: str) -> int:
        return sum(1 for j in self.jobs if j.get('created_by') == user_id)

    def count_completed(self, user_id: str) -> int:
        return sum(
            1 for j in self.jobs
            if j.get('assigned_to') == user_id and j.get('status') == 'completed'
        )

    def sum_earnings(self, user_id: str) -> float:
        return sum(
            j.get('budget', {}).get('amount', 0) for j in self.jobs
            if j.get('assigned_to') == user_id and j.get('status') == 'completed'
        )

    def count_active(self) -> int:
        return sum(1 for j in self.jobs if j.get('status') in ('open', 'in_progress'))

    def count_completed_since(self, since: datetime) -> int:
        return sum(
            1 for j in self.jobs
            if j.get('status') == 'completed' and j.get('completed_at') and j['completed_at'] >= since
        )

    def count_open_disputes(self) -> int:
        return sum(1 for j in self.jobs if (j.get('dispute') or {}).get('status') == 'open')
