"""Read-only job statistics for admin views.

The jobs collection is owned by the marketplace side of the application;
this adapter only counts and sums.
"""

from datetime import datetime
from logging import getLogger

from pymongo.database import Database
from pymongo.errors import PyMongoError

from adapter.mongodb import JOBS_COLLECTION_NAME
from domain.model.errors import RepositoryError

logger = getLogger(__name__)

ACTIVE_STATUSES = ('open', 'in_progress')


class MongoJobStats:
    def __init__(self, db: Database):
        self.collection = db[JOBS_COLLECTION_NAME]

    def count_posted(self, user_id: str) -> int:
        try:
            return self.collection.count_documents({'created_by': user_id})
        except PyMongoError as e:
            logger.error("Failed to count posted jobs", extra={"userId": user_id, "error": str(e)})
            raise RepositoryError("Failed to load job statistics") from e

    def count_completed(self, user_id: str) -> int:
        try:
            return self.collection.count_documents({'assigned_to': user_id, 'status': 'completed'})
        except PyMongoError as e:
            logger.error("Failed to count completed jobs", extra={"userId": user_id, "error": str(e)})
            raise RepositoryError("Failed to load job statistics") from e

    def sum_earnings(self, user_id: str) -> float:
        pipeline = [
            {'$match': {'assigned_to': user_id, 'status': 'completed'}},
            {'$group': {'_id': None, 'total': {'$sum': '$budget.amount'}}},
        ]
        try:
            result = list(self.collection.aggregate(pipeline))
        except PyMongoError as e:
            logger.error("Failed to sum earnings", extra={"userId": user_id, "error": str(e)})
            raise RepositoryError("Failed to load job statistics") from e
        if not result:
            return 0
        return result[0].get('total') or 0

    # ── platform totals ──────────────────────────────────────

    def _count(self, query: dict, what: str) -> int:
        try:
            return self.collection.count_documents(query)
        except PyMongoError as e:
            logger.error(f"Failed to count {what}", extra={"error": str(e)})
            raise RepositoryError("Failed to load job statistics") from e

    def count_active(self) -> int:
        return self._count({'status': {'$in': list(ACTIVE_STATUSES)}}, "active jobs")

    def count_completed_since(self, since: datetime) -> int:
        return self._count({'status': 'completed', 'completed_at': {'$gte': since}}, "completed jobs")

    def count_open_disputes(self) -> int:
        return self._count({'dispute.status': 'open'}, "open disputes")
