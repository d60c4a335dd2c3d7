"""MongoDB implementation of UserRepository."""

import re
from dataclasses import asdict
from datetime import datetime, timezone
from enum import Enum
from logging import getLogger

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from adapter.mongodb import USERS_COLLECTION_NAME
from adapter.mongodb.indexes import IndexSpec, apply_indexes
from domain.model.errors import DuplicateError, RepositoryError
from domain.model.user import (
    MAX_NOTIFICATIONS,
    AuthMethod,
    Location,
    Notification,
    Role,
    User,
)
from domain.model.user_query import StatusFilter, UserCountFilter, UserPage, UserQuery, UserSort
from domain.model.user_update import RESET_FIELDS, UserUpdate

logger = getLogger(__name__)

# Reset-flow fields are only read by the reset flow itself
DEFAULT_PROJECTION = {f: 0 for f in RESET_FIELDS}
LISTING_PROJECTION = {**DEFAULT_PROJECTION, 'password_hash': 0, 'notifications': 0}

_SORTS = {
    UserSort.NEWEST: [('created_at', -1)],
    UserSort.OLDEST: [('created_at', 1)],
    UserSort.NAME: [('name', 1), ('created_at', -1)],
}

# Unique sparse fields must be absent, never null
_SPARSE_FIELDS = ('phone', 'external_id')

_IDENTITY_FIELDS = ('email', 'username', 'phone', 'external_id')

# Identity fields are unique; optional ones are sparse so absent values never collide
USER_INDEXES = [
    IndexSpec((('email', 1),), 'idx_users_email', unique=True),
    IndexSpec((('username', 1),), 'idx_users_username', unique=True),
    IndexSpec((('phone', 1),), 'idx_users_phone', unique=True, sparse=True),
    IndexSpec((('external_id', 1),), 'idx_users_external_id', unique=True, sparse=True),
    IndexSpec((('created_at', -1),), 'idx_users_created_at'),
    IndexSpec((('password_reset_expiry', 1),), 'idx_users_reset_expiry', sparse=True),
    IndexSpec((('role', 1),), 'idx_users_role'),
    IndexSpec((('banned', 1),), 'idx_users_banned'),
]


def _duplicate_field(error: DuplicateKeyError) -> str:
    """Name the identity field behind an E11000 error."""
    details = error.details or {}
    key_pattern = details.get('keyPattern') or details.get('keyValue') or {}
    for field in _IDENTITY_FIELDS:
        if field in key_pattern:
            return field
    message = str(error)
    for field in _IDENTITY_FIELDS:
        if field in message:
            return field
    return 'email'


def _to_mongo_value(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Location, Notification)):
        return asdict(value)
    if isinstance(value, list):
        return [_to_mongo_value(v) for v in value]
    return value


class MongoUserRepository:
    def __init__(self, db: Database):
        self.collection = db[USERS_COLLECTION_NAME]

    # ── indexes ──────────────────────────────────────────────

    def ensure_indexes(self) -> bool:
        """Create indexes for users collection."""
        return apply_indexes(self.collection, USER_INDEXES)

    # ── helpers ──────────────────────────────────────────────

    def _to_domain(self, doc: dict) -> User:
        """Convert MongoDB document to User domain model."""
        location = None
        if doc.get('location'):
            location = Location(**doc['location'])

        notifications = [Notification(**n) for n in doc.get('notifications', [])]

        return User(
            id=doc['_id'],
            name=doc['name'],
            email=doc['email'],
            username=doc['username'],
            auth_method=AuthMethod(doc.get('auth_method', 'email')),
            created_at=doc['created_at'],
            updated_at=doc['updated_at'],
            role=Role(doc['role']) if doc.get('role') else None,
            phone=doc.get('phone'),
            external_id=doc.get('external_id'),
            password_hash=doc.get('password_hash'),
            providers=doc.get('providers', []),
            location=location,
            skills=doc.get('skills', []),
            bio=doc.get('bio', ''),
            available_now=doc.get('available_now', False),
            work_radius=doc.get('work_radius'),
            preferences=doc.get('preferences', {}),
            notifications=notifications,
            is_verified=doc.get('is_verified', False),
            email_verified=doc.get('email_verified', False),
            phone_verified=doc.get('phone_verified', False),
            verified_at=doc.get('verified_at'),
            verified_by=doc.get('verified_by'),
            banned=doc.get('banned', False),
            banned_reason=doc.get('banned_reason'),
            banned_at=doc.get('banned_at'),
            banned_by=doc.get('banned_by'),
            password_reset_token_hash=doc.get('password_reset_token_hash'),
            password_reset_expiry=doc.get('password_reset_expiry'),
            password_reset_attempts=doc.get('password_reset_attempts', 0),
            profile_completed_at=doc.get('profile_completed_at'),
            last_login_at=doc.get('last_login_at'),
            last_activity_at=doc.get('last_activity_at'),
        )

    def _to_document(self, user: User) -> dict:
        doc = {k: _to_mongo_value(v) for k, v in asdict(user).items() if k != 'id'}
        # asdict() already flattened nested dataclasses; enums still need values
        doc['auth_method'] = user.auth_method.value
        doc['_id'] = user.id
        if user.role:
            doc['role'] = user.role.value
        else:
            doc.pop('role', None)
        for field in _SPARSE_FIELDS:
            if doc.get(field) is None:
                doc.pop(field, None)
        for field in RESET_FIELDS:
            if doc.get(field) is None:
                doc.pop(field, None)
        if not doc.get('password_hash'):
            doc.pop('password_hash', None)
        return doc

    def _to_mongo_update(self, update: UserUpdate) -> dict:
        to_set = {}
        to_unset = {field: '' for field in update.unset}
        for field, value in update.set.items():
            if value is None:
                to_unset[field] = ''
            else:
                to_set[field] = _to_mongo_value(value)
        to_set['updated_at'] = datetime.now(timezone.utc)

        mongo_update: dict = {'$set': to_set}
        if to_unset:
            mongo_update['$unset'] = to_unset
        if update.push_notification is not None:
            mongo_update['$push'] = {
                'notifications': {
                    '$each': [asdict(update.push_notification)],
                    '$position': 0,
                    '$slice': MAX_NOTIFICATIONS,
                }
            }
        return mongo_update

    # ── write operations ─────────────────────────────────────

    def create(self, user: User) -> User:
        """Insert a new user document."""
        try:
            self.collection.insert_one(self._to_document(user))
            logger.info("User created", extra={"userId": user.id, "authMethod": user.auth_method.value})
            return user
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("User creation failed: duplicate key", extra={"field": field})
            raise DuplicateError(field) from e
        except PyMongoError as e:
            logger.error("Failed to create user", extra={"error": str(e)})
            raise RepositoryError("Failed to create user") from e

    def update_by_id(
        self,
        user_id: str,
        update: UserUpdate,
        *,
        expected: dict | None = None,
    ) -> User | None:
        """Apply update atomically and return the document after the update."""
        query = {'_id': user_id, **(expected or {})}
        try:
            doc = self.collection.find_one_and_update(
                query,
                self._to_mongo_update(update),
                projection=DEFAULT_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("User update failed: duplicate key", extra={"userId": user_id, "field": field})
            raise DuplicateError(field) from e
        except PyMongoError as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            raise RepositoryError("Failed to update user") from e

        if doc is None:
            return None
        return self._to_domain(doc)

    def increment_reset_attempts(self, user_id: str, now: datetime, max_attempts: int) -> User | None:
        try:
            doc = self.collection.find_one_and_update(
                {
                    '_id': user_id,
                    'password_reset_expiry': {'$gt': now},
                    'password_reset_attempts': {'$lt': max_attempts},
                },
                {'$inc': {'password_reset_attempts': 1}, '$set': {'updated_at': now}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to count reset attempt", extra={"userId": user_id, "error": str(e)})
            raise RepositoryError("Failed to update user") from e
        return self._to_domain(doc) if doc else None

    # ── read operations ──────────────────────────────────────

    def _find_one(self, query: dict, projection: dict | None = DEFAULT_PROJECTION) -> User | None:
        try:
            doc = self.collection.find_one(query, projection)
        except PyMongoError as e:
            logger.error("Failed to read user", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e
        return self._to_domain(doc) if doc else None

    def get_by_id(self, user_id: str) -> User | None:
        return self._find_one({'_id': user_id})

    def find_unique(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
        auth_method: str | None = None,
    ) -> User | None:
        query = {
            k: v for k, v in (
                ('email', email), ('username', username), ('phone', phone),
                ('external_id', external_id), ('auth_method', auth_method),
            ) if v is not None
        }
        if not query:
            return None
        return self._find_one(query)

    def find_conflicts(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
    ) -> list[User]:
        clauses = [
            {k: v} for k, v in (
                ('email', email), ('username', username),
                ('phone', phone), ('external_id', external_id),
            ) if v
        ]
        if not clauses:
            return []
        try:
            docs = list(self.collection.find({'$or': clauses}, DEFAULT_PROJECTION).limit(10))
        except PyMongoError as e:
            logger.error("Failed to look up conflicting users", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e
        return [self._to_domain(doc) for doc in docs]

    def username_exists(self, username: str) -> bool:
        try:
            return self.collection.count_documents({'username': username}, limit=1) > 0
        except PyMongoError as e:
            logger.error("Failed to check username", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e

    def find_reset_candidates(
        self,
        now: datetime,
        max_attempts: int,
        user_id: str | None = None,
    ) -> list[User]:
        query = {
            'password_reset_expiry': {'$gt': now},
            'password_reset_attempts': {'$lt': max_attempts},
        }
        if user_id is not None:
            query['_id'] = user_id
        try:
            docs = list(self.collection.find(query))
        except PyMongoError as e:
            logger.error("Failed to look up reset candidates", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e
        return [self._to_domain(doc) for doc in docs]

    # ── admin queries ────────────────────────────────────────

    def search_users(self, query: UserQuery) -> UserPage:
        mongo_query = _listing_filter(query)
        try:
            total = self.collection.count_documents(mongo_query)
            docs = list(
                self.collection.find(mongo_query, LISTING_PROJECTION)
                .sort(_SORTS[query.sort])
                .skip(query.skip)
                .limit(query.limit)
            )
        except PyMongoError as e:
            logger.error("Failed to list users", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e
        return UserPage(users=[self._to_domain(doc) for doc in docs], total=total, query=query)

    def count_users(self, criteria: UserCountFilter) -> int:
        mongo_query: dict = {'role': {'$ne': Role.ADMIN.value}}
        if criteria.created_since is not None:
            mongo_query['created_at'] = {'$gte': criteria.created_since}
        if criteria.banned is not None:
            mongo_query['banned'] = True if criteria.banned else {'$ne': True}
        if criteria.verified is not None:
            mongo_query['is_verified'] = True if criteria.verified else {'$ne': True}
        try:
            return self.collection.count_documents(mongo_query)
        except PyMongoError as e:
            logger.error("Failed to count users", extra={"error": str(e)})
            raise RepositoryError("Database unavailable") from e


def _listing_filter(query: UserQuery) -> dict:
    mongo_query: dict = {}
    if query.search:
        pattern = {'$regex': re.escape(query.search), '$options': 'i'}
        mongo_query['$or'] = [{'name': pattern}, {'email': pattern}, {'username': pattern}]
    if query.role is not None:
        mongo_query['role'] = query.role.value
    if query.status == StatusFilter.BANNED:
        mongo_query['banned'] = True
    elif query.status == StatusFilter.ACTIVE:
        mongo_query['banned'] = {'$ne': True}
    elif query.status == StatusFilter.VERIFIED:
        mongo_query['is_verified'] = True
    elif query.status == StatusFilter.UNVERIFIED:
        mongo_query['is_verified'] = {'$ne': True}
    return mongo_query
