"""Tests for MongoUserRepository against a mocked collection."""

import unittest
from unittest.mock import patch, MagicMock
import sys
from pathlib import Path
from datetime import datetime, timezone
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

# src is three levels up from this file
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from adapter.mongodb import USERS_COLLECTION_NAME
from adapter.mongodb.connection import MongoConnection
from adapter.mongodb.job_stats import MongoJobStats
from adapter.mongodb.user_repository import DEFAULT_PROJECTION, LISTING_PROJECTION, MongoUserRepository
from domain.model.errors import DuplicateError, RepositoryError
from domain.model.user import AuthMethod, Location, Notification, Role, User
from domain.model.user_query import StatusFilter, UserCountFilter, UserQuery, UserSort
from domain.model.user_update import UserUpdate

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = 'a' * 32


def _mock_db():
    mock_collection = MagicMock()
    mock_db = MagicMock()
    mock_db.__getitem__.return_value = mock_collection
    return mock_db, mock_collection


def _user_doc(**overrides) -> dict:
    doc = {
        '_id': USER_ID,
        'name': 'Asha Rao',
        'email': 'asha@fixly.in',
        'username': 'asha_rao',
        'auth_method': 'email',
        'role': 'fixer',
        'phone': '+919876543210',
        'password_hash': 'hashed',
        'providers': ['email'],
        'location': {'city': 'Pune', 'state': 'Maharashtra', 'lat': 18.5, 'lng': 73.8},
        'skills': ['plumbing'],
        'notifications': [
            {'type': 'welcome', 'title': 'Welcome', 'message': 'Hi', 'created_at': NOW, 'read': False},
        ],
        'created_at': NOW,
        'updated_at': NOW,
    }
    doc.update(overrides)
    return doc


class TestCreate(unittest.TestCase):
    """Test MongoUserRepository.create()."""

    def setUp(self):
        self.db, self.collection = _mock_db()
        self.repo = MongoUserRepository(self.db)

    def test_uses_users_collection(self):
        self.db.__getitem__.assert_called_with(USERS_COLLECTION_NAME)

    def test_create_writes_document(self):
        """Enums become values, empty sparse fields are omitted."""
        user = User(
            id=USER_ID,
            name='Asha Rao',
            email='asha@fixly.in',
            username='asha_rao',
            auth_method=AuthMethod.GOOGLE,
            created_at=NOW,
            updated_at=NOW,
            role=Role.HIRER,
            location=Location(city='Pune', state='Maharashtra'),
        )

        result = self.repo.create(user)

        self.assertIs(result, user)
        doc = self.collection.insert_one.call_args[0][0]
        self.assertEqual(doc['_id'], USER_ID)
        self.assertNotIn('id', doc)
        self.assertEqual(doc['auth_method'], 'google')
        self.assertEqual(doc['role'], 'hirer')
        self.assertEqual(doc['location'], {'city': 'Pune', 'state': 'Maharashtra', 'lat': 0.0, 'lng': 0.0})
        for field in ('phone', 'external_id', 'password_hash', 'password_reset_token_hash'):
            self.assertNotIn(field, doc)

    def test_create_placeholder_without_role(self):
        user = User(
            id=USER_ID, name='Asha', email='asha@gmail.com', username='temp_0a1b2c',
            auth_method=AuthMethod.GOOGLE, created_at=NOW, updated_at=NOW, external_id='g-1',
        )
        self.repo.create(user)
        doc = self.collection.insert_one.call_args[0][0]
        self.assertNotIn('role', doc)
        self.assertEqual(doc['external_id'], 'g-1')

    def test_create_duplicate_names_field(self):
        """E11000 errors are mapped to DuplicateError for the colliding field."""
        self.collection.insert_one.side_effect = DuplicateKeyError(
            "E11000 duplicate key error",
            11000,
            {'keyPattern': {'username': 1}, 'keyValue': {'username': 'asha_rao'}},
        )
        user = User(
            id=USER_ID, name='Asha', email='asha@fixly.in', username='asha_rao',
            auth_method=AuthMethod.EMAIL, created_at=NOW, updated_at=NOW,
        )
        with self.assertRaises(DuplicateError) as ctx:
            self.repo.create(user)
        self.assertEqual(ctx.exception.field, 'username')

    def test_create_database_error(self):
        self.collection.insert_one.side_effect = PyMongoError("connection reset")
        user = User(
            id=USER_ID, name='Asha', email='asha@fixly.in', username='asha_rao',
            auth_method=AuthMethod.EMAIL, created_at=NOW, updated_at=NOW,
        )
        with self.assertRaises(RepositoryError):
            self.repo.create(user)


class TestRead(unittest.TestCase):
    """Test document to domain conversion and lookups."""

    def setUp(self):
        self.db, self.collection = _mock_db()
        self.repo = MongoUserRepository(self.db)

    def test_get_by_id(self):
        self.collection.find_one.return_value = _user_doc()

        user = self.repo.get_by_id(USER_ID)

        self.assertEqual(user.id, USER_ID)
        self.assertEqual(user.role, Role.FIXER)
        self.assertEqual(user.auth_method, AuthMethod.EMAIL)
        self.assertEqual(user.location, Location(city='Pune', state='Maharashtra', lat=18.5, lng=73.8))
        self.assertEqual(user.notifications[0], Notification(
            type='welcome', title='Welcome', message='Hi', created_at=NOW,
        ))
        self.collection.find_one.assert_called_once_with({'_id': USER_ID}, DEFAULT_PROJECTION)

    def test_get_by_id_not_found(self):
        self.collection.find_one.return_value = None
        self.assertIsNone(self.repo.get_by_id(USER_ID))

    def test_find_unique_builds_query_from_given_fields(self):
        self.collection.find_one.return_value = None
        self.repo.find_unique(phone='+919876543210', auth_method='phone')
        self.collection.find_one.assert_called_once_with(
            {'phone': '+919876543210', 'auth_method': 'phone'}, DEFAULT_PROJECTION,
        )

    def test_find_unique_without_criteria(self):
        self.assertIsNone(self.repo.find_unique())
        self.collection.find_one.assert_not_called()

    def test_find_conflicts_uses_or(self):
        self.collection.find.return_value.limit.return_value = [_user_doc()]

        users = self.repo.find_conflicts(email='asha@fixly.in', username='asha_rao', phone=None)

        self.assertEqual(len(users), 1)
        query = self.collection.find.call_args[0][0]
        self.assertEqual(query, {'$or': [{'email': 'asha@fixly.in'}, {'username': 'asha_rao'}]})

    def test_username_exists(self):
        self.collection.count_documents.return_value = 1
        self.assertTrue(self.repo.username_exists('asha_rao'))
        self.collection.count_documents.assert_called_once_with({'username': 'asha_rao'}, limit=1)

    def test_read_error_is_repository_error(self):
        self.collection.find_one.side_effect = PyMongoError("timeout")
        with self.assertRaises(RepositoryError):
            self.repo.get_by_id(USER_ID)

    def test_reset_candidates_scoped_to_user(self):
        self.collection.find.return_value = [_user_doc(
            password_reset_token_hash='h', password_reset_expiry=NOW, password_reset_attempts=1,
        )]

        users = self.repo.find_reset_candidates(NOW, 3, user_id=USER_ID)

        self.assertEqual(users[0].password_reset_token_hash, 'h')
        self.collection.find.assert_called_once_with({
            'password_reset_expiry': {'$gt': NOW},
            'password_reset_attempts': {'$lt': 3},
            '_id': USER_ID,
        })


class TestUpdate(unittest.TestCase):
    """Test atomic updates."""

    def setUp(self):
        self.db, self.collection = _mock_db()
        self.repo = MongoUserRepository(self.db)

    def test_update_with_guard(self):
        self.collection.find_one_and_update.return_value = _user_doc(banned=True)

        user = self.repo.update_by_id(
            USER_ID,
            UserUpdate(set={'banned': True, 'banned_reason': None}, unset=['banned_by']),
            expected={'role': {'$ne': 'admin'}},
        )

        self.assertTrue(user.banned)
        query, update = self.collection.find_one_and_update.call_args[0]
        self.assertEqual(query, {'_id': USER_ID, 'role': {'$ne': 'admin'}})
        self.assertTrue(update['$set']['banned'])
        self.assertIn('updated_at', update['$set'])
        self.assertEqual(update['$unset'], {'banned_by': '', 'banned_reason': ''})
        kwargs = self.collection.find_one_and_update.call_args[1]
        self.assertEqual(kwargs['return_document'], ReturnDocument.AFTER)

    def test_update_serializes_domain_values(self):
        self.collection.find_one_and_update.return_value = _user_doc()
        self.repo.update_by_id(USER_ID, UserUpdate(set={
            'role': Role.HIRER,
            'location': Location(city='Goa', state='Goa'),
        }))
        update = self.collection.find_one_and_update.call_args[0][1]
        self.assertEqual(update['$set']['role'], 'hirer')
        self.assertEqual(update['$set']['location']['city'], 'Goa')

    def test_push_notification_is_prepended_and_capped(self):
        self.collection.find_one_and_update.return_value = _user_doc()
        notification = Notification(type='welcome', title='T', message='M', created_at=NOW)

        self.repo.update_by_id(USER_ID, UserUpdate(push_notification=notification))

        push = self.collection.find_one_and_update.call_args[0][1]['$push']['notifications']
        self.assertEqual(push['$position'], 0)
        self.assertEqual(push['$slice'], 50)
        self.assertEqual(push['$each'][0]['title'], 'T')

    def test_guard_miss_returns_none(self):
        self.collection.find_one_and_update.return_value = None
        self.assertIsNone(self.repo.update_by_id(USER_ID, UserUpdate(set={'name': 'X'})))

    def test_update_duplicate(self):
        self.collection.find_one_and_update.side_effect = DuplicateKeyError(
            "E11000 duplicate key error collection: fixly.users index: idx_users_phone dup key",
            11000,
        )
        with self.assertRaises(DuplicateError) as ctx:
            self.repo.update_by_id(USER_ID, UserUpdate(set={'phone': '+919876543210'}))
        self.assertEqual(ctx.exception.field, 'phone')

    def test_increment_reset_attempts_is_conditional(self):
        self.collection.find_one_and_update.return_value = None

        self.assertIsNone(self.repo.increment_reset_attempts(USER_ID, NOW, 3))

        query, update = self.collection.find_one_and_update.call_args[0]
        self.assertEqual(query['password_reset_attempts'], {'$lt': 3})
        self.assertEqual(query['password_reset_expiry'], {'$gt': NOW})
        self.assertEqual(update['$inc'], {'password_reset_attempts': 1})


class TestAdminQueries(unittest.TestCase):

    def setUp(self):
        self.db, self.collection = _mock_db()
        self.repo = MongoUserRepository(self.db)

    def test_search_users_builds_filter_sort_and_page(self):
        self.collection.count_documents.return_value = 11
        cursor = self.collection.find.return_value
        cursor.sort.return_value.skip.return_value.limit.return_value = [_user_doc()]

        page = self.repo.search_users(UserQuery(
            search='asha.rao', role=Role.FIXER, status=StatusFilter.BANNED,
            sort=UserSort.OLDEST, page=2, limit=10,
        ))

        pattern = {'$regex': r'asha\.rao', '$options': 'i'}
        expected = {
            '$or': [{'name': pattern}, {'email': pattern}, {'username': pattern}],
            'role': 'fixer',
            'banned': True,
        }
        self.collection.find.assert_called_once_with(expected, LISTING_PROJECTION)
        self.collection.count_documents.assert_called_once_with(expected)
        cursor.sort.assert_called_once_with([('created_at', 1)])
        cursor.sort.return_value.skip.assert_called_once_with(10)
        cursor.sort.return_value.skip.return_value.limit.assert_called_once_with(10)
        self.assertEqual(page.total, 11)
        self.assertEqual(page.users[0].id, USER_ID)
        self.assertFalse(page.has_more)
        self.assertEqual(LISTING_PROJECTION['password_hash'], 0)

    def test_unverified_filter_matches_missing_flag(self):
        self.collection.find.return_value.sort.return_value.skip.return_value.limit.return_value = []
        self.repo.search_users(UserQuery(status=StatusFilter.UNVERIFIED))
        self.collection.find.assert_called_once_with({'is_verified': {'$ne': True}}, LISTING_PROJECTION)

    def test_count_users_excludes_admins(self):
        self.collection.count_documents.return_value = 7

        count = self.repo.count_users(UserCountFilter(created_since=NOW, banned=False))

        self.assertEqual(count, 7)
        self.collection.count_documents.assert_called_once_with({
            'role': {'$ne': 'admin'},
            'created_at': {'$gte': NOW},
            'banned': {'$ne': True},
        })

    def test_store_failure(self):
        self.collection.count_documents.side_effect = ConnectionFailure("down")
        with self.assertRaises(RepositoryError):
            self.repo.count_users(UserCountFilter())
        with self.assertRaises(RepositoryError):
            self.repo.search_users(UserQuery())


class TestEnsureIndexes(unittest.TestCase):

    def test_identity_indexes_are_unique(self):
        db, collection = _mock_db()

        self.assertTrue(MongoUserRepository(db).ensure_indexes())

        created = {c[1]['name']: c[1] for c in collection.create_index.call_args_list}
        self.assertTrue(created['idx_users_email']['unique'])
        self.assertTrue(created['idx_users_username']['unique'])
        self.assertTrue(created['idx_users_phone']['sparse'])
        self.assertTrue(created['idx_users_external_id']['unique'])

    def test_clashing_index_is_rebuilt(self):
        """A non-unique index on a unique field is dropped and recreated."""
        db, collection = _mock_db()
        collection.index_information.return_value = {
            '_id_': {'key': [('_id', 1)]},
            'email_1': {'key': [('email', 1)]},
        }

        MongoUserRepository(db).ensure_indexes()

        collection.drop_index.assert_called_once_with('email_1')

    def test_index_failure_returns_false(self):
        db, collection = _mock_db()
        collection.create_index.side_effect = PyMongoError("not authorized")
        self.assertFalse(MongoUserRepository(db).ensure_indexes())


class TestMongoJobStats(unittest.TestCase):

    def test_counts_and_sums(self):
        db, collection = _mock_db()
        collection.count_documents.side_effect = [4, 2]
        collection.aggregate.return_value = [{'_id': None, 'total': 2500}]
        stats = MongoJobStats(db)

        self.assertEqual(stats.count_posted(USER_ID), 4)
        self.assertEqual(stats.count_completed(USER_ID), 2)
        self.assertEqual(stats.sum_earnings(USER_ID), 2500)
        collection.count_documents.assert_any_call({'assigned_to': USER_ID, 'status': 'completed'})

    def test_no_completed_jobs(self):
        db, collection = _mock_db()
        collection.aggregate.return_value = []
        self.assertEqual(MongoJobStats(db).sum_earnings(USER_ID), 0)

    def test_platform_totals(self):
        db, collection = _mock_db()
        collection.count_documents.side_effect = [5, 3, 1]
        stats = MongoJobStats(db)

        self.assertEqual(stats.count_active(), 5)
        self.assertEqual(stats.count_completed_since(NOW), 3)
        self.assertEqual(stats.count_open_disputes(), 1)
        collection.count_documents.assert_any_call({'status': {'$in': ['open', 'in_progress']}})
        collection.count_documents.assert_any_call({'status': 'completed', 'completed_at': {'$gte': NOW}})
        collection.count_documents.assert_any_call({'dispute.status': 'open'})

    def test_platform_totals_store_failure(self):
        db, collection = _mock_db()
        collection.count_documents.side_effect = PyMongoError('down')
        with self.assertRaises(RepositoryError):
            MongoJobStats(db).count_active()


class TestMongoConnection(unittest.TestCase):
    """Client caching and failure handling."""

    @patch('adapter.mongodb.connection.MongoClient')
    def test_client_is_cached(self, mock_client_cls):
        connection = MongoConnection('mongodb://localhost:27017', 'fixly')

        client = connection.get_client()

        self.assertIs(connection.get_client(), client)
        mock_client_cls.assert_called_once()
        self.assertTrue(mock_client_cls.call_args[1]['tz_aware'])
        client.__getitem__.assert_not_called()
        connection.get_database()
        client.__getitem__.assert_called_with('fixly')

    @patch('adapter.mongodb.connection.MongoClient')
    def test_initial_failure_is_not_retried(self, mock_client_cls):
        mock_client_cls.return_value.admin.command.side_effect = ConnectionFailure("refused")
        connection = MongoConnection('mongodb://localhost:27017', 'fixly')

        self.assertIsNone(connection.get_database())
        self.assertIsNone(connection.get_client())
        mock_client_cls.assert_called_once()

    def test_missing_url(self):
        self.assertIsNone(MongoConnection(None, 'fixly').get_client())


if __name__ == '__main__':
    unittest.main()
