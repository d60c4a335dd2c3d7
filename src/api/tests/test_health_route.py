"""Tests for the health check endpoint."""

import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path

# src is three levels up from this file
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient

from adapter.mongodb.connection import get_mongo_connection
from api.dependencies import get_rate_limiter
from api.main import app


class TestHealth(unittest.TestCase):

    def setUp(self):
        self.connection = MagicMock()
        self.limiter = MagicMock()
        app.dependency_overrides[get_mongo_connection] = lambda: self.connection
        app.dependency_overrides[get_rate_limiter] = lambda: self.limiter
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_healthy(self):
        self.limiter.ping.return_value = True

        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["services"]["mongodb"]["status"], "healthy")
        self.assertEqual(data["services"]["redis"]["status"], "healthy")

    def test_redis_down_is_degraded(self):
        self.limiter.ping.return_value = False

        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "degraded")

    def test_mongodb_down_is_unhealthy(self):
        self.connection.get_client.return_value = None
        self.limiter.ping.return_value = True

        response = self.client.get("/health")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["status"], "unhealthy")

    def test_root(self):
        response = self.client.get("/")
        self.assertEqual(response.json()["status"], "running")


if __name__ == '__main__':
    unittest.main()
