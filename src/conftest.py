"""Test environment shared by every test package."""

import os
import sys
from pathlib import Path

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("APP_ENV", "test")

sys.path.insert(0, str(Path(__file__).parent))
