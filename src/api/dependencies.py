from functools import lru_cache

from fastapi import Depends, HTTPException
from pymongo.database import Database

from adapter.external.firebase_identity import FirebaseIdentityProvider
from adapter.external.resend_mailer import ResendMailer
from adapter.mongodb.connection import MongoConnection, get_mongo_connection
from adapter.mongodb.job_stats import MongoJobStats
from adapter.mongodb.user_repository import MongoUserRepository
from adapter.redis.rate_limiter import RedisRateLimiter
from port.identity_provider import IdentityProviderPort
from port.job_stats import JobStatsPort
from port.mailer import MailerPort
from port.rate_limiter import RateLimiterPort
from port.user_repository import UserRepository


def get_db(connection: MongoConnection = Depends(get_mongo_connection)) -> Database:
    """Get MongoDB database, raising 503 if unavailable."""
    db = connection.get_database()
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return db


def get_user_repo(db: Database = Depends(get_db)) -> UserRepository:
    return MongoUserRepository(db)


def get_job_stats(db: Database = Depends(get_db)) -> JobStatsPort:
    return MongoJobStats(db)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiterPort:
    return RedisRateLimiter()


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProviderPort:
    return FirebaseIdentityProvider()


def get_mailer() -> MailerPort:
    return ResendMailer()
