"""MongoDB adapters and collection names."""

USERS_COLLECTION_NAME = 'users'
JOBS_COLLECTION_NAME = 'jobs'
