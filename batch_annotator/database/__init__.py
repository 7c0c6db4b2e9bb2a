"""
Database Module

Job persistence for resumable annotation jobs.
"""

from .mongodb_config import (
    MongoDBConfig,
    MongoDBConnection,
    get_mongodb_connection
)

from .base_mongodb_service import BaseMongoDBService

from .job_store import (
    JobStore,
    InMemoryJobStore,
    MongoJobStore,
    JOBS_COLLECTION,
    new_job_id
)

__all__ = [
    'MongoDBConfig',
    'MongoDBConnection',
    'get_mongodb_connection',
    'BaseMongoDBService',
    'JobStore',
    'InMemoryJobStore',
    'MongoJobStore',
    'JOBS_COLLECTION',
    'new_job_id'
]
