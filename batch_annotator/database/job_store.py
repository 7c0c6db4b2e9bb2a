"""
Durable job records.

The pipeline depends only on the ``JobStore`` interface. ``InMemoryJobStore``
keeps jobs for the lifetime of the process; ``MongoJobStore`` persists them in
the ``processing_jobs`` collection so later invocations can resume them.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import PyMongoError

from ..exceptions import DatabaseConnectionError, DatabaseOperationError, JobNotFoundError
from ..models import Job, JobStatus, utcnow
from .base_mongodb_service import BaseMongoDBService
from .mongodb_config import DEFAULT_JOBS_COLLECTION, MongoDBConnection

logger = logging.getLogger(__name__)

JOBS_COLLECTION = DEFAULT_JOBS_COLLECTION


def new_job_id() -> str:
    return str(uuid.uuid4())


class JobStore(ABC):
    """Interface the job service reads and writes job state through."""

    @abstractmethod
    def create(self, job: Job) -> Job:
        ...

    @abstractmethod
    def get(self, job_id: str) -> Job:
        """Return the job or raise JobNotFoundError."""

    @abstractmethod
    def update(self, job_id: str, **fields: Any) -> Job:
        """Set the given fields in one write and bump ``updated_at``."""

    @abstractmethod
    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        ...


class InMemoryJobStore(JobStore):
    """Job store backed by a dict. Jobs are copied in and out."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def create(self, job: Job) -> Job:
        self._jobs[job.id] = copy.deepcopy(job)
        return copy.deepcopy(job)

    def get(self, job_id: str) -> Job:
        try:
            return copy.deepcopy(self._jobs[job_id])
        except KeyError:
            raise JobNotFoundError(f"Job not found: {job_id}") from None

    def update(self, job_id: str, **fields: Any) -> Job:
        if job_id not in self._jobs:
            raise JobNotFoundError(f"Job not found: {job_id}")
        job = self._jobs[job_id]
        for name, value in fields.items():
            if not hasattr(job, name):
                raise DatabaseOperationError(f"Unknown job field: {name}")
            setattr(job, name, copy.deepcopy(value))
        job.updated_at = utcnow()
        return copy.deepcopy(job)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        jobs = [copy.deepcopy(j) for j in self._jobs.values() if status is None or j.status == status]
        return sorted(jobs, key=lambda j: j.created_at)


class MongoJobStore(BaseMongoDBService, JobStore):
    """Job store backed by a MongoDB collection."""

    DEFAULT_INDEXES = [
        IndexModel([("status", ASCENDING), ("created_at", ASCENDING)]),
        IndexModel([("created_at", DESCENDING)]),
    ]

    def __init__(self, connection: Optional[MongoDBConnection] = None,
                 collection_name: Optional[str] = None):
        super().__init__(connection)
        self.collection_name = collection_name or self.connection.config.jobs_collection

    def _collection(self):
        self._ensure_collection_setup(self.collection_name, self.DEFAULT_INDEXES)
        collection = self._get_collection(self.collection_name)
        if collection is None:
            raise DatabaseConnectionError(f"MongoDB collection unavailable: {self.collection_name}")
        return collection

    @staticmethod
    def _to_job(doc: Dict[str, Any]) -> Job:
        doc = dict(doc)
        doc['id'] = doc.pop('_id')
        return Job.from_document(doc)

    def create(self, job: Job) -> Job:
        doc = self._convert_enums_to_strings(job.to_document())
        doc['_id'] = doc.pop('id')
        try:
            self._collection().insert_one(doc)
        except PyMongoError as e:
            raise DatabaseOperationError(f"Failed to create job: {e}") from e
        logger.info(f"Created job {job.id} for {job.file_name} ({job.total_units} units)")
        return job

    def get(self, job_id: str) -> Job:
        try:
            doc = self._collection().find_one({'_id': job_id})
        except PyMongoError as e:
            raise DatabaseOperationError(f"Failed to load job {job_id}: {e}") from e
        if doc is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return self._to_job(doc)

    def update(self, job_id: str, **fields: Any) -> Job:
        unknown = [name for name in fields if name not in Job.__dataclass_fields__ or name == 'id']
        if unknown:
            raise DatabaseOperationError(f"Unknown job field(s): {', '.join(unknown)}")
        changes = self._convert_enums_to_strings(dict(fields))
        changes['updated_at'] = utcnow()
        try:
            result = self._collection().update_one({'_id': job_id}, {'$set': changes})
        except PyMongoError as e:
            raise DatabaseOperationError(f"Failed to update job {job_id}: {e}") from e
        if result.matched_count == 0:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return self.get(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        query = self._build_query_filter({'status': status.value if status else None})
        try:
            docs = self._collection().find(query).sort('created_at', ASCENDING)
            return [self._to_job(doc) for doc in docs]
        except PyMongoError as e:
            raise DatabaseOperationError(f"Failed to list jobs: {e}") from e
