"""
Job Service

Entry points for labeling and quote extraction requests. Small labeling
requests and all extraction requests are answered inline; larger labeling
requests become a queued Job that is advanced by repeated, time-boxed
``process_invocation`` calls until it reaches a terminal state.
"""

import base64
import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from ..annotate import (
    AnnotationDispatcher,
    BatchScheduler,
    ScheduleOutcome,
    assemble_labeled_csv,
    assemble_quotes_csv,
    count_quotes,
    encode_artifact,
    label_preview,
    quote_preview,
    QUOTES_FILE_NAME,
)
from ..config import AnnotatorConfig
from ..database import InMemoryJobStore, JobStore, new_job_id
from ..exceptions import EmptyInputError, JobStateError
from ..llm_core import TokenUsageTracker
from ..models import AnnotationMode, AnnotationResult, Job, JobStatus, SubmissionConfig, utcnow
from ..parsing import (
    build_chunk_units,
    build_row_units,
    decode_upload,
    labeled_file_name,
    load_table_from_upload,
)

logger = logging.getLogger(__name__)

DispatcherFactory = Callable[[SubmissionConfig], AnnotationDispatcher]


class JobService:
    """Runs annotation requests inline or through the job store."""

    def __init__(self,
                 store: Optional[JobStore] = None,
                 settings: Optional[AnnotatorConfig] = None,
                 dispatcher_factory: Optional[DispatcherFactory] = None,
                 token_tracker: Optional[TokenUsageTracker] = None,
                 show_progress: bool = False):
        """
        Args:
            store: Where queued jobs are kept. Defaults to an in-memory store.
            settings: Batching, timeout and budget settings
            dispatcher_factory: Builds a dispatcher for a submission. Defaults to
                ``AnnotationDispatcher.from_submission``.
            token_tracker: Accumulates token usage across all requests
            show_progress: Display tqdm progress bars while processing
        """
        self.store = store or InMemoryJobStore()
        self.settings = settings or AnnotatorConfig()
        self.token_tracker = token_tracker or TokenUsageTracker()
        self.dispatcher_factory = dispatcher_factory or self._default_dispatcher
        self.show_progress = show_progress

    def _default_dispatcher(self, submission: SubmissionConfig) -> AnnotationDispatcher:
        return AnnotationDispatcher.from_submission(submission, self.settings, self.token_tracker)

    def _sync_scheduler(self, dispatcher: AnnotationDispatcher) -> BatchScheduler:
        return BatchScheduler(dispatcher.dispatch,
                              batch_size=self.settings.sync_batch_size,
                              chunk_size=self.settings.chunk_size,
                              inter_batch_delay=self.settings.sync_inter_batch_delay)

    async def submit_labels(self, data: bytes, file_name: str,
                            config: SubmissionConfig) -> Dict[str, Any]:
        """
        Label every row of an uploaded CSV.

        The file is parsed before anything else so that bad input never creates
        a job. Files with more rows than ``sync_row_limit`` are queued.
        """
        if config.mode != AnnotationMode.LABELS:
            raise ValueError("submit_labels requires labels mode")
        table = load_table_from_upload(data, file_name)

        if table.total_rows > self.settings.sync_row_limit:
            job = self.store.create(Job(
                id=new_job_id(),
                file_name=file_name,
                total_units=table.total_rows,
                labels=list(config.labels),
                prompt=config.prompt,
                model=config.model,
                provider=config.provider,
                file_data=base64.b64encode(data).decode('ascii'),
                mode=AnnotationMode.LABELS,
            ))
            logger.info(f"Queued job {job.id} for {file_name} with {table.total_rows} rows")
            return {
                'success': True,
                'job_id': job.id,
                'total_rows': table.total_rows,
                'message': f"Job queued for background processing ({table.total_rows} rows)",
            }

        logger.info(f"Processing {table.total_rows} rows from {file_name} with model {config.model}")
        dispatcher = self.dispatcher_factory(config)
        units = build_row_units(table, file_name)
        outcome = await self._sync_scheduler(dispatcher).run(units, show_progress=self.show_progress)

        csv_text = assemble_labeled_csv(table.header, outcome.results)
        return {
            'success': True,
            'processed_rows': len(outcome.results),
            'download_data': encode_artifact(csv_text),
            'filename': labeled_file_name(file_name),
            'summary': (f"Successfully labeled {len(outcome.results)} rows "
                        f"with {len(config.labels)} categories"),
            'preview_data': label_preview(outcome.results),
        }

    async def extract_quotes(self, files: Sequence[Tuple[str, bytes]],
                             config: SubmissionConfig) -> Dict[str, Any]:
        """Extract quotes from ``(file_name, data)`` uploads into one CSV."""
        if config.mode != AnnotationMode.QUOTES:
            raise ValueError("extract_quotes requires quotes mode")
        if not files:
            raise EmptyInputError("No files provided for quote extraction")

        texts = [(name, decode_upload(data, name)) for name, data in files]
        units = build_chunk_units(texts,
                                  max_chars=self.settings.chunk_max_chars,
                                  min_chars=self.settings.chunk_min_chars)
        logger.info(f"Extracting quotes from {len(files)} files ({len(units)} chunks) "
                    f"using model: {config.model}")

        results = []
        if units:
            dispatcher = self.dispatcher_factory(config)
            outcome = await self._sync_scheduler(dispatcher).run(units, show_progress=self.show_progress)
            results = outcome.results

        total_quotes = count_quotes(results)
        csv_text = assemble_quotes_csv(results, config.metadata_fields)
        logger.info(f"Successfully extracted {total_quotes} quotes")
        return {
            'success': True,
            'extracted_quotes': total_quotes,
            'download_data': encode_artifact(csv_text),
            'filename': QUOTES_FILE_NAME,
            'summary': f"Extracted {total_quotes} quotes from {len(files)} file(s)",
            'preview_data': quote_preview(results),
        }

    def _submission_for(self, job: Job, credential: Optional[str]) -> SubmissionConfig:
        return SubmissionConfig(mode=job.mode, labels=job.labels, prompt=job.prompt,
                                model=job.model, provider=job.provider, credential=credential)

    async def process_invocation(self, job_id: str,
                                 credential: Optional[str] = None,
                                 budget_seconds: Optional[float] = None,
                                 max_units: Optional[int] = None) -> Job:
        """
        Advance a queued job as far as one invocation allows.

        Progress is written after every chunk, so a later invocation resumes
        from ``processed_units``. Terminal jobs are returned unchanged.

        Args:
            job_id: Job to advance
            credential: Provider API key; falls back to the provider's env var
            budget_seconds: Wall-clock budget; defaults to ``invocation_budget``
            max_units: Units this invocation may process; defaults to
                ``max_units_per_invocation``

        Returns:
            The job as stored after this invocation
        """
        job = self.store.get(job_id)
        if job.status.is_terminal:
            logger.info(f"Job {job_id} is already {job.status.value}")
            return job

        if budget_seconds is None:
            budget_seconds = self.settings.invocation_budget
        if max_units is None:
            max_units = self.settings.max_units_per_invocation

        try:
            changes: Dict[str, Any] = {'status': JobStatus.PROCESSING}
            if job.started_at is None:
                changes['started_at'] = utcnow()
            job = self.store.update(job_id, **changes)
            logger.info(f"Processing job {job_id}: {job.processed_units}/{job.total_units} rows done")

            table = load_table_from_upload(base64.b64decode(job.file_data), job.file_name)
            if table.total_rows != job.total_units:
                raise JobStateError(f"Job {job_id} expects {job.total_units} rows, "
                                    f"file has {table.total_rows}")
            units = build_row_units(table, job.file_name)
            dispatcher = self.dispatcher_factory(self._submission_for(job, credential))
            scheduler = BatchScheduler(dispatcher.dispatch,
                                       batch_size=self.settings.batch_size,
                                       chunk_size=self.settings.chunk_size,
                                       inter_batch_delay=self.settings.inter_batch_delay)
            earlier = list(job.partial_results)

            def persist(outcome: ScheduleOutcome) -> None:
                self.store.update(job_id,
                                  processed_units=outcome.next_offset,
                                  partial_results=earlier + [r.to_dict() for r in outcome.results])
                logger.info(f"Job {job_id}: Processed {outcome.next_offset}/{job.total_units} rows")

            outcome = await scheduler.run(units,
                                          start_offset=job.processed_units,
                                          budget_seconds=budget_seconds,
                                          max_units=max_units,
                                          on_chunk_complete=persist,
                                          show_progress=self.show_progress)

            if not outcome.complete:
                return self.store.get(job_id)

            results = [AnnotationResult.from_dict(d) for d in earlier] + outcome.results
            csv_text = assemble_labeled_csv(table.header, results)
            job = self.store.update(job_id,
                                    status=JobStatus.COMPLETED,
                                    processed_units=job.total_units,
                                    partial_results=[],
                                    result_data=encode_artifact(csv_text),
                                    completed_at=utcnow())
            logger.info(f"Job {job_id} completed successfully. Labeled {len(results)} rows.")
            return job

        except Exception as e:
            logger.error(f"Error processing job {job_id}: {e}")
            return self.store.update(job_id, status=JobStatus.FAILED, error_message=str(e))

    async def run_to_completion(self, job_id: str,
                                credential: Optional[str] = None,
                                budget_seconds: Optional[float] = None,
                                max_units: Optional[int] = None) -> Job:
        """Keep invoking ``process_invocation`` until the job is terminal."""
        invocations = 0
        while True:
            before = self.store.get(job_id).processed_units
            job = await self.process_invocation(job_id, credential, budget_seconds, max_units)
            invocations += 1
            if job.status.is_terminal:
                logger.info(f"Job {job_id} finished as {job.status.value} after {invocations} invocation(s)")
                return job
            if job.processed_units <= before:
                raise JobStateError(f"Job {job_id} made no progress in invocation {invocations}")

    def get_status(self, job_id: str) -> Dict[str, Any]:
        """Progress snapshot of a queued job. Raises JobNotFoundError."""
        job = self.store.get(job_id)
        completed = job.status == JobStatus.COMPLETED
        return {
            'id': job.id,
            'file_name': job.file_name,
            'status': job.status.value,
            'total_rows': job.total_units,
            'processed_rows': job.processed_units,
            'progress': job.progress_percent,
            'created_at': job.created_at,
            'started_at': job.started_at,
            'completed_at': job.completed_at,
            'error_message': job.error_message,
            'download_ready': completed and bool(job.result_data),
            'result_data': job.result_data if completed else None,
        }
