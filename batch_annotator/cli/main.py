#!/usr/bin/env python3
"""
Command line entry point for the batch annotator.

Usage:
    batch-annotator label reviews.csv --labels Positive Neutral Negative
    batch-annotator extract interview1.txt interview2.txt --context-window 100
    batch-annotator submit big.csv --labels Spam Ham --store mongodb
    batch-annotator process <job-id> --store mongodb --until-done
    batch-annotator status <job-id> --store mongodb
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from ..annotate import decode_artifact
from ..config import AnnotatorConfig
from ..database import InMemoryJobStore, JobStore, MongoJobStore
from ..exceptions import AnnotatorBaseError, ConfigurationError
from ..jobs import JobService
from ..llm_core import ModelConfig, SUPPORTED_PROVIDERS
from ..models import (DEFAULT_CONTEXT_WINDOW, DEFAULT_METADATA_FIELDS, AnnotationMode, JobStatus,
                      SubmissionConfig)
from ..parsing import labeled_file_name

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Disable httpx logging to avoid cluttering the output
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _add_model_arguments(parser: argparse.ArgumentParser, settings: AnnotatorConfig):
    parser.add_argument(
        '--provider',
        type=str,
        default=settings.default_provider,
        choices=list(SUPPORTED_PROVIDERS),
        help=f'LLM provider to use (default: {settings.default_provider})'
    )
    parser.add_argument(
        '--model',
        type=str,
        default=settings.default_model,
        help=f'Model name to use (default: {settings.default_model})'
    )
    parser.add_argument(
        '--api-key',
        type=str,
        help='Provider API key (falls back to the provider environment variable)'
    )
    parser.add_argument(
        '--prompt',
        type=str,
        default='',
        help='Instructions for the model (a default prompt is generated when omitted)'
    )


def build_parser(settings: AnnotatorConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='batch-annotator',
        description="Label spreadsheet rows or extract quotes from text files with an LLM",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        '--store',
        choices=['memory', 'mongodb'],
        default='memory',
        help='Where queued jobs are kept (default: memory, which finishes large labeling\n'
             'jobs in the same process; submit, process, status and jobs need mongodb)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default='annotations',
        help='Directory for downloaded results (default: annotations)'
    )
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--no-progress', action='store_true', help='Hide progress bars')

    subparsers = parser.add_subparsers(dest='command', required=True)

    label = subparsers.add_parser('label', help='Label a CSV file (queued when it is large)')
    label.add_argument('file', type=str, help='Path to the CSV file')
    label.add_argument('--labels', type=str, nargs='+', required=True, help='Label set')
    label.add_argument('--until-done', action='store_true',
                       help='Process a queued job to completion in this process')
    _add_model_arguments(label, settings)

    submit = subparsers.add_parser('submit', help='Queue a CSV file as a background job')
    submit.add_argument('file', type=str, help='Path to the CSV file')
    submit.add_argument('--labels', type=str, nargs='+', required=True, help='Label set')
    _add_model_arguments(submit, settings)

    extract = subparsers.add_parser('extract', help='Extract quotes from text files')
    extract.add_argument('files', type=str, nargs='+', help='Paths to UTF-8 text files')
    extract.add_argument('--context-window', type=int, default=DEFAULT_CONTEXT_WINDOW,
                         help=f'Characters of surrounding context on each side of a quote '
                              f'(default: {DEFAULT_CONTEXT_WINDOW})')
    extract.add_argument('--metadata', type=str, nargs='+', default=list(DEFAULT_METADATA_FIELDS),
                         help='Output columns (default: %(default)s)')
    _add_model_arguments(extract, settings)

    process = subparsers.add_parser('process', help='Advance a queued job')
    process.add_argument('job_id', type=str, help='Job identifier')
    process.add_argument('--api-key', type=str, help='Provider API key')
    process.add_argument('--budget', type=float, default=settings.invocation_budget,
                         help=f'Seconds per invocation (default: {settings.invocation_budget})')
    process.add_argument('--max-units', type=int, default=settings.max_units_per_invocation,
                         help=f'Rows per invocation (default: {settings.max_units_per_invocation})')
    process.add_argument('--until-done', action='store_true',
                         help='Keep invoking until the job completes or fails')

    status = subparsers.add_parser('status', help='Show the status of a queued job')
    status.add_argument('job_id', type=str, help='Job identifier')

    jobs = subparsers.add_parser('jobs', help='List queued jobs')
    jobs.add_argument('--status', type=str, choices=['pending', 'processing', 'completed', 'failed'])

    models = subparsers.add_parser('models', help='List configured models')
    models.add_argument('--provider', type=str, choices=list(SUPPORTED_PROVIDERS), default='openai')

    return parser


def make_store(kind: str) -> JobStore:
    if kind == 'mongodb':
        return MongoJobStore()
    return InMemoryJobStore()


def write_artifact(output_dir: str, file_name: str, data: str) -> Path:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / file_name
    path.write_text(decode_artifact(data), encoding='utf-8')
    return path


def print_status(status: Dict[str, Any]):
    print(f"Job:       {status['id']}")
    print(f"File:      {status['file_name']}")
    print(f"Status:    {status['status']}")
    print(f"Progress:  {status['processed_rows']}/{status['total_rows']} rows ({status['progress']}%)")
    if status['started_at']:
        print(f"Started:   {status['started_at']}")
    if status['completed_at']:
        print(f"Completed: {status['completed_at']}")
    if status['error_message']:
        print(f"Error:     {status['error_message']}")


def print_preview(preview):
    for item in preview:
        print("  " + ", ".join(f"{k}: {v}" for k, v in item.items()))


async def _finish_job(service: JobService, job_id: str, args) -> Optional[Path]:
    job = await service.run_to_completion(job_id, credential=getattr(args, 'api_key', None),
                                          budget_seconds=getattr(args, 'budget', None),
                                          max_units=getattr(args, 'max_units', None))
    status = service.get_status(job.id)
    print_status(status)
    if status['download_ready']:
        path = write_artifact(args.output_dir, labeled_file_name(job.file_name),
                              status['result_data'])
        print(f"\nResults saved to: {path}")
        return path
    return None


PERSISTENT_STORE_COMMANDS = ('submit', 'process', 'status', 'jobs')


async def run_command(args, service: JobService) -> int:
    if args.store == 'memory' and args.command in PERSISTENT_STORE_COMMANDS:
        raise ConfigurationError(
            f"'{args.command}' needs a job store that outlives this process; rerun with --store mongodb")

    if args.command in ('label', 'submit'):
        data = Path(args.file).read_bytes()
        config = SubmissionConfig(mode=AnnotationMode.LABELS, labels=args.labels, prompt=args.prompt,
                                  model=args.model, provider=args.provider, credential=args.api_key)
        if args.command == 'submit':
            # Force the queued path regardless of row count
            service.settings.sync_row_limit = 0
        response = await service.submit_labels(data, Path(args.file).name, config)

        if 'job_id' in response:
            print(response['message'])
            print(f"Job ID: {response['job_id']}")
            # Jobs in the in-memory store are gone once this process exits
            if getattr(args, 'until_done', False) or args.store == 'memory':
                await _finish_job(service, response['job_id'], args)
            return 0

        print(response['summary'])
        print_preview(response['preview_data'])
        path = write_artifact(args.output_dir, response['filename'], response['download_data'])
        print(f"\nResults saved to: {path}")
        return 0

    if args.command == 'extract':
        files = [(Path(f).name, Path(f).read_bytes()) for f in args.files]
        config = SubmissionConfig(mode=AnnotationMode.QUOTES, prompt=args.prompt, model=args.model,
                                  provider=args.provider, credential=args.api_key,
                                  context_window=args.context_window, metadata_fields=args.metadata)
        response = await service.extract_quotes(files, config)
        print(response['summary'])
        print_preview(response['preview_data'])
        path = write_artifact(args.output_dir, response['filename'], response['download_data'])
        print(f"\nResults saved to: {path}")
        return 0

    if args.command == 'process':
        if args.until_done:
            await _finish_job(service, args.job_id, args)
        else:
            job = await service.process_invocation(args.job_id, credential=args.api_key,
                                                   budget_seconds=args.budget,
                                                   max_units=args.max_units)
            print_status(service.get_status(job.id))
        return 0

    if args.command == 'status':
        status = service.get_status(args.job_id)
        print_status(status)
        if status['download_ready']:
            path = write_artifact(args.output_dir, labeled_file_name(status["file_name"]),
                                  status['result_data'])
            print(f"\nResults saved to: {path}")
        return 0

    if args.command == 'jobs':
        status_filter = JobStatus(args.status) if args.status else None
        for job in service.store.list_jobs(status_filter):
            print(f"{job.id}  {job.status.value:<10}  {job.processed_units}/{job.total_units}  {job.file_name}")
        return 0

    if args.command == 'models':
        for model in ModelConfig().get_models(args.provider):
            print(f"{model['id']:<28} {model.get('name', '')}")
        return 0

    return 1


def main(argv=None):
    settings = AnnotatorConfig()
    args = build_parser(settings).parse_args(argv)
    configure_logging(args.verbose)

    service = JobService(store=make_store(args.store), settings=settings,
                         show_progress=not args.no_progress)
    try:
        exit_code = asyncio.run(run_command(args, service))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        sys.exit(1)
    except (AnnotatorBaseError, OSError, ValueError) as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)

    if service.token_tracker.records:
        print("\n" + service.token_tracker.format_summary())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
