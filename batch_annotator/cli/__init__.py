"""
Command Line Interface for the batch annotator.

Subcommands cover inline labeling and extraction, queued job submission,
invocation-by-invocation processing and status queries.
"""

from .main import main, build_parser, run_command

__all__ = ['main', 'build_parser', 'run_command']
