"""
Runtime configuration for the annotation pipeline.

Values are read from the environment (and a local ``.env`` file) with
defaults suitable for the OpenAI chat completion endpoint.
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class AnnotatorConfig:
    """Configuration class for batching, timeouts and invocation budgets."""

    def __init__(self, **overrides: Any):
        # Concurrent requests per batch on the queued path and the synchronous path
        self.batch_size = _env_int('ANNOTATOR_BATCH_SIZE', 10)
        self.sync_batch_size = _env_int('ANNOTATOR_SYNC_BATCH_SIZE', 5)
        # Units per progress write
        self.chunk_size = _env_int('ANNOTATOR_CHUNK_SIZE', 100)
        self.inter_batch_delay = _env_float('ANNOTATOR_INTER_BATCH_DELAY', 0.05)
        self.sync_inter_batch_delay = _env_float('ANNOTATOR_SYNC_INTER_BATCH_DELAY', 0.1)
        self.request_timeout = _env_float('ANNOTATOR_REQUEST_TIMEOUT', 30.0)
        self.max_retries = _env_int('ANNOTATOR_MAX_RETRIES', 2)
        # Wall-clock seconds one invocation may spend before yielding
        self.invocation_budget = _env_float('ANNOTATOR_INVOCATION_BUDGET', 240.0)
        self.max_units_per_invocation = _env_int('ANNOTATOR_MAX_UNITS_PER_INVOCATION', 500)
        # Larger labeling jobs are queued instead of answered inline
        self.sync_row_limit = _env_int('ANNOTATOR_SYNC_ROW_LIMIT', 100)
        self.max_row_chars = _env_int('ANNOTATOR_MAX_ROW_CHARS', 4000)
        self.chunk_max_chars = _env_int('ANNOTATOR_CHUNK_MAX_CHARS', 2000)
        self.chunk_min_chars = _env_int('ANNOTATOR_CHUNK_MIN_CHARS', 100)
        self.default_model = os.getenv('ANNOTATOR_DEFAULT_MODEL', 'gpt-4o-mini')
        self.default_provider = os.getenv('ANNOTATOR_DEFAULT_PROVIDER', 'openai')

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown configuration option: {key}")
            setattr(self, key, value)

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))

    def __repr__(self) -> str:
        return f"AnnotatorConfig({self.to_dict()})"
