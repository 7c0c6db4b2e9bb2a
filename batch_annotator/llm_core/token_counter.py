"""Token usage tracking and aggregation for completion calls."""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


@dataclass
class TokenUsageRecord:
    """Single token usage record."""
    timestamp: datetime
    model: str
    operation: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    metadata: Dict[str, Any] = field(default_factory=dict)


class TokenUsageTracker:
    """Tracks and aggregates token usage across multiple API calls."""

    def __init__(self, verbose: bool = False):
        """Initialize the token usage tracker.

        Args:
            verbose: If True, log every call's usage. If False, silent tracking.
        """
        self.records: List[TokenUsageRecord] = []
        self.operation_totals: Dict[str, Dict[str, int]] = {}
        self.session_start = datetime.now()
        self.verbose = verbose

    def add_usage(
        self,
        token_info: Dict[str, Any],
        model: str = "unknown",
        operation: str = "api_call",
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add a token usage record.

        Args:
            token_info: Dictionary with token counts
            model: Model name
            operation: Operation description ('classify' or 'extract')
            metadata: Additional metadata such as the unit index
        """
        if not token_info:
            return

        record = TokenUsageRecord(
            timestamp=datetime.now(),
            model=model,
            operation=operation,
            input_tokens=token_info.get('input_tokens', 0),
            output_tokens=token_info.get('output_tokens', 0),
            total_tokens=token_info.get('total_tokens', 0),
            metadata=metadata or {}
        )
        self.records.append(record)

        totals = self.operation_totals.setdefault(record.operation, {
            'input_tokens': 0,
            'output_tokens': 0,
            'total_tokens': 0,
            'call_count': 0
        })
        totals['input_tokens'] += record.input_tokens
        totals['output_tokens'] += record.output_tokens
        totals['total_tokens'] += record.total_tokens
        totals['call_count'] += 1

        if self.verbose:
            logger.info(f"Token Usage [{model}] - {operation}: Input={record.input_tokens}, "
                        f"Output={record.output_tokens}, Total={record.total_tokens}")

    def get_summary(self, include_details: bool = False) -> Dict[str, Any]:
        """Get a summary of token usage."""
        total_tokens = sum(r.total_tokens for r in self.records)
        summary = {
            'session_duration_seconds': (datetime.now() - self.session_start).total_seconds(),
            'total_calls': len(self.records),
            'total_input_tokens': sum(r.input_tokens for r in self.records),
            'total_output_tokens': sum(r.output_tokens for r in self.records),
            'total_tokens': total_tokens,
            'average_tokens_per_call': total_tokens / len(self.records) if self.records else 0
        }
        if include_details:
            summary['by_operation'] = self.operation_totals
        return summary

    def format_summary(self) -> str:
        """Human-readable one-block summary."""
        summary = self.get_summary()
        return "\n".join([
            "=" * 60,
            "TOKEN USAGE SUMMARY",
            "=" * 60,
            f"Total API Calls: {summary['total_calls']}",
            f"Total Input:     {summary['total_input_tokens']:,}",
            f"Total Output:    {summary['total_output_tokens']:,}",
            f"Total Combined:  {summary['total_tokens']:,}",
            f"Avg per Call:    {summary['average_tokens_per_call']:.0f}",
            "=" * 60,
        ])
