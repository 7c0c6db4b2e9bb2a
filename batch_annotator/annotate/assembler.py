"""
Assembly of annotation results into the downloadable CSV artifact.

Results arrive in completion order; they are always re-sorted by unit index
before any row is written.
"""

import base64
import logging
from typing import Any, Dict, Iterable, List, Sequence

from ..models import AnnotationResult
from ..parsing import display_row_number
from ..prompts import field_key

logger = logging.getLogger(__name__)

LABEL_COLUMN = 'Label'
QUOTES_FILE_NAME = 'extracted_quotes.csv'
PREVIEW_ROWS = 10
PREVIEW_CHARS = 100

_SPECIAL_CHARS = (',', '"', '\n', '\r')


def escape_csv_value(value: Any) -> str:
    """Quote a field when it holds a delimiter, quote, line break or edge whitespace."""
    value = '' if value is None else str(value)
    if any(c in value for c in _SPECIAL_CHARS) or value.strip() != value:
        escaped = value.replace('"', '""')
        return f'"{escaped}"'
    return value


def format_csv_row(fields: Iterable[Any]) -> str:
    return ','.join(escape_csv_value(f) for f in fields)


def order_results(results: Iterable[AnnotationResult]) -> List[AnnotationResult]:
    return sorted(results, key=lambda r: r.unit_index)


def assemble_labeled_csv(header: Sequence[str], results: Iterable[AnnotationResult]) -> str:
    """Original header plus a Label column, one row per result in input order."""
    lines = [format_csv_row([*header, LABEL_COLUMN])]
    for result in order_results(results):
        lines.append(format_csv_row([*result.original_payload, result.label]))
    return '\n'.join(lines)


def _quote_field(field_name: str, source_name: str, quote) -> str:
    key = field_key(field_name)
    if key == 'file_name':
        return source_name
    if key == 'quote':
        return quote.quote
    if key == 'context':
        return quote.context
    extras = quote.extras()
    if key in extras and extras[key] is not None:
        return str(extras[key])
    if key in ('context_before', 'context_after'):
        return quote.context
    return ''


def assemble_quotes_csv(results: Iterable[AnnotationResult], metadata_fields: Sequence[str]) -> str:
    """One row per extracted quote with a column per configured metadata field."""
    lines = [format_csv_row(metadata_fields)]
    for result in order_results(results):
        for quote in result.quotes:
            lines.append(format_csv_row(
                _quote_field(name, result.source_name, quote) for name in metadata_fields))
    return '\n'.join(lines)


def count_quotes(results: Iterable[AnnotationResult]) -> int:
    return sum(len(r.quotes) for r in results)


def encode_artifact(csv_text: str) -> str:
    """Base64 of the UTF-8 CSV so the artifact survives a JSON round trip."""
    return base64.b64encode(csv_text.encode('utf-8')).decode('ascii')


def decode_artifact(data: str) -> str:
    return base64.b64decode(data).decode('utf-8')


def label_preview(results: Iterable[AnnotationResult], limit: int = PREVIEW_ROWS) -> List[Dict[str, Any]]:
    preview = []
    for result in order_results(results)[:limit]:
        original = ' | '.join(result.original_payload)
        if len(original) > PREVIEW_CHARS:
            original = original[:PREVIEW_CHARS] + '...'
        preview.append({
            'row': display_row_number(result.unit_index),
            'original': original,
            'label': result.label,
        })
    return preview


def quote_preview(results: Iterable[AnnotationResult], limit: int = PREVIEW_ROWS) -> List[Dict[str, Any]]:
    preview = []
    for result in order_results(results):
        for quote in result.quotes:
            if len(preview) >= limit:
                return preview
            preview.append({'source': result.source_name, 'quote': quote.quote,
                            'context': quote.context})
    return preview
