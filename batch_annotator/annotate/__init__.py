from .dispatcher import AnnotationDispatcher, select_label, parse_quote_response
from .scheduler import BatchScheduler, ScheduleOutcome
from .assembler import (
    escape_csv_value,
    format_csv_row,
    order_results,
    assemble_labeled_csv,
    assemble_quotes_csv,
    encode_artifact,
    decode_artifact,
    label_preview,
    quote_preview,
    count_quotes,
    QUOTES_FILE_NAME,
)

__all__ = ['AnnotationDispatcher', 'select_label', 'parse_quote_response',
           'BatchScheduler', 'ScheduleOutcome', 'escape_csv_value', 'format_csv_row',
           'order_results', 'assemble_labeled_csv', 'assemble_quotes_csv',
           'encode_artifact', 'decode_artifact', 'label_preview', 'quote_preview',
           'count_quotes', 'QUOTES_FILE_NAME']
