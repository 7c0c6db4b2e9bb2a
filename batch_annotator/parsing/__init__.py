from .tabular_parser import (
    ParsedTable,
    parse_csv,
    decode_upload,
    load_table,
    load_table_from_upload,
    build_row_units,
    display_row_number,
    labeled_file_name,
    is_excel_file,
    CONVERSION_REQUIRED_MESSAGE,
)
from .chunk_planner import plan_chunks, split_paragraphs, build_chunk_units

__all__ = ['ParsedTable', 'parse_csv', 'decode_upload', 'load_table',
           'load_table_from_upload', 'build_row_units', 'display_row_number',
           'labeled_file_name', 'is_excel_file', 'CONVERSION_REQUIRED_MESSAGE',
           'plan_chunks', 'split_paragraphs', 'build_chunk_units']
