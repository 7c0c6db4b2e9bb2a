"""
Test cases for CSV escaping and artifact assembly
"""

import random
import pytest

from batch_annotator.annotate import (
    assemble_labeled_csv,
    assemble_quotes_csv,
    count_quotes,
    decode_artifact,
    encode_artifact,
    escape_csv_value,
    label_preview,
    quote_preview,
)
from batch_annotator.models import DEFAULT_METADATA_FIELDS, AnnotationResult, ExtractedQuote
from batch_annotator.parsing import parse_csv


def _labeled(index, row, label):
    return AnnotationResult(unit_index=index, original_payload=tuple(row), output=label)


class TestEscaping:
    """Test cases for escape_csv_value"""

    @pytest.mark.parametrize("value", ["plain", "123", "", "no-special_chars.here"])
    def test_safe_values_unchanged(self, value):
        assert escape_csv_value(value) == value
        assert escape_csv_value(escape_csv_value(value)) == value

    def test_quotes_doubled_and_wrapped(self):
        assert escape_csv_value('say "hi"') == '"say ""hi"""'

    @pytest.mark.parametrize("value", ["a,b", "line\nbreak", "carriage\rreturn", " padded", "padded "])
    def test_special_values_wrapped(self, value):
        escaped = escape_csv_value(value)
        assert escaped.startswith('"') and escaped.endswith('"')

    def test_none_is_empty(self):
        assert escape_csv_value(None) == ''


class TestLabeledCsv:
    """Test cases for assemble_labeled_csv"""

    def test_comments_scenario(self):
        """Original columns plus Label, one line per data row"""
        results = [
            _labeled(0, ['Alice', 'Great, thanks'], 'Positive'),
            _labeled(1, ['Bob', 'No comment'], 'Neutral'),
        ]
        csv_text = assemble_labeled_csv(['Name', 'Comment'], results)

        assert csv_text.split('\n') == [
            'Name,Comment,Label',
            'Alice,"Great, thanks",Positive',
            'Bob,No comment,Neutral',
        ]
        rows = parse_csv(csv_text)
        assert all(len(row) == 3 for row in rows)
        assert len(rows) - 1 == 2

    def test_completion_order_does_not_matter(self):
        """Shuffled results assemble to the same rows in input order"""
        results = [_labeled(i, [f'row {i}'], 'A' if i % 2 else 'B') for i in range(50)]
        expected = assemble_labeled_csv(['text'], results)

        shuffled = list(results)
        random.Random(7).shuffle(shuffled)
        assert assemble_labeled_csv(['text'], shuffled) == expected
        assert expected.split('\n')[1] == 'row 0,B'

    def test_preview(self):
        """Preview rows use spreadsheet numbering and truncate long content"""
        results = [_labeled(i, ['x' * 80, 'y' * 40], 'A') for i in range(12)]
        preview = label_preview(results)

        assert len(preview) == 10
        assert preview[0]['row'] == 2
        assert preview[0]['label'] == 'A'
        assert preview[0]['original'] == ('x' * 80 + ' | ' + 'y' * 40)[:100] + '...'


class TestQuotesCsv:
    """Test cases for assemble_quotes_csv"""

    def _results(self):
        return [
            AnnotationResult(unit_index=1, original_payload='chunk two', source_name='b.txt',
                             output=(ExtractedQuote(quote='second file quote here', context='ctx b',
                                                    context_before='before b'),)),
            AnnotationResult(unit_index=0, original_payload='chunk one', source_name='a.txt',
                             output=(ExtractedQuote(quote='first "quoted" words', context='ctx, a'),)),
            AnnotationResult(unit_index=2, original_payload='chunk three', source_name='c.txt',
                             output=(), failed=True),
        ]

    def test_default_fields(self):
        csv_text = assemble_quotes_csv(self._results(), DEFAULT_METADATA_FIELDS)
        rows = parse_csv(csv_text)

        assert rows[0] == DEFAULT_METADATA_FIELDS
        assert rows[1] == ['a.txt', 'first "quoted" words', 'ctx, a', 'ctx, a']
        assert rows[2] == ['b.txt', 'second file quote here', 'before b', 'ctx b']
        assert len(rows) == 3

    def test_custom_fields(self):
        csv_text = assemble_quotes_csv(self._results(), ['Quote', 'Context', 'Speaker'])
        assert csv_text.split('\n')[0] == 'Quote,Context,Speaker'
        assert parse_csv(csv_text)[1] == ['first "quoted" words', 'ctx, a', '']

    def test_count_and_preview(self):
        results = self._results()
        assert count_quotes(results) == 2
        preview = quote_preview(results, limit=1)
        assert preview == [{'source': 'a.txt', 'quote': 'first "quoted" words', 'context': 'ctx, a'}]


class TestArtifactEncoding:
    """Test cases for base64 artifacts"""

    def test_artifact_round_trip(self):
        csv_text = 'Name,Label\nZoë,Positive\n'
        encoded = encode_artifact(csv_text)
        assert encoded.isascii()
        assert decode_artifact(encoded) == csv_text
