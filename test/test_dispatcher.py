"""
Test cases for per-unit dispatch and the two reply policies
"""

import asyncio
import pytest
from unittest.mock import Mock, patch

from batch_annotator.annotate import AnnotationDispatcher, parse_quote_response, select_label
from batch_annotator.annotate.dispatcher import CLASSIFICATION_MAX_TOKENS, EXTRACTION_MAX_TOKENS
from batch_annotator.config import AnnotatorConfig
from batch_annotator.llm_core import TokenUsageTracker
from batch_annotator.models import AnnotationMode, SubmissionConfig, WorkUnit

LABELS = ['Positive', 'Neutral', 'Negative']


def _row(index, *fields):
    return WorkUnit(index=index, payload=tuple(fields), source_name='data.csv')


class TestSelectLabel:
    """Test cases for the fallback-label policy"""

    def test_exact_match(self):
        assert select_label('Neutral', LABELS) == 'Neutral'

    def test_case_insensitive_substring(self):
        assert select_label('The label is: negative.', LABELS) == 'Negative'

    def test_list_order_wins(self):
        """When several labels appear, the first in the label list is chosen"""
        assert select_label('negative or maybe positive', LABELS) == 'Positive'

    def test_fallback_to_first_label(self):
        assert select_label('I cannot decide', LABELS) == 'Positive'
        assert select_label('', ['Only']) == 'Only'


class TestParseQuoteResponse:
    """Test cases for the drop-on-malformed policy"""

    def test_plain_array(self):
        reply = '[{"quote": "We nearly ran out of money", "context": "in 2019"}]'
        quotes = parse_quote_response(reply)
        assert len(quotes) == 1
        assert quotes[0].quote == "We nearly ran out of money"
        assert quotes[0].context == "in 2019"

    def test_fenced_array(self):
        reply = 'Here you go:\n```json\n[{"quote": "The garage had no heating at all"}]\n```'
        quotes = parse_quote_response(reply)
        assert [q.quote for q in quotes] == ["The garage had no heating at all"]
        assert quotes[0].context == ""

    def test_malformed_json_dropped(self):
        assert parse_quote_response('[{"quote": "unterminated]') == ()

    def test_no_array(self):
        assert parse_quote_response('{"quote": "an object, not a list"}') == ()
        assert parse_quote_response('No quotes found.') == ()

    def test_short_and_invalid_items_skipped(self):
        reply = ('[{"quote": "too short"}, "a string", {"context": "no quote"},'
                 ' {"quote": 12345678901}, {"quote": "long enough to keep", "context": null}]')
        quotes = parse_quote_response(reply)
        assert [q.quote for q in quotes] == ["long enough to keep"]
        assert quotes[0].context == ""
        assert all(len(q.quote) > 10 for q in quotes)

    def test_length_counts_surrounding_whitespace(self):
        quotes = parse_quote_response('[{"quote": "abcdefghij ", "context": ""}, {"quote": " abcdefgh "}]')
        assert [q.quote for q in quotes] == ["abcdefghij "]

    def test_extra_fields_kept(self):
        reply = '[{"quote": "Pricing was the hard part", "context": "c", "speaker": "Ana"}]'
        quote = parse_quote_response(reply)[0]
        assert quote.extras() == {'speaker': 'Ana'}


class TestAnnotationDispatcher:
    """Test cases for AnnotationDispatcher"""

    def test_requires_labels(self, chat_model_factory):
        with pytest.raises(ValueError):
            AnnotationDispatcher(chat_model_factory(lambda text: 'x'), AnnotationMode.LABELS, "prompt")

    def test_classify(self, chat_model_factory):
        """One result per unit with a label from the label set"""
        llm = chat_model_factory(lambda text: 'Positive' if 'Great' in text else 'neutral')
        tracker = TokenUsageTracker()
        dispatcher = AnnotationDispatcher(llm, AnnotationMode.LABELS, "Rate the comment.",
                                          labels=LABELS, token_tracker=tracker)

        first = asyncio.run(dispatcher.dispatch(_row(0, 'Alice', 'Great, thanks')))
        second = asyncio.run(dispatcher.dispatch(_row(1, 'Bob', 'No comment')))

        assert (first.unit_index, first.label, first.failed) == (0, 'Positive', False)
        assert (second.unit_index, second.label) == (1, 'Neutral')
        assert second.original_payload == ('Bob', 'No comment')
        assert len(tracker.records) == 2
        assert tracker.operation_totals['labels']['total_tokens'] == 46

    def test_classify_sends_row_text(self, chat_model_factory):
        seen = []
        llm = chat_model_factory(lambda text: seen.append(text) or 'Neutral')
        dispatcher = AnnotationDispatcher(llm, AnnotationMode.LABELS, "p", labels=LABELS)

        asyncio.run(dispatcher.classify(_row(0, 'Alice', 'Great, thanks')))
        assert seen == ['Classify this data: Alice Great, thanks']

    def test_classify_timeout_uses_fallback(self, chat_model_factory):
        """A request that exceeds its timeout still yields a result"""
        async def slow(text):
            await asyncio.sleep(1)
            return 'Negative'

        dispatcher = AnnotationDispatcher(chat_model_factory(slow), AnnotationMode.LABELS, "p",
                                          labels=LABELS, timeout=0.01)
        result = asyncio.run(dispatcher.dispatch(_row(4, 'Carol', 'Slow one')))

        assert result.unit_index == 4
        assert result.label == 'Positive'
        assert result.failed is True

    def test_classify_provider_error_uses_fallback(self, chat_model_factory):
        def boom(text):
            raise RuntimeError("429 Too Many Requests")

        dispatcher = AnnotationDispatcher(chat_model_factory(boom), AnnotationMode.LABELS, "p",
                                          labels=LABELS)
        result = asyncio.run(dispatcher.dispatch(_row(0, 'x')))
        assert result.label in LABELS
        assert result.failed

    def test_extract(self, chat_model_factory):
        llm = chat_model_factory(lambda text: '[{"quote": "We worked out of a garage", "context": "early"}]')
        dispatcher = AnnotationDispatcher(llm, AnnotationMode.QUOTES, "Find quotes.")
        unit = WorkUnit(index=3, payload='some chunk of text', source_name='a.txt')

        result = asyncio.run(dispatcher.dispatch(unit))
        assert result.unit_index == 3
        assert result.source_name == 'a.txt'
        assert [q.quote for q in result.quotes] == ["We worked out of a garage"]

    def test_extract_malformed_reply(self, chat_model_factory):
        dispatcher = AnnotationDispatcher(chat_model_factory(lambda text: 'Sorry, no JSON today'),
                                          AnnotationMode.QUOTES, "Find quotes.")
        result = asyncio.run(dispatcher.dispatch(WorkUnit(index=0, payload='chunk', source_name='a.txt')))
        assert result.quotes == ()
        assert result.failed is False

    def test_extract_timeout_contributes_nothing(self, chat_model_factory):
        async def slow(text):
            await asyncio.sleep(1)
            return '[]'

        dispatcher = AnnotationDispatcher(chat_model_factory(slow), AnnotationMode.QUOTES, "p",
                                          timeout=0.01)
        result = asyncio.run(dispatcher.dispatch(WorkUnit(index=0, payload='chunk', source_name='a.txt')))
        assert result.quotes == ()
        assert result.failed is True

    @patch('batch_annotator.annotate.dispatcher.LLM')
    def test_from_submission_labels(self, mock_llm_class):
        """The chat client is built from the submission and settings"""
        mock_llm_class.return_value.get_llm.return_value = Mock()
        submission = SubmissionConfig(labels=['Spam', 'Ham'], model='gpt-4o', credential='sk-user')
        settings = AnnotatorConfig(request_timeout=12.0, max_retries=1)

        dispatcher = AnnotationDispatcher.from_submission(submission, settings)

        kwargs = mock_llm_class.call_args.kwargs
        assert kwargs['provider'] == 'openai'
        assert kwargs['model'] == 'gpt-4o'
        assert kwargs['credential'] == 'sk-user'
        assert kwargs['timeout'] == 12.0
        assert kwargs['max_retries'] == 1
        assert kwargs['max_tokens'] == CLASSIFICATION_MAX_TOKENS
        assert dispatcher.labels == ('Spam', 'Ham')
        # An empty prompt is replaced by the rendered default
        assert '**Labels:** [Spam, Ham]' in dispatcher.system_prompt

    @patch('batch_annotator.annotate.dispatcher.LLM')
    def test_from_submission_quotes(self, mock_llm_class):
        submission = SubmissionConfig(mode=AnnotationMode.QUOTES, prompt="Find quotes about hiring.")
        dispatcher = AnnotationDispatcher.from_submission(submission, AnnotatorConfig())

        assert mock_llm_class.call_args.kwargs['max_tokens'] == EXTRACTION_MAX_TOKENS
        assert dispatcher.system_prompt.startswith("Find quotes about hiring.")
        assert dispatcher.mode == AnnotationMode.QUOTES
