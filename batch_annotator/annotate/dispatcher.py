"""
Per-unit dispatch to the completion endpoint.

Each call produces exactly one AnnotationResult. Failures of a single unit are
logged and converted according to the mode's policy:

- labels: fall back to the first label when the reply matches no label or the
  request fails
- quotes: drop the chunk's contribution when the reply is not a JSON array or
  the request fails
"""

import json
import logging
import re
from typing import List, Optional, Sequence, Tuple

from ..config import AnnotatorConfig
from ..exceptions import ProcessingError
from ..llm_core import LLM, TokenUsageTracker, make_api_call
from ..models import AnnotationMode, AnnotationResult, ExtractedQuote, SubmissionConfig, WorkUnit
from ..parsing import display_row_number
from .. import prompts

logger = logging.getLogger(__name__)

CLASSIFICATION_MAX_TOKENS = 50
EXTRACTION_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.1
MIN_QUOTE_LENGTH = 10

_JSON_ARRAY = re.compile(r'\[[\s\S]*\]')


def select_label(reply: str, labels: Sequence[str]) -> str:
    """
    Fallback-label policy for classification replies.

    Returns the first label (in list order) contained case-insensitively in the
    reply, or the first label when none is.
    """
    lowered = reply.lower()
    for label in labels:
        if label.lower() in lowered:
            return label
    return labels[0]


def parse_quote_response(reply: str) -> Tuple[ExtractedQuote, ...]:
    """
    Drop-on-malformed policy for extraction replies.

    The bracketed array is pulled out of the reply (models often wrap it in a
    fenced code block). Anything that is not a JSON array yields no quotes;
    entries without a string ``quote`` longer than 10 characters are skipped.
    """
    match = _JSON_ARRAY.search(reply)
    if not match:
        logger.info("Reply contains no JSON array, skipping chunk")
        return ()
    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.info("Failed to parse quotes JSON, skipping chunk")
        return ()
    if not isinstance(items, list):
        return ()

    quotes: List[ExtractedQuote] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        quote = item.get('quote')
        if not isinstance(quote, str) or len(quote) <= MIN_QUOTE_LENGTH:
            continue
        extras = {k: v for k, v in item.items() if k not in ('quote', 'context')}
        quotes.append(ExtractedQuote(quote=quote, context=item.get('context', ''), **extras))
    return tuple(quotes)


class AnnotationDispatcher:
    """Sends one work unit to the model and interprets the reply for its mode."""

    def __init__(self,
                 llm: object,
                 mode: AnnotationMode,
                 prompt: str,
                 labels: Sequence[str] = (),
                 metadata_fields: Sequence[str] = (),
                 model_name: str = "unknown",
                 timeout: Optional[float] = 30.0,
                 max_row_chars: int = 4000,
                 token_tracker: Optional[TokenUsageTracker] = None):
        if mode == AnnotationMode.LABELS and not labels:
            raise ValueError("Classification requires a non-empty label list")
        self.llm = llm
        self.mode = mode
        self.labels = tuple(labels)
        self.metadata_fields = tuple(metadata_fields)
        self.model_name = model_name
        self.timeout = timeout
        self.max_row_chars = max_row_chars
        self.token_tracker = token_tracker or TokenUsageTracker()

        if mode == AnnotationMode.LABELS:
            self.system_prompt = prompts.classification_system_prompt(prompt, self.labels)
        else:
            self.system_prompt = prompts.extraction_system_prompt(prompt, self.metadata_fields)

    @classmethod
    def from_submission(cls, submission: SubmissionConfig,
                        settings: Optional[AnnotatorConfig] = None,
                        token_tracker: Optional[TokenUsageTracker] = None) -> "AnnotationDispatcher":
        """Build a dispatcher and its chat client from caller parameters."""
        settings = settings or AnnotatorConfig()
        max_tokens = (CLASSIFICATION_MAX_TOKENS if submission.mode == AnnotationMode.LABELS
                      else EXTRACTION_MAX_TOKENS)
        llm = LLM(
            provider=submission.provider,
            model=submission.model,
            credential=submission.credential,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            max_tokens=max_tokens,
            temperature=DEFAULT_TEMPERATURE,
        ).get_llm()
        return cls(
            llm=llm,
            mode=submission.mode,
            prompt=submission.prompt or prompts.render_default_prompt(
                prompts.mode_from_values(submission.labels, submission.context_window,
                                         submission.metadata_fields,
                                         submission.mode == AnnotationMode.QUOTES)),
            labels=submission.labels,
            metadata_fields=submission.metadata_fields,
            model_name=submission.model,
            timeout=settings.request_timeout,
            max_row_chars=settings.max_row_chars,
            token_tracker=token_tracker,
        )

    async def _complete(self, user_prompt: str, unit: WorkUnit) -> str:
        reply, token_info = await make_api_call(self.llm, self.system_prompt, user_prompt,
                                                timeout=self.timeout)
        self.token_tracker.add_usage(token_info, model=self.model_name,
                                     operation=self.mode.value,
                                     metadata={'unit_index': unit.index})
        return reply

    async def classify(self, unit: WorkUnit) -> AnnotationResult:
        user_prompt = prompts.classification_user_prompt(unit.text, self.max_row_chars)
        try:
            reply = await self._complete(user_prompt, unit)
        except ProcessingError as e:
            logger.error(f"Error processing row {display_row_number(unit.index)}: {e}")
            return AnnotationResult(unit_index=unit.index, original_payload=unit.payload,
                                    output=self.labels[0], source_name=unit.source_name,
                                    failed=True)
        return AnnotationResult(unit_index=unit.index, original_payload=unit.payload,
                                output=select_label(reply, self.labels),
                                source_name=unit.source_name)

    async def extract(self, unit: WorkUnit) -> AnnotationResult:
        user_prompt = prompts.extraction_user_prompt(unit.text)
        try:
            reply = await self._complete(user_prompt, unit)
        except ProcessingError as e:
            logger.error(f"Error extracting quotes from {unit.source_name} chunk {unit.index}: {e}")
            return AnnotationResult(unit_index=unit.index, original_payload=unit.payload,
                                    output=(), source_name=unit.source_name, failed=True)
        return AnnotationResult(unit_index=unit.index, original_payload=unit.payload,
                                output=parse_quote_response(reply),
                                source_name=unit.source_name)

    async def dispatch(self, unit: WorkUnit) -> AnnotationResult:
        if self.mode == AnnotationMode.LABELS:
            return await self.classify(unit)
        return await self.extract(unit)
