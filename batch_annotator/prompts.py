"""
Prompt templates for labeling and quote extraction.

Both modes render from one function over a tagged mode value, so the default
prompt a caller edits and the instructions the dispatcher appends never drift
apart.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, Union

from .models import DEFAULT_CONTEXT_WINDOW, DEFAULT_METADATA_FIELDS


@dataclass(frozen=True)
class LabelsMode:
    labels: Tuple[str, ...]


@dataclass(frozen=True)
class QuotesMode:
    context_window: int = DEFAULT_CONTEXT_WINDOW
    metadata_fields: Tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_METADATA_FIELDS))


PromptMode = Union[LabelsMode, QuotesMode]


def field_key(field_name: str) -> str:
    """JSON key used for a metadata column, e.g. 'Context Before' -> 'context_before'."""
    name = field_name.strip().lower()
    if name == 'filename':
        return 'file_name'
    return '_'.join(name.split())


_SCHEMA_EXAMPLES = {
    'file_name': 'example.txt',
    'quote': 'verbatim text that matches …',
    'context_before': '… Part of preceding text ',
    'context_after': ' following text …',
}


def output_schema(metadata_fields: Sequence[str]) -> Dict[str, str]:
    """Example object describing one extracted quote."""
    schema: Dict[str, str] = {}
    for name in metadata_fields:
        key = field_key(name)
        schema[key] = _SCHEMA_EXAMPLES.get(key, f"example {name.strip().lower()}")
    return schema


def _labels_prompt(labels: Sequence[str]) -> str:
    labels_string = f"[{', '.join(labels)}]"
    return f"""**Role:**
You are a meticulous data-labeling assistant.

**Labels:** {labels_string}

**Goal:**
For **each row** in the uploaded spreadsheet, assign **exactly one** label from the provided list that best captures the row's meaning.

**Labeling rules**
1. **Read the entire row.** Consider every cell, not just the first few.
2. **Pick only from the given labels.** Do **not** invent new ones.
3. **Tie-breakers:**
   • If more than one label seems to fit, choose the most specific.
   • If no label is perfect, choose the closest reasonable match.
4. **Be consistent.** Apply the same criteria across rows.
5. **Output format:** Return a single word or phrase, the chosen label, per row.

Begin labeling now."""


def _quotes_prompt(context_window: int, metadata_fields: Sequence[str]) -> str:
    schema = json.dumps(output_schema(metadata_fields), indent=2, ensure_ascii=False)
    return f"""**Role**
You are a precise research assistant whose task is to extract verbatim quotations from text files.

**Extraction criteria:** "<ADD YOUR CRITERIA HERE>"

**Context window:** ±{context_window} characters around each quote

**Rules**
1. **Scan every file completely.**
2. **Select a passage only if it clearly satisfies the extraction criteria.** Ignore marginal or repetitive text.
3. **Quote verbatim.** Do **not** correct grammar, spelling, or punctuation.
4. **Preserve minimal context.** Include just enough leading and trailing text (as defined by the window above) so the quote is understandable on its own.
5. **No commentary or extra lines.** Output exactly the schema below, nothing more, nothing less.

**Output format (one JSON object per quote)**
```json
{schema}
```"""


def render_default_prompt(mode: PromptMode) -> str:
    """Render the editable default prompt for a mode."""
    if isinstance(mode, LabelsMode):
        return _labels_prompt(mode.labels)
    if isinstance(mode, QuotesMode):
        return _quotes_prompt(mode.context_window, mode.metadata_fields)
    raise TypeError(f"Unknown prompt mode: {type(mode).__name__}")


def classification_system_prompt(prompt: str, labels: Sequence[str]) -> str:
    return (f"{prompt}\n\nAvailable labels: {', '.join(labels)}\n\n"
            "Respond with only the most appropriate label from the list above.")


def classification_user_prompt(row_text: str, max_chars: int = 4000) -> str:
    return f"Classify this data: {row_text[:max_chars]}"


def extraction_system_prompt(prompt: str, metadata_fields: Sequence[str] = ()) -> str:
    example: Dict[str, str] = {'quote': _SCHEMA_EXAMPLES['quote'], 'context': 'surrounding text'}
    for key, value in output_schema(metadata_fields).items():
        if key not in ('file_name', 'quote'):
            example[key] = value
    shape = json.dumps([example], ensure_ascii=False)
    return (f"{prompt}\n\nRespond with a JSON array of objects, each containing \"quote\" and "
            f"\"context\" fields. Only include meaningful quotes that match the criteria. "
            f"Do not add any commentary before or after the array. "
            f"If no relevant quotes are found, return an empty array.\n\nExample: {shape}")


def extraction_user_prompt(chunk: str) -> str:
    return f"Extract relevant quotes from this text:\n\n{chunk}"


def mode_from_values(labels: List[str], context_window: int,
                     metadata_fields: List[str], quotes: bool) -> PromptMode:
    if quotes:
        return QuotesMode(context_window=context_window, metadata_fields=tuple(metadata_fields))
    return LabelsMode(labels=tuple(labels))
