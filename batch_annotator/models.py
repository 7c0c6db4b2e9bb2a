"""Data model shared by the parser, dispatcher, scheduler and job store."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_METADATA_FIELDS = ['Filename', 'Quote', 'Context Before', 'Context After']
DEFAULT_CONTEXT_WINDOW = 75


class AnnotationMode(str, Enum):
    LABELS = "labels"
    QUOTES = "quotes"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class WorkUnit:
    """One atomic item sent to the model: a spreadsheet row or a text chunk."""
    index: int
    payload: Union[Tuple[str, ...], str]
    source_name: str

    @property
    def text(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        return ' '.join(self.payload)


class ExtractedQuote(BaseModel):
    """A single quote returned by the model. Extra metadata keys are kept."""
    model_config = ConfigDict(extra='allow', frozen=True)

    quote: str
    context: str = ""

    @field_validator('context', mode='before')
    @classmethod
    def _coerce_context(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    def extras(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


@dataclass(frozen=True)
class AnnotationResult:
    """Outcome for exactly one WorkUnit."""
    unit_index: int
    original_payload: Union[Tuple[str, ...], str]
    output: Union[str, Tuple[ExtractedQuote, ...]]
    source_name: str = ""
    failed: bool = False

    @property
    def label(self) -> Optional[str]:
        return self.output if isinstance(self.output, str) else None

    @property
    def quotes(self) -> Tuple[ExtractedQuote, ...]:
        return () if isinstance(self.output, str) else self.output

    def to_dict(self) -> Dict[str, Any]:
        payload = self.original_payload
        if isinstance(self.output, str):
            output: Any = self.output
        else:
            output = [q.model_dump() for q in self.output]
        return {
            'unit_index': self.unit_index,
            'original_payload': payload if isinstance(payload, str) else list(payload),
            'output': output,
            'source_name': self.source_name,
            'failed': self.failed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationResult":
        payload = data['original_payload']
        output = data['output']
        if not isinstance(output, str):
            output = tuple(ExtractedQuote(**q) for q in output)
        return cls(
            unit_index=int(data['unit_index']),
            original_payload=payload if isinstance(payload, str) else tuple(payload),
            output=output,
            source_name=data.get('source_name', ''),
            failed=bool(data.get('failed', False)),
        )


class SubmissionConfig(BaseModel):
    """Caller-supplied parameters for one labeling or extraction request."""
    mode: AnnotationMode = AnnotationMode.LABELS
    labels: List[str] = Field(default_factory=list)
    prompt: str = ""
    model: str = "gpt-4o-mini"
    provider: str = "openai"
    context_window: int = DEFAULT_CONTEXT_WINDOW
    metadata_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_METADATA_FIELDS))
    credential: Optional[str] = Field(default=None, repr=False)

    @field_validator('labels')
    @classmethod
    def _strip_labels(cls, labels: List[str]) -> List[str]:
        cleaned = []
        for label in labels:
            label = label.strip()
            if label and label not in cleaned:
                cleaned.append(label)
        return cleaned

    @model_validator(mode='after')
    def _check_mode(self) -> "SubmissionConfig":
        if self.mode == AnnotationMode.LABELS and not self.labels:
            raise ValueError("labels mode requires at least one label")
        if self.context_window < 0:
            raise ValueError("context_window must be non-negative")
        return self


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """Durable record of a long-running annotation task."""
    id: str
    file_name: str
    total_units: int
    labels: List[str]
    prompt: str
    model: str
    file_data: str
    provider: str = "openai"
    mode: AnnotationMode = AnnotationMode.LABELS
    processed_units: int = 0
    status: JobStatus = JobStatus.PENDING
    partial_results: List[Dict[str, Any]] = field(default_factory=list)
    result_data: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def progress_percent(self) -> int:
        if self.total_units <= 0:
            return 0
        return round(self.processed_units / self.total_units * 100)

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc['status'] = self.status.value
        doc['mode'] = self.mode.value
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Job":
        data = {k: v for k, v in doc.items() if k in cls.__dataclass_fields__}
        data['status'] = JobStatus(data.get('status', JobStatus.PENDING.value))
        data['mode'] = AnnotationMode(data.get('mode', AnnotationMode.LABELS.value))
        return cls(**data)
