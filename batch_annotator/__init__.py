from .jobs import JobService
from .annotate import AnnotationDispatcher, BatchScheduler
from .llm_core import LLM, TokenUsageTracker
from .database import InMemoryJobStore, MongoJobStore
from .config import AnnotatorConfig
from .models import (
    AnnotationMode,
    AnnotationResult,
    ExtractedQuote,
    Job,
    JobStatus,
    SubmissionConfig,
    WorkUnit
)

# Import custom exceptions
from .exceptions import (
    AnnotatorBaseError,
    ConfigurationError,
    MissingAPIKeyError,
    InvalidProviderError,
    InputError,
    ParseError,
    ConversionRequiredError,
    EmptyInputError,
    ProcessingError,
    ModelInitializationError,
    APICallError,
    ResponseParsingError,
    BatchProcessingError,
    JobError,
    JobNotFoundError,
    JobStateError,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseOperationError
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    'JobService',
    'AnnotationDispatcher',
    'BatchScheduler',
    'LLM',
    'TokenUsageTracker',
    'InMemoryJobStore',
    'MongoJobStore',
    'AnnotatorConfig',

    # Data model
    'AnnotationMode',
    'AnnotationResult',
    'ExtractedQuote',
    'Job',
    'JobStatus',
    'SubmissionConfig',
    'WorkUnit',

    # Exceptions
    'AnnotatorBaseError',
    'ConfigurationError',
    'MissingAPIKeyError',
    'InvalidProviderError',
    'InputError',
    'ParseError',
    'ConversionRequiredError',
    'EmptyInputError',
    'ProcessingError',
    'ModelInitializationError',
    'APICallError',
    'ResponseParsingError',
    'BatchProcessingError',
    'JobError',
    'JobNotFoundError',
    'JobStateError',
    'DatabaseError',
    'DatabaseConnectionError',
    'DatabaseOperationError'
]
