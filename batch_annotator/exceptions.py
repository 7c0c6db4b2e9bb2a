"""
Custom exceptions for the batch annotation pipeline.

This module provides specific exception classes for different error scenarios,
enabling better error handling and more informative error messages.
"""


class AnnotatorBaseError(Exception):
    """Base exception class for all annotation pipeline errors."""
    pass


# Configuration Errors
class ConfigurationError(AnnotatorBaseError):
    """Raised when there are configuration issues."""
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when no credential is supplied and none is set in the environment."""
    pass


class InvalidProviderError(ConfigurationError):
    """Raised when an unsupported provider is specified."""
    pass


# Input Errors (surfaced before any dispatch, no job is created)
class InputError(AnnotatorBaseError):
    """Base class for malformed, empty or unsupported uploads."""
    pass


class ParseError(InputError):
    """Raised when a CSV upload cannot be turned into header and data rows."""
    pass


class ConversionRequiredError(InputError):
    """Raised for binary spreadsheet uploads that must be converted to CSV first."""
    pass


class EmptyInputError(InputError):
    """Raised when an upload yields no work units at all."""
    pass


# Processing Errors
class ProcessingError(AnnotatorBaseError):
    """Base class for processing-related errors."""
    pass


class ModelInitializationError(ProcessingError):
    """Raised when LLM model initialization fails."""
    pass


class APICallError(ProcessingError):
    """Raised when a completion request fails or times out."""
    pass


class ResponseParsingError(ProcessingError):
    """Raised when a completion reply does not have the expected shape."""
    pass


class BatchProcessingError(ProcessingError):
    """Raised when a whole chunk fails outside per-unit error handling."""
    pass


# Job Errors
class JobError(AnnotatorBaseError):
    """Base class for job lifecycle errors."""
    pass


class JobNotFoundError(JobError):
    """Raised when a job id is unknown to the store."""
    pass


class JobStateError(JobError):
    """Raised on an illegal job status transition."""
    pass


# Database Errors
class DatabaseError(AnnotatorBaseError):
    """Base class for database-related errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""
    pass


class DatabaseOperationError(DatabaseError):
    """Raised when database operations fail."""
    pass
