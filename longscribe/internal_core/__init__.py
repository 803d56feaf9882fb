from .audit import AuditTrailObserver, CompositeObserver, JobObserver, LoggingObserver, NullObserver
from .config import TranscriberConfig, load_config
from .errors import (
    AudioToolError,
    ConfigurationError,
    ExtractionError,
    PermanentAPIError,
    ResultSaveError,
    TranscriptionError,
    TranscriptionJobError,
    TransientAPIError,
    UnexpectedError,
)

__all__ = [
    "AudioToolError",
    "AuditTrailObserver",
    "CompositeObserver",
    "ConfigurationError",
    "ExtractionError",
    "JobObserver",
    "LoggingObserver",
    "NullObserver",
    "PermanentAPIError",
    "ResultSaveError",
    "TranscriberConfig",
    "TranscriptionError",
    "TranscriptionJobError",
    "TransientAPIError",
    "UnexpectedError",
    "load_config",
]
