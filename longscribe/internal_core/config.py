from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Optional

from .contracts import TranscriptionParams
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.groq.com/openai/v1/audio"

SUPPORTED_MODELS = (
    "whisper-large-v3-turbo",
    "distil-whisper-large-v3-en",
    "whisper-large-v3",
)

TIMESTAMP_GRANULARITIES = ("segment", "word")

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}

# Per-job option name -> config field.
JOB_OPTION_FIELDS = {
    "chunk_length_sec": "ASR_CHUNK_SEC",
    "overlap_sec": "ASR_OVERLAP_SEC",
    "model": "ASR_MODEL",
    "language": "ASR_LANGUAGE",
    "response_format": "ASR_RESPONSE_FORMAT",
    "timestamp_granularities": "ASR_TIMESTAMP_GRANULARITIES",
    "temperature": "ASR_TEMPERATURE",
    "prompt": "ASR_PROMPT",
    "retries": "ASR_RETRIES",
    "retry_delay_sec": "ASR_RETRY_DELAY_SEC",
    "api_timeout_sec": "ASR_API_TIMEOUT_SEC",
    "max_workers": "ASR_MAX_WORKERS",
    "output_dir": "SCRIBE_OUTPUT_DIR",
    "save_files": "SCRIBE_SAVE_FILES",
}


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_opt_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return _as_str_tuple(value)


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(str(item).strip() for item in items if str(item).strip())


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _as_opt_str(value: Any) -> Optional[str]:
    text = str(value)
    return text if text.strip() else None


# Config field -> coercion for per-job overrides (CLI strings, JSON numbers, ...).
_OPTION_COERCERS: dict[str, Callable[[Any], Any]] = {
    "ASR_CHUNK_SEC": float,
    "ASR_OVERLAP_SEC": float,
    "ASR_MODEL": str,
    "ASR_LANGUAGE": str,
    "ASR_RESPONSE_FORMAT": str,
    "ASR_TIMESTAMP_GRANULARITIES": _as_str_tuple,
    "ASR_TEMPERATURE": float,
    "ASR_PROMPT": _as_opt_str,
    "ASR_RETRIES": int,
    "ASR_RETRY_DELAY_SEC": float,
    "ASR_API_TIMEOUT_SEC": float,
    "ASR_MAX_WORKERS": int,
    "SCRIBE_OUTPUT_DIR": str,
    "SCRIBE_SAVE_FILES": _as_bool,
}


@dataclass(frozen=True)
class TranscriberConfig:
    GROQ_API_KEY: str
    GROQ_API_BASE_URL: str
    ASR_MODEL: str
    ASR_LANGUAGE: str
    ASR_RESPONSE_FORMAT: str
    ASR_TIMESTAMP_GRANULARITIES: tuple[str, ...]
    ASR_TEMPERATURE: float
    ASR_PROMPT: Optional[str]
    ASR_CHUNK_SEC: float
    ASR_OVERLAP_SEC: float
    ASR_RETRIES: int
    ASR_RETRY_DELAY_SEC: float
    ASR_API_TIMEOUT_SEC: float
    ASR_MAX_WORKERS: int
    SCRIBE_TMP_DIR: str
    SCRIBE_OUTPUT_DIR: str
    SCRIBE_SAVE_FILES: bool
    SCRIBE_LOG_LEVEL: str

    @property
    def chunk_length_ms(self) -> int:
        return int(round(self.ASR_CHUNK_SEC * 1000))

    @property
    def overlap_ms(self) -> int:
        return int(round(self.ASR_OVERLAP_SEC * 1000))

    def tmp_dir_path(self) -> Path:
        return Path(self.SCRIBE_TMP_DIR).expanduser().resolve()

    def output_dir_path(self) -> Path:
        return Path(self.SCRIBE_OUTPUT_DIR).expanduser().resolve()

    def with_job_options(self, **options: Any) -> "TranscriberConfig":
        """Return a copy with per-job options (chunk_length_sec, model, ...) applied.

        None values are ignored so callers can pass optional CLI flags straight through.
        """
        changes: dict[str, Any] = {}
        for key, value in options.items():
            if value is None:
                continue
            field_name = JOB_OPTION_FIELDS.get(key)
            if field_name is None:
                raise ConfigurationError(f"unknown job option: {key}", code="UNKNOWN_OPTION")
            try:
                changes[field_name] = _OPTION_COERCERS[field_name](value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"invalid value for job option {key}: {value!r}", code="INVALID_OPTION") from e
        return replace(self, **changes) if changes else self

    def transcription_params(self) -> TranscriptionParams:
        return TranscriptionParams(
            model=self.ASR_MODEL,
            language=self.ASR_LANGUAGE,
            response_format=self.ASR_RESPONSE_FORMAT,
            timestamp_granularities=list(self.ASR_TIMESTAMP_GRANULARITIES),
            temperature=self.ASR_TEMPERATURE,
            prompt=self.ASR_PROMPT or None,
        )

    def validate(self) -> None:
        """Fail before any I/O when the settings cannot produce a job."""
        if self.ASR_CHUNK_SEC <= 0:
            raise ConfigurationError(f"chunk length must be positive, got {self.ASR_CHUNK_SEC}")
        if self.ASR_OVERLAP_SEC < 0:
            raise ConfigurationError(f"overlap must be >= 0, got {self.ASR_OVERLAP_SEC}")
        if self.chunk_length_ms <= self.overlap_ms:
            raise ConfigurationError(
                f"chunk length ({self.ASR_CHUNK_SEC}s) must be greater than overlap ({self.ASR_OVERLAP_SEC}s)"
            )
        if self.ASR_RETRIES < 0:
            raise ConfigurationError(f"retries must be >= 0, got {self.ASR_RETRIES}")
        if self.ASR_RETRY_DELAY_SEC < 0:
            raise ConfigurationError(f"retry delay must be >= 0, got {self.ASR_RETRY_DELAY_SEC}")
        if self.ASR_API_TIMEOUT_SEC <= 0:
            raise ConfigurationError(f"API timeout must be positive, got {self.ASR_API_TIMEOUT_SEC}")
        if self.ASR_MAX_WORKERS < 1:
            raise ConfigurationError(f"max workers must be >= 1, got {self.ASR_MAX_WORKERS}")
        if not self.ASR_TIMESTAMP_GRANULARITIES:
            raise ConfigurationError("timestamp granularities must not be empty")
        unknown = [g for g in self.ASR_TIMESTAMP_GRANULARITIES if g not in TIMESTAMP_GRANULARITIES]
        if unknown:
            raise ConfigurationError(
                f"unsupported timestamp granularities {unknown}; expected a subset of {list(TIMESTAMP_GRANULARITIES)}"
            )
        if not self.ASR_MODEL:
            raise ConfigurationError("model must not be empty")
        if self.ASR_MODEL not in SUPPORTED_MODELS:
            logger.warning("model=%s not in known models %s", self.ASR_MODEL, ", ".join(SUPPORTED_MODELS))

    def as_log_dict(self) -> dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["GROQ_API_KEY"] = "***" if self.GROQ_API_KEY else ""
        return out


def load_config() -> TranscriberConfig:
    return TranscriberConfig(
        GROQ_API_KEY=_getenv_str("GROQ_API_KEY", ""),
        GROQ_API_BASE_URL=_getenv_str("GROQ_API_BASE_URL", DEFAULT_API_BASE_URL),
        ASR_MODEL=_getenv_str("ASR_MODEL", "whisper-large-v3-turbo"),
        ASR_LANGUAGE=_getenv_str("ASR_LANGUAGE", "en"),
        ASR_RESPONSE_FORMAT=_getenv_str("ASR_RESPONSE_FORMAT", "verbose_json"),
        ASR_TIMESTAMP_GRANULARITIES=_getenv_list("ASR_TIMESTAMP_GRANULARITIES", ("segment", "word")),
        ASR_TEMPERATURE=_getenv_float("ASR_TEMPERATURE", 0.0),
        ASR_PROMPT=_getenv_opt_str("ASR_PROMPT"),
        ASR_CHUNK_SEC=_getenv_float("ASR_CHUNK_SEC", 600.0),
        ASR_OVERLAP_SEC=_getenv_float("ASR_OVERLAP_SEC", 15.0),
        ASR_RETRIES=_getenv_int("ASR_RETRIES", 3),
        ASR_RETRY_DELAY_SEC=_getenv_float("ASR_RETRY_DELAY_SEC", 60.0),
        ASR_API_TIMEOUT_SEC=_getenv_float("ASR_API_TIMEOUT_SEC", 300.0),
        ASR_MAX_WORKERS=_getenv_int("ASR_MAX_WORKERS", 1),
        SCRIBE_TMP_DIR=_getenv_str("SCRIBE_TMP_DIR", "./tmp"),
        SCRIBE_OUTPUT_DIR=_getenv_str("SCRIBE_OUTPUT_DIR", "./transcripts"),
        SCRIBE_SAVE_FILES=_getenv_bool("SCRIBE_SAVE_FILES", False),
        SCRIBE_LOG_LEVEL=_getenv_str("SCRIBE_LOG_LEVEL", "INFO"),
    )
