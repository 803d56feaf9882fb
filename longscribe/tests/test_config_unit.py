from dataclasses import replace

import pytest

from longscribe.internal_core.config import DEFAULT_API_BASE_URL, load_config
from longscribe.internal_core.errors import ConfigurationError

_ENV_NAMES = [
    "GROQ_API_KEY",
    "GROQ_API_BASE_URL",
    "ASR_MODEL",
    "ASR_LANGUAGE",
    "ASR_RESPONSE_FORMAT",
    "ASR_TIMESTAMP_GRANULARITIES",
    "ASR_TEMPERATURE",
    "ASR_PROMPT",
    "ASR_CHUNK_SEC",
    "ASR_OVERLAP_SEC",
    "ASR_RETRIES",
    "ASR_RETRY_DELAY_SEC",
    "ASR_API_TIMEOUT_SEC",
    "ASR_MAX_WORKERS",
    "SCRIBE_TMP_DIR",
    "SCRIBE_OUTPUT_DIR",
    "SCRIBE_SAVE_FILES",
    "SCRIBE_LOG_LEVEL",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_load_config_defaults(clean_env) -> None:
    cfg = load_config()

    assert cfg.GROQ_API_KEY == ""
    assert cfg.GROQ_API_BASE_URL == DEFAULT_API_BASE_URL == "https://api.groq.com/openai/v1/audio"
    assert cfg.ASR_MODEL == "whisper-large-v3-turbo"
    assert cfg.ASR_LANGUAGE == "en"
    assert cfg.ASR_RESPONSE_FORMAT == "verbose_json"
    assert cfg.ASR_TIMESTAMP_GRANULARITIES == ("segment", "word")
    assert cfg.ASR_TEMPERATURE == 0.0
    assert cfg.ASR_PROMPT is None
    assert cfg.chunk_length_ms == 600_000
    assert cfg.overlap_ms == 15_000
    assert cfg.ASR_RETRIES == 3
    assert cfg.ASR_RETRY_DELAY_SEC == 60.0
    assert cfg.ASR_API_TIMEOUT_SEC == 300.0
    assert cfg.ASR_MAX_WORKERS == 1
    assert cfg.SCRIBE_SAVE_FILES is False
    cfg.validate()


def test_load_config_reads_environment(clean_env) -> None:
    clean_env.setenv("GROQ_API_KEY", "gsk_test")
    clean_env.setenv("ASR_CHUNK_SEC", "120")
    clean_env.setenv("ASR_OVERLAP_SEC", "2.5")
    clean_env.setenv("ASR_TIMESTAMP_GRANULARITIES", "segment, word ,")
    clean_env.setenv("ASR_PROMPT", "  ")
    clean_env.setenv("ASR_MAX_WORKERS", "4")
    clean_env.setenv("SCRIBE_SAVE_FILES", "yes")

    cfg = load_config()

    assert cfg.GROQ_API_KEY == "gsk_test"
    assert cfg.chunk_length_ms == 120_000
    assert cfg.overlap_ms == 2_500
    assert cfg.ASR_TIMESTAMP_GRANULARITIES == ("segment", "word")
    assert cfg.ASR_PROMPT is None
    assert cfg.ASR_MAX_WORKERS == 4
    assert cfg.SCRIBE_SAVE_FILES is True
    assert cfg.as_log_dict()["GROQ_API_KEY"] == "***"


def test_with_job_options_overrides_and_ignores_none(clean_env) -> None:
    cfg = load_config()

    job_cfg = cfg.with_job_options(model="whisper-large-v3", chunk_length_sec=300, overlap_sec=None, max_workers=2)

    assert job_cfg.ASR_MODEL == "whisper-large-v3"
    assert job_cfg.chunk_length_ms == 300_000
    assert job_cfg.overlap_ms == 15_000
    assert job_cfg.ASR_MAX_WORKERS == 2
    assert cfg.ASR_MODEL == "whisper-large-v3-turbo"
    assert cfg.with_job_options() is cfg


def test_with_job_options_rejects_unknown_option(clean_env) -> None:
    with pytest.raises(ConfigurationError) as exc:
        load_config().with_job_options(beam_size=5)

    assert exc.value.code == "UNKNOWN_OPTION"


@pytest.mark.parametrize(
    "overrides",
    [
        {"ASR_CHUNK_SEC": 15.0, "ASR_OVERLAP_SEC": 15.0},
        {"ASR_CHUNK_SEC": 0.0},
        {"ASR_OVERLAP_SEC": -1.0},
        {"ASR_RETRIES": -1},
        {"ASR_MAX_WORKERS": 0},
        {"ASR_API_TIMEOUT_SEC": 0.0},
        {"ASR_MODEL": ""},
    ],
)
def test_validate_rejects_unusable_settings(clean_env, overrides) -> None:
    cfg = replace(load_config(), **overrides)

    with pytest.raises(ConfigurationError) as exc:
        cfg.validate()

    assert exc.value.stage == "configuring"


def test_validate_accepts_unknown_model_with_warning(clean_env, caplog) -> None:
    cfg = load_config().with_job_options(model="some-future-model")

    with caplog.at_level("WARNING"):
        cfg.validate()

    assert "some-future-model" in caplog.text


def test_transcription_params_from_config(clean_env) -> None:
    params = load_config().with_job_options(prompt="Acme Corp", temperature=0.2, language="de").transcription_params()

    assert params.model == "whisper-large-v3-turbo"
    assert params.language == "de"
    assert params.prompt == "Acme Corp"
    assert params.temperature == 0.2
    assert params.timestamp_granularities == ["segment", "word"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("word", ("word",)),
        ("segment, word", ("segment", "word")),
        (["word"], ("word",)),
    ],
)
def test_with_job_options_accepts_single_granularity_string(clean_env, value, expected) -> None:
    cfg = load_config().with_job_options(timestamp_granularities=value)

    cfg.validate()
    assert cfg.ASR_TIMESTAMP_GRANULARITIES == expected
    assert cfg.transcription_params().timestamp_granularities == list(expected)


@pytest.mark.parametrize("value", ["sentence", ["segment", "char"], ""])
def test_validate_rejects_unsupported_granularities(clean_env, value) -> None:
    cfg = load_config().with_job_options(timestamp_granularities=value)

    with pytest.raises(ConfigurationError) as exc:
        cfg.validate()

    assert exc.value.stage == "configuring"


def test_with_job_options_coerces_string_values(clean_env) -> None:
    cfg = load_config().with_job_options(
        chunk_length_sec="300",
        overlap_sec="2.5",
        retries="5",
        max_workers="2",
        temperature="0.2",
        save_files="false",
    )

    cfg.validate()
    assert cfg.chunk_length_ms == 300_000
    assert cfg.overlap_ms == 2_500
    assert cfg.ASR_RETRIES == 5
    assert cfg.ASR_MAX_WORKERS == 2
    assert cfg.ASR_TEMPERATURE == 0.2
    assert cfg.SCRIBE_SAVE_FILES is False


def test_with_job_options_rejects_unparseable_value(clean_env) -> None:
    with pytest.raises(ConfigurationError) as exc:
        load_config().with_job_options(chunk_length_sec="ten minutes")

    assert exc.value.code == "INVALID_OPTION"
    assert exc.value.stage == "configuring"
