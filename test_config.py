"""Tests for configuration loading, environment overrides and logging setup."""

import logging

import pytest

from crashgenius.utils.config import Config
from crashgenius.utils.errors import ConfigurationError, ErrorType
from crashgenius.utils.logging import DEFAULT_FORMAT, ContextFilter, log_context, mask_secret, setup_logging, with_context


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = Config.load(str(tmp_path / "missing.yaml"))

    assert config.default_provider == "google"
    assert config.google.model_id == "gemini-3-pro-preview"
    assert config.google.api_key_env == "API_KEY"
    assert config.mistral.base_url == "https://api.mistral.ai/v1"
    assert config.http.max_retries == 0
    assert config.http.timeout == 120


def test_yaml_values_are_merged_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "default_provider: mistral\n"
        "mistral:\n"
        "  model_id: mistral-large-latest\n"
        "http:\n"
        "  timeout: 30\n",
        encoding="utf-8",
    )

    config = Config.load(str(path))

    assert config.default_provider == "mistral"
    assert config.mistral.model_id == "mistral-large-latest"
    assert config.mistral.base_url == "https://api.mistral.ai/v1"
    assert config.http.timeout == 30.0
    assert config.google.base_url == "https://generativelanguage.googleapis.com/v1beta"


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("google:\n  model_id: from-file\n", encoding="utf-8")
    monkeypatch.setenv("GOOGLE_MODEL_ID", "from-env")
    monkeypatch.setenv("HTTP_MAX_RETRIES", "2")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    config = Config.load(str(path))

    assert config.google.model_id == "from-env"
    assert config.http.max_retries == 2
    assert config.logging.level == "DEBUG"


@pytest.mark.parametrize("env, value", [
    ("CRASHGENIUS_DEFAULT_PROVIDER", "openai"),
    ("HTTP_TIMEOUT", "soon"),
    ("HTTP_TIMEOUT", "0"),
    ("HTTP_MAX_RETRIES", "-1"),
])
def test_invalid_values_raise_configuration_error(monkeypatch, env, value):
    monkeypatch.setenv(env, value)

    with pytest.raises(ConfigurationError) as exc_info:
        Config.defaults()
    assert exc_info.value.error_type is ErrorType.CONFIG_INVALID


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load(str(path))


def test_google_key_resolution(monkeypatch):
    config = Config.defaults()
    assert config.google.resolve_api_key() is None

    monkeypatch.setenv("GEMINI_API_KEY", "fallback")
    assert config.google.resolve_api_key() == "fallback"

    monkeypatch.setenv("API_KEY", "  primary  ")
    assert config.google.resolve_api_key() == "primary"


def test_mask_secret_never_reveals_key():
    assert mask_secret(None) == "<none>"
    assert mask_secret("short") == "****"
    masked = mask_secret("sk-abcdefghijklmnop")
    assert "abcdefghijklmnop" not in masked


def make_record():
    return logging.LogRecord("crashgenius.test", logging.INFO, __file__, 1, "hello", None, None)


def test_context_filter_adds_fields():
    context_filter = ContextFilter()

    with log_context(provider="mistral", session="abc"):
        record = make_record()
        assert context_filter.filter(record)

    assert record.provider == "mistral"
    assert record.session == "abc"
    assert record.context == " [provider=mistral session=abc]"
    assert logging.Formatter(DEFAULT_FORMAT).format(record).endswith("INFO [provider=mistral session=abc] - hello")


def test_context_filter_without_context_renders_nothing():
    record = make_record()
    ContextFilter().filter(record)

    assert record.context == ""
    assert logging.Formatter(DEFAULT_FORMAT).format(record).endswith("INFO - hello")


def test_nested_context_is_restored():
    context_filter = ContextFilter()

    with log_context(component="cli"):
        with log_context(provider="google"):
            inner = make_record()
            context_filter.filter(inner)
        outer = make_record()
        context_filter.filter(outer)

    assert inner.context == " [component=cli provider=google]"
    assert outer.context == " [component=cli]"


def test_setup_logging_sets_level(tmp_path):
    log_file = tmp_path / "logs" / "core.log"
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level

    try:
        setup_logging(level="DEBUG", log_file=str(log_file))
        logging.getLogger("crashgenius.test").debug("written")

        assert root.level == logging.DEBUG
        assert log_file.exists()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if handler not in previous_handlers:
                handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


@pytest.mark.asyncio
async def test_with_context_wraps_coroutines():
    context_filter = ContextFilter()
    records = []

    @with_context(provider="mistral")
    async def work():
        record = make_record()
        context_filter.filter(record)
        records.append(record)
        return "done"

    assert await work() == "done"
    assert records[0].context == " [provider=mistral]"

    after = make_record()
    context_filter.filter(after)
    assert after.context == ""


def test_malformed_yaml_is_a_configuration_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("google: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError) as exc_info:
        Config.load(str(path))
    assert exc_info.value.error_type is ErrorType.CONFIG_INVALID
