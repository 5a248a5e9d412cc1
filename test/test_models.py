import pydantic
import pytest
from cronbeats_client.models import DEFAULT_BASE_URL, DEFAULT_USER_AGENT, ClientConfig


def test_defaults():
    config = ClientConfig()

    assert config.base_url == "https://cronbeats.io"
    assert config.timeout_ms == 5000
    assert config.max_retries == 2
    assert config.retry_backoff_ms == 250
    assert config.retry_jitter_ms == 100
    assert config.user_agent == DEFAULT_USER_AGENT


@pytest.mark.parametrize(
    "base_url, expected",
    [
        ("https://example.test/", "https://example.test"),
        ("https://example.test///", "https://example.test"),
        ("http://localhost:8000", "http://localhost:8000"),
        ("   ", DEFAULT_BASE_URL),
    ],
)
def test_base_url_trimmed(base_url, expected):
    assert ClientConfig(base_url=base_url).base_url == expected


def test_blank_user_agent_uses_default():
    assert ClientConfig(user_agent="").user_agent == DEFAULT_USER_AGENT


@pytest.mark.parametrize(
    "field, value",
    [("timeout_ms", 0), ("max_retries", -1), ("retry_backoff_ms", -10), ("retry_jitter_ms", -1)],
)
def test_out_of_range_values_rejected(field, value):
    with pytest.raises(pydantic.ValidationError):
        ClientConfig(**{field: value})


def test_config_is_immutable():
    config = ClientConfig()

    with pytest.raises(pydantic.ValidationError):
        config.max_retries = 5


def test_from_env(monkeypatch):
    monkeypatch.setenv("CRONBEATS_BASE_URL", "https://beats.internal/")
    monkeypatch.setenv("CRONBEATS_MAX_RETRIES", "0")
    monkeypatch.setenv("CRONBEATS_RETRY_JITTER_MS", "0")
    monkeypatch.delenv("CRONBEATS_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("CRONBEATS_RETRY_BACKOFF_MS", raising=False)
    monkeypatch.delenv("CRONBEATS_USER_AGENT", raising=False)

    config = ClientConfig.from_env()

    assert config.base_url == "https://beats.internal"
    assert config.max_retries == 0
    assert config.retry_jitter_ms == 0
    assert config.timeout_ms == 5000
