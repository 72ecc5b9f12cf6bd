import pytest
from pydantic import ValidationError

from neuron_core.config.settings import Settings


def test_settings_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NEURON_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    for key in ("GEMINI_MODEL", "GEMINI_BASE_URL", "HTTP_TIMEOUT", "TEMPERATURE"):
        monkeypatch.delenv(key, raising=False)
    s = Settings(gemini_api_key=None)
    assert s.gemini_model == "gemini-1.5-flash"
    assert s.http_timeout == 30.0
    assert s.max_output_tokens == 420


def test_settings_reads_yaml(monkeypatch, tmp_path):
    cfg = tmp_path / "neuron.yaml"
    cfg.write_text("gemini_model: gemini-2.0-flash\ntemperature: 0.3\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NEURON_CONFIG_FILE", str(cfg))
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    monkeypatch.delenv("TEMPERATURE", raising=False)
    s = Settings()
    assert s.gemini_model == "gemini-2.0-flash"
    assert s.temperature == 0.3


def test_env_overrides_yaml(monkeypatch, tmp_path):
    cfg = tmp_path / "neuron.yaml"
    cfg.write_text("gemini_model: gemini-2.0-flash\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NEURON_CONFIG_FILE", str(cfg))
    monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")
    assert Settings().gemini_model == "gemini-1.5-pro"


def test_short_api_key_rejected():
    with pytest.raises(ValidationError):
        Settings(gemini_api_key="abc")
