import pytest
from pydantic import ValidationError as PydanticValidationError

from src.soulgraph.config import SoulGraphConfig


def test_defaults():
    config = SoulGraphConfig()
    assert config.harmonic_threshold == 0.7
    assert config.dissonant_threshold == 0.3
    assert config.affinity_threshold == 0.85
    assert config.formation_threshold == 0.95
    assert config.exceptional_threshold == 0.98
    assert config.history_limit == 100
    assert config.pulse_interval == 3600.0
    assert config.formation_period == 432000.0


def test_from_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("SOULGRAPH_HISTORY_LIMIT", "25")
    monkeypatch.setenv("SOULGRAPH_HARMONIC_THRESHOLD", "0.8")
    monkeypatch.setenv("SOULGRAPH_STORE_DIR", str(tmp_path))
    config = SoulGraphConfig.from_env(env_file=str(tmp_path / "missing.env"))
    assert config.history_limit == 25
    assert config.harmonic_threshold == 0.8
    assert config.store_dir == str(tmp_path)


def test_from_env_reads_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.delenv("SOULGRAPH_PULSE_INTERVAL", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("SOULGRAPH_PULSE_INTERVAL=60\n", encoding="utf-8")
    config = SoulGraphConfig.from_env(env_file=str(env_file))
    assert config.pulse_interval == 60.0


def test_invalid_bands_rejected():
    with pytest.raises(PydanticValidationError):
        SoulGraphConfig(harmonic_threshold=0.3, dissonant_threshold=0.5)
    with pytest.raises(PydanticValidationError):
        SoulGraphConfig(history_limit=0)


def test_invalid_env_value_rejected(monkeypatch):
    monkeypatch.setenv("SOULGRAPH_FORMATION_PERIOD", "soon")
    with pytest.raises(PydanticValidationError):
        SoulGraphConfig.from_env(env_file="/nonexistent/.env")
