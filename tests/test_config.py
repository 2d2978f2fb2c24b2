from __future__ import annotations

import json

import pytest

from deep_research.config import RunConfig, Settings
from deep_research.errors import ConfigError
from deep_research.models.finding import Finding


def test_missing_credential_is_rejected():
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        RunConfig(api_key="  ")


@pytest.mark.parametrize("field", ["max_subtasks", "max_pages_per_task", "max_chunks_per_doc"])
def test_limits_must_be_positive(field):
    with pytest.raises(ConfigError, match=field):
        RunConfig(api_key="sk-test", **{field: 0})


def test_depth_may_be_zero_but_not_negative():
    assert RunConfig(api_key="sk-test", max_depth=0).max_depth == 0
    with pytest.raises(ConfigError):
        RunConfig(api_key="sk-test", max_depth=-1)


def test_defaults():
    config = RunConfig(api_key="sk-test")
    assert (config.max_subtasks, config.max_pages_per_task, config.max_depth) == (5, 5, 2)
    assert config.max_chunks_per_doc == 12
    assert config.model == "gpt-3.5-turbo"
    assert config.skip_failed_pages is True


def test_from_settings_applies_non_empty_overrides():
    source = Settings(_env_file=None, openai_api_key="sk-env", max_depth=3, openai_model="gpt-env")

    config = RunConfig.from_settings(source, model=None, max_depth=1, max_subtasks=None)

    assert config.api_key == "sk-env"
    assert config.model == "gpt-env"
    assert config.max_depth == 1
    assert config.max_subtasks == 5


def test_from_settings_loads_source_tiers(tmp_path):
    tiers = tmp_path / "tiers.json"
    tiers.write_text(json.dumps({"default_score": 0.3, "rules": []}), encoding="utf-8")
    source = Settings(_env_file=None, openai_api_key="sk-env", source_tiers_path=str(tiers))

    config = RunConfig.from_settings(source)

    assert config.source_tiers.base_score("anything.com") == pytest.approx(0.3)


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MAX_PAGES_PER_TASK", "7")
    monkeypatch.setenv("SKIP_FAILED_PAGES", "false")

    source = Settings(_env_file=None)

    assert source.max_pages_per_task == 7
    assert source.skip_failed_pages is False


def test_config_is_immutable():
    config = RunConfig(api_key="sk-test")
    with pytest.raises(AttributeError):
        config.max_depth = 5  # type: ignore[misc]


def test_finding_score_must_be_in_unit_interval():
    with pytest.raises(ValueError):
        Finding(query="q", source="s", content="c", score=1.2)
    finding = Finding(query="q", source="s", content="c", score=1.0)
    assert finding.with_id(4).id == 4
    assert finding.id is None
