from __future__ import annotations

from pathlib import Path

import yaml

from market_digest.config import ConfigRepository, GlobalConfig, JobName, ScheduleType


def test_missing_config_is_created_with_defaults(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.locator.global_config_path()
    assert not path.exists()
    config = temp_config_repository.load_global_config()
    assert path.exists()
    assert config.news.timeout_ms == 300000
    assert config.retry.max_retries == 3
    stored = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert stored["duplicates"]["lookback_days"] == 30


def test_existing_yaml_is_loaded(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.locator.global_config_path()
    path.write_text(
        yaml.safe_dump(
            {
                "terms": {"timeout_ms": 60000, "schedule": {"type": "interval", "value": 3600}},
                "duplicates": {"mode": "similarity", "similarity_threshold": 0.8},
            }
        ),
        encoding="utf-8",
    )
    config = temp_config_repository.load_global_config()
    assert config.job(JobName.TERMS).timeout_ms == 60000
    assert config.terms.schedule.type is ScheduleType.INTERVAL
    assert config.duplicates.mode.value == "similarity"
    assert config.news.schedule.value == "0 8 * * *"


def test_save_and_reload_round_trip(temp_config_repository: ConfigRepository) -> None:
    config = GlobalConfig()
    config.news.enabled = False
    temp_config_repository.save_global_config(config)
    reloaded = temp_config_repository.reload()
    assert reloaded.news.enabled is False


def test_database_path_resolves_under_home(temp_config_repository: ConfigRepository, tmp_path: Path) -> None:
    assert temp_config_repository.database_path() == (tmp_path / "data" / "digest.db").resolve()
