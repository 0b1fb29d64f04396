from __future__ import annotations

import json

import pytest
import yaml
from pydantic import ValidationError

from batch_scraper.config import (
    DEFAULT_USER_AGENT,
    ConfigLocator,
    ConfigRepository,
    JobConfig,
    ScraperSettings,
    StoreBackend,
)


def test_locator_honours_home_env(scraper_home) -> None:
    locator = ConfigLocator()
    assert locator.project_root == scraper_home.resolve()
    assert locator.data_dir.is_dir()
    assert locator.logs_dir.is_dir()
    assert locator.settings_path() == scraper_home.resolve() / "data" / "settings.yaml"


def test_load_settings_writes_defaults(temp_config_repository: ConfigRepository) -> None:
    settings = temp_config_repository.load_settings()

    assert settings.concurrency == 5
    assert settings.request_timeout == 15.0
    assert settings.user_agent == DEFAULT_USER_AGENT
    assert settings.max_field_chars == 1_000_000
    assert settings.store.backend is StoreBackend.SQLITE
    payload = yaml.safe_load(temp_config_repository.locator.settings_path().read_text(encoding="utf-8"))
    assert payload["concurrency"] == 5
    assert payload["store"]["backend"] == "sqlite"


def test_load_settings_reads_existing_file(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.locator.settings_path()
    path.write_text(
        yaml.safe_dump({"concurrency": 2, "store": {"backend": "memory"}}), encoding="utf-8"
    )
    settings = temp_config_repository.load_settings()
    assert settings.concurrency == 2
    assert settings.store.backend is StoreBackend.MEMORY
    assert temp_config_repository.load_settings() is settings


def test_load_settings_rejects_non_mapping(temp_config_repository: ConfigRepository) -> None:
    temp_config_repository.locator.settings_path().write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        temp_config_repository.load_settings()


def test_store_path_is_relative_to_home(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.store_path()
    assert path == (temp_config_repository.locator.project_root / "data" / "scraper.db").resolve()


def test_load_request_file_accepts_list_and_mapping(tmp_path) -> None:
    as_list = tmp_path / "urls.json"
    as_list.write_text(json.dumps(["https://a.test/"]), encoding="utf-8")
    assert ConfigRepository.load_request_file(as_list) == {"urls": ["https://a.test/"]}

    as_mapping = tmp_path / "job.yaml"
    as_mapping.write_text(
        yaml.safe_dump({"urls": ["https://a.test/"], "label": "nightly"}), encoding="utf-8"
    )
    assert ConfigRepository.load_request_file(as_mapping)["label"] == "nightly"


def test_load_request_file_rejects_unknown_suffix(tmp_path) -> None:
    path = tmp_path / "urls.txt"
    path.write_text("https://a.test/", encoding="utf-8")
    with pytest.raises(ValueError):
        ConfigRepository.load_request_file(path)


def test_job_config_reads_recognised_keys() -> None:
    config = JobConfig.from_mapping({"timeout_seconds": 10, "tags": ["a", 3, "b"], "depth": 2})
    assert config.timeout_seconds == 10.0
    assert config.tags == ["a", "b"]


@pytest.mark.parametrize("timeout", [0, -1, 61, True, "5", None, float("nan")])
def test_job_config_ignores_unusable_timeout(timeout) -> None:
    assert JobConfig.from_mapping({"timeout_seconds": timeout}).timeout_seconds is None


def test_job_config_from_missing_mapping() -> None:
    assert JobConfig.from_mapping(None) == JobConfig()


@pytest.mark.parametrize("concurrency", [0, -1])
def test_settings_reject_non_positive_concurrency(concurrency) -> None:
    with pytest.raises(ValidationError):
        ScraperSettings(concurrency=concurrency)
