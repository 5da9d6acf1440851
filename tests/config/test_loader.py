# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ridepool.config.loader import (
    get_project_root,
    get_config_path,
    get_settings,
    load_config_json,
    SystemSettings,
    LoggingSettings,
    GoogleMapsSettings,
    MatchingSettings,
    FleetSettings,
    Settings,
)
from ridepool.shared.models.matching import MatchingConfig


class TestGetProjectRoot:
    """Тесты для функции get_project_root."""

    def test_returns_path_object(self) -> None:
        """Проверяет, что возвращается объект Path."""
        assert isinstance(get_project_root(), Path)

    def test_root_contains_package(self) -> None:
        """Проверяет наличие пакета ridepool в корне."""
        assert (get_project_root() / "ridepool").exists()


class TestGetConfigPath:
    """Тесты для функции get_config_path."""

    def test_default_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Проверяет путь по умолчанию."""
        monkeypatch.delenv("RIDEPOOL_CONFIG_PATH", raising=False)
        path = get_config_path()

        assert path.name == "config.json"
        assert path.parent.name == "config"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, temp_config_file: Path) -> None:
        """Проверяет приоритет переменной окружения."""
        monkeypatch.setenv("RIDEPOOL_CONFIG_PATH", str(temp_config_file))

        assert get_config_path() == temp_config_file


class TestLoadConfigJson:
    """Тесты для функции load_config_json."""

    def test_contains_required_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Проверяет наличие обязательных ключей в config.json проекта."""
        monkeypatch.delenv("RIDEPOOL_CONFIG_PATH", raising=False)
        config = load_config_json()

        for key in ("PROJECT_NAME", "VERSION", "SEATS_PER_VEHICLE", "MAX_DETOUR_MINUTES"):
            assert key in config, f"Отсутствует ключ: {key}"

    def test_raises_file_not_found(self, tmp_path: Path) -> None:
        """Проверяет исключение при отсутствии файла."""
        with patch("ridepool.config.loader.get_config_path") as mock_path:
            mock_path.return_value = tmp_path / "nonexistent.json"

            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSectionDefaults:
    """Тесты значений по умолчанию для секций."""

    def test_system_defaults(self) -> None:
        """Проверяет системные настройки по умолчанию."""
        settings = SystemSettings()

        assert settings.PROJECT_NAME == "ridepool"
        assert settings.ENVIRONMENT == "development"

    def test_logging_defaults(self) -> None:
        """Проверяет настройки логирования по умолчанию."""
        settings = LoggingSettings()

        assert settings.LOG_TO_FILE is False
        assert settings.LOG_FORMAT == "colored"
        assert settings.LOG_MAX_BYTES == 10485760

    def test_fleet_defaults(self) -> None:
        """Проверяет состав парка по умолчанию."""
        settings = FleetSettings()

        assert settings.VEHICLE_COUNT == 3
        assert settings.VEHICLE_NAME_PREFIX == "Vehicle"

    def test_api_key_from_env(self) -> None:
        """Проверяет получение API ключа из переменных окружения."""
        with patch.dict(os.environ, {"GOOGLE_MAPS_API_KEY": "env_key"}):
            settings = GoogleMapsSettings(GOOGLE_MAPS_API_KEY="")

        assert settings.GOOGLE_MAPS_API_KEY == "env_key"


class TestMatchingSettings:
    """Тесты для MatchingSettings."""

    def test_defaults_match_engine_defaults(self) -> None:
        """Проверяет, что настройки по умолчанию совпадают с параметрами движка."""
        assert MatchingSettings().to_matching_config() == MatchingConfig()

    def test_to_matching_config(self) -> None:
        """Проверяет перенос значений в параметры движка."""
        config = MatchingSettings(
            SEATS_PER_VEHICLE=4,
            MAX_DETOUR_MINUTES=12,
            MINUTES_PER_STOP=1,
            BUFFER_MINUTES=3,
        ).to_matching_config()

        assert config.seats_per_vehicle == 4
        assert config.max_detour_minutes == 12
        assert config.minutes_per_stop == 1
        assert config.buffer_minutes == 3
        assert config.candidate_window_minutes == 30
        assert config.pickup_tolerance_minutes == 15

    def test_rejects_zero_seats(self) -> None:
        """Проверяет валидацию числа мест."""
        with pytest.raises(ValueError):
            MatchingSettings(SEATS_PER_VEHICLE=0)


class TestSettings:
    """Тесты для главного класса Settings."""

    def test_from_config_json(self, monkeypatch: pytest.MonkeyPatch, temp_config_file: Path) -> None:
        """Проверяет сборку настроек из файла."""
        monkeypatch.setenv("RIDEPOOL_CONFIG_PATH", str(temp_config_file))
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "secret")

        settings = Settings.from_config_json()

        assert settings.system.PROJECT_NAME == "ridepool_test"
        assert settings.system.ENVIRONMENT == "test"
        assert settings.logging.LOG_FORMAT == "json"
        assert settings.google_maps.GOOGLE_MAPS_API_KEY == "secret"
        assert settings.google_maps.DIRECTIONS_LANGUAGE == "en"
        assert settings.matching.SEATS_PER_VEHICLE == 6
        assert settings.matching.to_matching_config().route_timeout_seconds == 4
        assert settings.fleet.VEHICLE_NAME_PREFIX == "Navette"

    def test_env_overrides_log_level(self, monkeypatch: pytest.MonkeyPatch, temp_config_file: Path) -> None:
        """Проверяет переопределение уровня логирования из окружения."""
        monkeypatch.setenv("RIDEPOOL_CONFIG_PATH", str(temp_config_file))
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        settings = Settings.from_config_json()

        assert settings.logging.LOG_LEVEL == "ERROR"

    def test_get_settings_without_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Проверяет значения по умолчанию при отсутствии config.json."""
        monkeypatch.setenv("RIDEPOOL_CONFIG_PATH", str(tmp_path / "missing.json"))
        get_settings.cache_clear()
        try:
            settings = get_settings()
        finally:
            get_settings.cache_clear()

        assert settings.matching.SEATS_PER_VEHICLE == 8
        assert settings.fleet.VEHICLE_COUNT == 3
