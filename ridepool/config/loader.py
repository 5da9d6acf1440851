# ridepool/config/loader.py
"""
Настройки движка подбора.
Значения берутся из config/config.json (путь можно переопределить через RIDEPOOL_CONFIG_PATH),
ключ Google Maps и уровень логирования могут прийти из окружения или .env.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ridepool.shared.models.matching import MatchingConfig


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Корень репозитория (на уровень выше пакета ridepool)."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """
    Возвращает путь к файлу конфигурации.
    Переменная окружения RIDEPOOL_CONFIG_PATH имеет приоритет.
    """
    override = os.getenv("RIDEPOOL_CONFIG_PATH")
    if override:
        return Path(override)
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Читает config.json как словарь; отсутствие файла считается ошибкой."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ridepool"
    VERSION: str = "0.3.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/ridepool.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class GoogleMapsSettings(BaseModel):
    """Настройки Google Maps Directions API."""
    GOOGLE_MAPS_API_KEY: str = ""
    DIRECTIONS_LANGUAGE: str = "fr"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    @field_validator("GOOGLE_MAPS_API_KEY", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Пустой ключ подменяется значением GOOGLE_MAPS_API_KEY из окружения."""
        if not v:
            return os.getenv("GOOGLE_MAPS_API_KEY", "")
        return v


class MatchingSettings(BaseModel):
    """Параметры матчинга по умолчанию."""
    SEATS_PER_VEHICLE: int = Field(8, ge=1)
    MAX_DETOUR_MINUTES: float = Field(8.0, ge=0)
    MINUTES_PER_STOP: float = Field(2.0, ge=0)
    BUFFER_MINUTES: float = Field(5.0, ge=0)
    CANDIDATE_WINDOW_MINUTES: float = Field(30.0, ge=0)
    PICKUP_TOLERANCE_MINUTES: float = Field(15.0, ge=0)
    ROUTE_TIMEOUT_SECONDS: float = Field(10.0, gt=0)

    def to_matching_config(self) -> MatchingConfig:
        """Собирает конфиг движка из настроек."""
        return MatchingConfig(
            seats_per_vehicle=self.SEATS_PER_VEHICLE,
            max_detour_minutes=self.MAX_DETOUR_MINUTES,
            minutes_per_stop=self.MINUTES_PER_STOP,
            buffer_minutes=self.BUFFER_MINUTES,
            candidate_window_minutes=self.CANDIDATE_WINDOW_MINUTES,
            pickup_tolerance_minutes=self.PICKUP_TOLERANCE_MINUTES,
            route_timeout_seconds=self.ROUTE_TIMEOUT_SECONDS,
        )


class FleetSettings(BaseModel):
    """Состав парка по умолчанию."""
    VEHICLE_COUNT: int = Field(3, ge=0)
    VEHICLE_NAME_PREFIX: str = "Vehicle"


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Все секции настроек движка.
    Секция matching превращается в MatchingConfig через to_matching_config().
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    google_maps: GoogleMapsSettings = Field(default_factory=GoogleMapsSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    fleet: FleetSettings = Field(default_factory=FleetSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Ключи, начинающиеся с _comment_, служат комментариями
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "ridepool"),
                VERSION=data.get("VERSION", "0.3.0"),
                DEBUG=data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", data.get("LOG_LEVEL", "DEBUG")),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/ridepool.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            google_maps=GoogleMapsSettings(
                GOOGLE_MAPS_API_KEY=os.getenv("GOOGLE_MAPS_API_KEY", data.get("GOOGLE_MAPS_API_KEY", "")),
                DIRECTIONS_LANGUAGE=data.get("DIRECTIONS_LANGUAGE", "fr"),
                HTTP_TIMEOUT_SECONDS=data.get("HTTP_TIMEOUT_SECONDS", 10.0),
            ),
            matching=MatchingSettings(
                SEATS_PER_VEHICLE=data.get("SEATS_PER_VEHICLE", 8),
                MAX_DETOUR_MINUTES=data.get("MAX_DETOUR_MINUTES", 8.0),
                MINUTES_PER_STOP=data.get("MINUTES_PER_STOP", 2.0),
                BUFFER_MINUTES=data.get("BUFFER_MINUTES", 5.0),
                CANDIDATE_WINDOW_MINUTES=data.get("CANDIDATE_WINDOW_MINUTES", 30.0),
                PICKUP_TOLERANCE_MINUTES=data.get("PICKUP_TOLERANCE_MINUTES", 15.0),
                ROUTE_TIMEOUT_SECONDS=data.get("ROUTE_TIMEOUT_SECONDS", 10.0),
            ),
            fleet=FleetSettings(
                VEHICLE_COUNT=data.get("VEHICLE_COUNT", 3),
                VEHICLE_NAME_PREFIX=data.get("VEHICLE_NAME_PREFIX", "Vehicle"),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Без config.json используются значения по умолчанию.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if not get_config_path().exists():
        return Settings()

    return Settings.from_config_json()


# Загружается один раз при импорте пакета ridepool.config
settings = get_settings()
