# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
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
    PROJECT_NAME: str = "ride_escrow"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    RUN_DEV_MODE: bool = True
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Настройки развертывания компонентов."""
    ESCROW_SERVICE_HOST: str = "0.0.0.0"
    ESCROW_SERVICE_PORT: int = 8087
    ESCROW_SERVICE_INSTANCES_COUNT: int = 1
    WORKER_INSTANCES_COUNT: int = 1


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/ride_escrow.log"
    LOG_FORMAT: str = "json"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ride_escrow"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "escrow"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "escrow.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class PaystackSettings(BaseModel):
    """Настройки платёжного шлюза Paystack."""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_TIMEOUT: float = 30.0
    PAYSTACK_CURRENCY: str = "NGN"
    PAYSTACK_CALLBACK_URL: str = "http://localhost:8087/payment/callback"

    @field_validator("PAYSTACK_SECRET_KEY", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает секретный ключ из переменных окружения."""
        if not v:
            return os.getenv("PAYSTACK_SECRET_KEY", "")
        return v


class EscrowSettings(BaseModel):
    """Настройки эскроу, расчётов и фоновых задач."""
    FRONTEND_URL: str = "http://localhost:5173"
    RESERVATION_TTL_SECONDS: int = 3600
    RESERVATION_CLEANUP_INTERVAL_SECONDS: int = 600
    DEFAULT_COMMISSION_PERCENT: Decimal = Decimal("10")
    AUTO_COMPLETE_INTERVAL_SECONDS: int = 900
    AUTO_COMPLETE_GRACE_HOURS: int = 12
    AUTO_COMPLETE_LOCK_TTL_SECONDS: int = 840
    PAYOUT_MIN_AMOUNT: Decimal = Decimal("1000")
    PAYOUT_INTERVAL_SECONDS: int = 86400
    PAYOUT_RECONCILE_AFTER_SECONDS: int = 3600

    @field_validator("DEFAULT_COMMISSION_PERCENT")
    @classmethod
    def validate_commission(cls, v: Decimal) -> Decimal:
        """Комиссия должна лежать в диапазоне 0..100."""
        if v < 0 or v > 100:
            raise ValueError("DEFAULT_COMMISSION_PERCENT должен быть в диапазоне 0..100")
        return v


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    paystack: PaystackSettings = Field(default_factory=PaystackSettings)
    escrow: EscrowSettings = Field(default_factory=EscrowSettings)

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

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        # Маппинг полей в секции
        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "ride_escrow"),
                VERSION=filtered_data.get("VERSION", "1.0.0"),
                DEBUG=filtered_data.get("DEBUG", False),
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                ENVIRONMENT=filtered_data.get("ENVIRONMENT", "development"),
                RUN_DEV_MODE=filtered_data.get("RUN_DEV_MODE", True),
                COMPONENT_MODE=os.getenv("COMPONENT_MODE", filtered_data.get("COMPONENT_MODE", "all")),
            ),
            deployment=DeploymentSettings(
                ESCROW_SERVICE_HOST=os.getenv("ESCROW_SERVICE_HOST", filtered_data.get("ESCROW_SERVICE_HOST", "0.0.0.0")),
                ESCROW_SERVICE_PORT=int(os.getenv("ESCROW_SERVICE_PORT", filtered_data.get("ESCROW_SERVICE_PORT", 8087))),
                ESCROW_SERVICE_INSTANCES_COUNT=filtered_data.get("ESCROW_SERVICE_INSTANCES_COUNT", 1),
                WORKER_INSTANCES_COUNT=filtered_data.get("WORKER_INSTANCES_COUNT", 1),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                LOG_TO_FILE=filtered_data.get("LOG_TO_FILE", True),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/ride_escrow.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "json"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=filtered_data.get("LOG_BACKUP_COUNT", 5),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", filtered_data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", filtered_data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", filtered_data.get("DB_NAME", "ride_escrow")),
                DB_USER=os.getenv("DB_USER", filtered_data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", filtered_data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=filtered_data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=filtered_data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=filtered_data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=filtered_data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=filtered_data.get("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", filtered_data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", filtered_data.get("REDIS_PORT", 6379))),
                REDIS_DB=filtered_data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", filtered_data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=filtered_data.get("REDIS_NAMESPACE", "escrow"),
                REDIS_MAX_CONNECTIONS=filtered_data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", filtered_data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", filtered_data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", filtered_data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", filtered_data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=filtered_data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=filtered_data.get("RABBITMQ_EXCHANGE", "escrow.events"),
                RABBITMQ_PREFETCH_COUNT=filtered_data.get("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            paystack=PaystackSettings(
                PAYSTACK_BASE_URL=filtered_data.get("PAYSTACK_BASE_URL", "https://api.paystack.co"),
                PAYSTACK_SECRET_KEY=os.getenv("PAYSTACK_SECRET_KEY", filtered_data.get("PAYSTACK_SECRET_KEY", "")),
                PAYSTACK_TIMEOUT=filtered_data.get("PAYSTACK_TIMEOUT", 30.0),
                PAYSTACK_CURRENCY=filtered_data.get("PAYSTACK_CURRENCY", "NGN"),
                PAYSTACK_CALLBACK_URL=os.getenv(
                    "PAYSTACK_CALLBACK_URL",
                    filtered_data.get("PAYSTACK_CALLBACK_URL", "http://localhost:8087/payment/callback"),
                ),
            ),
            escrow=EscrowSettings(
                FRONTEND_URL=os.getenv("FRONTEND_URL", filtered_data.get("FRONTEND_URL", "http://localhost:5173")),
                RESERVATION_TTL_SECONDS=filtered_data.get("RESERVATION_TTL_SECONDS", 3600),
                RESERVATION_CLEANUP_INTERVAL_SECONDS=filtered_data.get("RESERVATION_CLEANUP_INTERVAL_SECONDS", 600),
                DEFAULT_COMMISSION_PERCENT=Decimal(str(filtered_data.get("DEFAULT_COMMISSION_PERCENT", 10))),
                AUTO_COMPLETE_INTERVAL_SECONDS=filtered_data.get("AUTO_COMPLETE_INTERVAL_SECONDS", 900),
                AUTO_COMPLETE_GRACE_HOURS=filtered_data.get("AUTO_COMPLETE_GRACE_HOURS", 12),
                AUTO_COMPLETE_LOCK_TTL_SECONDS=filtered_data.get("AUTO_COMPLETE_LOCK_TTL_SECONDS", 840),
                PAYOUT_MIN_AMOUNT=Decimal(str(filtered_data.get("PAYOUT_MIN_AMOUNT", 1000))),
                PAYOUT_INTERVAL_SECONDS=filtered_data.get("PAYOUT_INTERVAL_SECONDS", 86400),
                PAYOUT_RECONCILE_AFTER_SECONDS=filtered_data.get("PAYOUT_RECONCILE_AFTER_SECONDS", 3600),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
