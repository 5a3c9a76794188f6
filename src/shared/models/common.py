# src/shared/models/common.py
"""
Ответы об ошибках и о состоянии Escrow Service.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ComponentState = Literal["healthy", "unhealthy"]


class ErrorResponse(BaseModel):
    """Тело ответа для EscrowError."""

    error_code: str = Field(..., description="Имя ошибки в snake_case, например reservation_expired")
    message: str
    retryable: bool = Field(False, description="Повтор того же запроса может пройти")


class HealthStatus(BaseModel):
    """Ответ /health: degraded, если хотя бы одна инфраструктура недоступна."""

    service: str
    status: Literal["healthy", "degraded"] = "healthy"
    version: str
    # Только уже инициализированные компоненты: postgres, redis, rabbitmq
    dependencies: dict[str, ComponentState] = Field(default_factory=dict)
