# src/core/settlement/commission.py
"""
Процент комиссии платформы.

Значение читается из platform_settings при каждом расчёте, а не при
старте процесса: изменение администратором действует сразу.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from uuid import UUID

from src.common.logger import log_warning
from src.core.errors import InvalidCommission
from src.infra.database import DatabaseManager

COMMISSION_SETTING_KEY = "commission_percentage"


def validate_commission(value: Decimal) -> Decimal:
    """Проверяет, что процент в диапазоне 0..100."""
    if value < 0 or value > 100:
        raise InvalidCommission(f"Комиссия должна быть в диапазоне 0..100, получено {value}")
    return value


class CommissionProvider:
    """Источник текущего процента комиссии."""

    def __init__(self, db: DatabaseManager, default_percent: Decimal) -> None:
        """
        Args:
            db: Менеджер базы данных
            default_percent: Значение, если настройка отсутствует или некорректна
        """
        self._db = db
        self._default_percent = validate_commission(default_percent)

    async def get_commission_percent(self) -> Decimal:
        """Текущий процент комиссии (свежее чтение из БД)."""
        raw = await self._db.fetchval(
            "SELECT setting_value FROM platform_settings WHERE setting_key = $1",
            COMMISSION_SETTING_KEY,
        )
        if raw is None:
            return self._default_percent

        try:
            return validate_commission(Decimal(str(raw).strip()))
        except (InvalidOperation, InvalidCommission):
            await log_warning(
                f"Некорректное значение {COMMISSION_SETTING_KEY}={raw!r}, "
                f"используется {self._default_percent}%"
            )
            return self._default_percent

    async def set_commission_percent(self, percent: Decimal, updated_by: UUID | None = None) -> Decimal:
        """
        Устанавливает процент комиссии.

        Raises:
            InvalidCommission: процент вне диапазона 0..100
        """
        percent = validate_commission(percent)
        await self._db.execute(
            """
            INSERT INTO platform_settings (setting_key, setting_value, updated_by, updated_at)
            VALUES ($1, $2, $3, now())
            ON CONFLICT (setting_key)
            DO UPDATE SET setting_value = EXCLUDED.setting_value,
                          updated_by = EXCLUDED.updated_by,
                          updated_at = now()
            """,
            COMMISSION_SETTING_KEY,
            str(percent),
            updated_by,
        )
        return percent
