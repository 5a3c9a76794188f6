# src/core/money.py
"""
Денежная арифметика.
Все суммы в Decimal с точностью до копейки (kobo), округление HALF_UP.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(amount: Decimal) -> Decimal:
    """Округляет сумму до двух знаков."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Переводит сумму в минимальные единицы шлюза (5000.50 -> 500050)."""
    return int((amount * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int | str) -> Decimal:
    """Переводит минимальные единицы шлюза в сумму (500050 -> 5000.50)."""
    return quantize_money(Decimal(str(value)) / HUNDRED)


def split_amount(gross: Decimal, commission_percent: Decimal) -> tuple[Decimal, Decimal]:
    """
    Делит сумму между платформой и водителем.

    Доля платформы округляется, доля водителя получается вычитанием,
    поэтому platform + driver всегда равно gross.

    Returns:
        (platform_share, driver_share)
    """
    platform_share = quantize_money(gross * commission_percent / HUNDRED)
    driver_share = quantize_money(gross) - platform_share
    return platform_share, driver_share
