# src/core/drivers/__init__.py
"""
Реестр водителей.
"""

from src.core.drivers.repository import DriverRepository

__all__ = ["DriverRepository"]
