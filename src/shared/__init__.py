# src/shared/__init__.py
"""
Общий код между HTTP-сервисом, воркерами и ops-командами.

Модули:
- models: DTO запросов и ответов API
"""

__all__: list[str] = []
