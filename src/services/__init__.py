# src/services/__init__.py
"""
HTTP-сервисы приложения.

Архитектура:
- Сервис — FastAPI-приложение над доменным слоем src/core
- PostgreSQL как источник истины для денег
- RabbitMQ для доменных событий, Redis для аренд фоновых задач

Сервисы:
- escrow: оплата, подтверждения, расчёты, споры и выплаты
"""

__all__: list[str] = []
