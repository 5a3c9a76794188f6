#!/usr/bin/env python3
"""
Entrypoint для Escrow Service.

Запуск:
    python entrypoint_escrow_service.py

Порт по умолчанию: 8087
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    """Запустить Escrow Service."""
    uvicorn.run(
        "src.services.escrow.app:app",
        host=settings.deployment.ESCROW_SERVICE_HOST,
        port=settings.deployment.ESCROW_SERVICE_PORT,
        reload=settings.system.DEBUG,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
