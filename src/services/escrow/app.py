# src/services/escrow/app.py
"""
FastAPI приложение для Escrow Service.

Endpoints:
- POST /api/v1/reservations - создать резервацию
- POST /api/v1/payments/initialize - инициализировать оплату
- POST /api/v1/webhooks/paystack - вебхук шлюза
- GET /payment/callback - возврат со страницы оплаты
- POST /api/v1/payments/verify-booking - ручная проверка оплаты
- POST /api/v1/bookings/{id}/driver-confirm | client-confirm - подтверждения
- POST /api/v1/bookings/{id}/accept | start | reject - действия водителя
- POST /api/v1/bookings/{id}/settle - ручной расчёт
- POST /api/v1/disputes, /api/v1/disputes/{id}/resolve - споры
- GET/POST /api/v1/payouts/{driver_id}/... - выплаты
- GET/PUT /api/v1/admin/settings/commission - комиссия платформы
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.config import settings
from src.shared.models.common import HealthStatus
from src.services.escrow.dependencies import cleanup_dependencies, dependency_health, init_dependencies
from src.services.escrow.errors import register_exception_handlers
from src.services.escrow.routes import routers


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    # Startup
    from src.infra.database import init_db, get_db
    from src.infra.redis_client import init_redis, get_redis
    from src.infra.event_bus import init_event_bus, get_event_bus

    await init_db()
    await init_redis()
    await init_event_bus()

    await init_dependencies(get_db(), get_redis(), get_event_bus())

    yield

    # Shutdown
    from src.infra.database import close_db
    from src.infra.redis_client import close_redis
    from src.infra.event_bus import close_event_bus

    await cleanup_dependencies()
    await close_event_bus()
    await close_redis()
    await close_db()


# === APP ===

def create_app(with_lifespan: bool = True) -> FastAPI:
    """Создаёт приложение. Без lifespan зависимости подставляются тестами."""
    application = FastAPI(
        title="Escrow Service",
        description="Эскроу платежей за поездки: финализация оплаты, подтверждения, расчёты и выплаты.",
        version=settings.system.VERSION,
        lifespan=lifespan if with_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    register_exception_handlers(application)
    for router in routers:
        application.include_router(router)

    @application.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и его инфраструктуры."""
        dependencies = await dependency_health()
        healthy = all(state == "healthy" for state in dependencies.values())
        return HealthStatus(
            status="healthy" if healthy else "degraded",
            service="escrow_service",
            version=settings.system.VERSION,
            dependencies=dependencies,
        )

    return application


app = create_app()


# === STARTUP ===

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.deployment.ESCROW_SERVICE_HOST, port=settings.deployment.ESCROW_SERVICE_PORT)
