import logging
import uvicorn
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pizzeria.core.config import settings

# 1. Infrastructure & Domain Imports
from pizzeria.domain.errors import InvalidTransition, NotFound, NotificationFailed, PersistenceFailed, ValidationFailed
from pizzeria.domain.events import EventBus, OrderCreated, OrderEvent
from pizzeria.infrastructure.database import init_database
from pizzeria.infrastructure.email_service import HttpEmailService
from pizzeria.infrastructure.notification_service import AdminAlertService
from pizzeria.infrastructure.order_cache import OrderListCache
from pizzeria.infrastructure.repositories.order_repository import SqlAlchemyOrderRepository
from pizzeria.infrastructure.repositories.settings_repository import SqlAlchemySettingsRepository
from pizzeria.application.orchestrator import Orchestrator
from pizzeria.interfaces import admin_api, orders_api

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# COMPOSITION ROOT
# ---------------------------------------------------------
def build_services():
    events = EventBus()
    settings_repo = SqlAlchemySettingsRepository()
    orchestrator = Orchestrator(
        order_repo=SqlAlchemyOrderRepository(),
        notifier=HttpEmailService(),
        settings_provider=settings_repo,
        events=events,
    )
    alerts = AdminAlertService()
    events.subscribe(OrderCreated, alerts.notify_admin_new_order)
    return orchestrator, settings_repo


def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        return _error(422, "validation_failed", exc.message, fields=exc.errors)

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return _error(404, "not_found", str(exc))

    @app.exception_handler(InvalidTransition)
    async def invalid_transition(request: Request, exc: InvalidTransition):
        current = getattr(exc.current_status, "value", exc.current_status)
        return _error(409, "invalid_transition", str(exc), current_status=current)

    @app.exception_handler(PersistenceFailed)
    async def persistence_failed(request: Request, exc: PersistenceFailed):
        logger.error("❌ %s", exc)
        return _error(503, "persistence_failed", "Die Bestellung konnte nicht gespeichert werden. Bitte erneut versuchen.")

    @app.exception_handler(NotificationFailed)
    async def notification_failed(request: Request, exc: NotificationFailed):
        return _error(
            502,
            "notification_failed",
            str(exc),
            order_id=exc.order_id,
            kind=getattr(exc.kind, "value", exc.kind),
            detail=exc.detail,
        )


def create_app(orchestrator=None, settings_repo=None, order_cache=None) -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME)

    if orchestrator is None:
        init_database()
        orchestrator, settings_repo = build_services()

    order_cache = order_cache or OrderListCache()
    orchestrator.events.subscribe(OrderEvent, order_cache.on_order_event)

    app.state.orchestrator = orchestrator
    app.state.settings_repo = settings_repo
    app.state.order_cache = order_cache

    register_error_handlers(app)

    # Include Routers
    app.include_router(orders_api.router)
    app.include_router(admin_api.router)

    @app.get("/")
    def health_check():
        return {"status": "active", "system": "Pizzeria Order Workflow"}

    return app


def run():
    uvicorn.run("pizzeria.main:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
