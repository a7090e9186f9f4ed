import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edpsych_tenancy.config import settings
from edpsych_tenancy.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from edpsych_tenancy.middleware.session_auth import SessionCookieMiddleware
from edpsych_tenancy.routers import health, invitations, subscriptions, tenant_users
from edpsych_tenancy.storage.base import TenantStore
from edpsych_tenancy.storage.memory import InMemoryStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("edpsych-tenancy")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("EdPsych tenancy sandbox starting on %s:%s", settings.host, settings.port)
    yield
    logger.info("EdPsych tenancy sandbox shutting down")


def create_app(store: TenantStore | None = None) -> FastAPI:
    app = FastAPI(
        title="EdPsych Tenancy Sandbox",
        version="0.1.0",
        description="Subscription and tenant user endpoints backed by an in-memory store",
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else InMemoryStore()

    # Middleware (order matters: last added = outermost)
    app.add_middleware(SessionCookieMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(subscriptions.router, prefix=settings.subscriptions_api_base)
    app.include_router(tenant_users.router, prefix=settings.tenants_api_base)
    app.include_router(invitations.router, prefix=settings.tenants_api_base)
    app.include_router(invitations.accept_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("edpsych_tenancy.main:app", host=settings.host, port=settings.port, log_level=settings.log_level)
