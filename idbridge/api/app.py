"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from idbridge import __version__
from idbridge.api.routers import admin as admin_router
from idbridge.api.routers import auth as auth_router
from idbridge.core.auth import hash_password
from idbridge.core.config import Settings, get_settings
from idbridge.core.database import close_engine, get_engine, get_session_factory
from idbridge.core.limiter import limiter
from idbridge.core.logging import configure_logging, get_logger
from idbridge.identity.postgres import close_directory_engines
from idbridge.identity.stores import SqlRoleStore

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    configure_logging()
    settings = get_settings()
    logger.info("Starting idbridge", debug=settings.app_debug)

    # Warm up DB connection pool
    get_engine()

    await _bootstrap_roles(settings)
    await _bootstrap_admin(settings)

    yield

    await close_directory_engines()
    await close_engine()
    logger.info("idbridge stopped")


async def _bootstrap_roles(settings: Settings) -> None:
    """Make sure the seed roles (including the JIT default role) exist."""
    slugs = list(dict.fromkeys([*settings.seed_roles, settings.default_role_slug]))
    factory = get_session_factory()
    async with factory() as session:
        await SqlRoleStore(session).ensure(slugs)


async def _bootstrap_admin(settings: Settings) -> None:
    """Create the default admin account on first start (no users in DB)."""
    from sqlalchemy import func, select

    from idbridge.models.user import User

    factory = get_session_factory()
    async with factory() as session:
        count = (await session.execute(select(func.count()).select_from(User))).scalar_one()
        if count:
            return
        admin_role = await SqlRoleStore(session).find_by_slug("admin")
        if admin_role is None:
            logger.warning("Bootstrap admin skipped, role 'admin' does not exist")
            return
        admin = User(
            email=settings.admin_email.lower(),
            first_name="Admin",
            last_name="",
            hashed_password=hash_password(settings.admin_password),
            role=admin_role,
            is_active=True,
            auth_provider="local",
        )
        session.add(admin)
        await session.commit()
        logger.info(
            "Bootstrap admin created",
            email=settings.admin_email,
            hint="Change the default password immediately!",
        )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="idbridge",
        description="External identity reconciliation and JIT user provisioning",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_prefix = "/api/v1"
    app.include_router(auth_router.router, prefix=api_prefix)
    app.include_router(admin_router.router, prefix=api_prefix)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
