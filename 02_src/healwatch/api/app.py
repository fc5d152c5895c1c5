"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import DashboardConfig
from ..session import DashboardSession
from .routes import fixes, live


# Global session instance
_session: DashboardSession | None = None


def get_session() -> DashboardSession:
    """Get the global dashboard session."""
    global _session
    if not _session:
        _session = DashboardSession.from_config(DashboardConfig.from_env())
    return _session


def create_fastapi_app(session: DashboardSession | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    session = session or get_session()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """The HTTP service is one consumer of the shared session."""
        await session.acquire()
        yield
        await session.release()

    fastapi_app = FastAPI(
        title="HealWatch API",
        description="Live pipeline, healing and security state for the dashboard",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.session = session

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Next.js / Vite dev
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(live.create_live_router(session))
    fastapi_app.include_router(fixes.create_fixes_router(session))

    return fastapi_app
