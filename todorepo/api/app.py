"""FastAPI application factory for the task service.

The task service is the server side of HttpTaskDataSource: it exposes one
data source over HTTP and plays the role of the remote.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import tasks_router
from ..domain.protocols import TaskDataSource


def create_app(
    data_source: TaskDataSource,
    *,
    api_key: Optional[str] = None,
    title: str = "Task Service API",
    version: str = "1.0.0",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        data_source: Data source the service reads and writes
        api_key: Bearer token required on /tasks routes when set
        title: API title
        version: API version
        cors_origins: Allowed CORS origins

    Returns:
        FastAPI application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Open and close the data source with the application."""
        connect = getattr(data_source, "connect", None)
        if connect is not None:
            await connect()
        yield
        close = getattr(data_source, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title=title,
        version=version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.data_source = data_source
    app.state.api_key = api_key

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(tasks_router)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": version}

    return app
