from contextlib import asynccontextmanager
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from geodispatch import __version__
from geodispatch.middleware.error_handler import setup_error_handlers
from geodispatch.routers import admin_router, maps_router
from geodispatch.services.dispatch_service import DispatchService

logger = logging.getLogger("geodispatch.main")


def create_app(dispatch: Optional[DispatchService] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        dispatch: Pre-built dispatch service; built from settings at startup
                  when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = dispatch or DispatchService.from_settings()
        app.state.dispatch = service
        yield
        await service.aclose()

    app = FastAPI(
        title="Geospatial Dispatch API",
        description="Routes map tiles, geocoding and disease overlays to the right provider",
        version=__version__,
        lifespan=lifespan,
    )

    # Tests using TestClient without a context manager skip the lifespan
    if dispatch is not None:
        app.state.dispatch = dispatch

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with its status and duration."""
        req_id = hash(f"{time.time()}-{request.url.path}")

        start_time = time.time()
        path = request.url.path
        method = request.method

        # Tile lookups are too frequent to log one by one
        skip_logging = method == "GET" and path.startswith("/api/maps/tile")

        if not skip_logging:
            logger.info(f"🔔 {method} {path}")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            status_code = response.status_code

            if status_code < 400:
                status_str = f"✅ {status_code}"
            elif status_code < 500:
                status_str = f"⚠️ {status_code}"
            else:
                status_str = f"❌ {status_code}"

            if not skip_logging:
                logger.info(f"🏁 {method} {path} - {status_str} - {process_time:.3f}s")
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(f"💥 REQ#{req_id} ERROR: {method} {path} - {e.__class__.__name__} - {process_time:.4f}s")
            raise

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_error_handlers(app)

    app.include_router(maps_router.router)
    app.include_router(admin_router.router)

    @app.get("/")
    async def root():
        return {"message": "Geospatial Dispatch API", "version": __version__}

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
