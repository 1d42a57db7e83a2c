from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import os

from smart_wardrobe.config import Settings, get_settings
from smart_wardrobe.database import Database
from smart_wardrobe.dependencies import build_mongo_container
from smart_wardrobe.routes import (
    ai,
    auth,
    garments,
    health,
    learning,
    outfits,
    recommendations,
    settings as settings_routes,
)

settings = get_settings()

# Logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ---------------- STARTUP ----------------
    app_settings: Settings = app.state.settings
    logger.info(f"🚀 Starting {app_settings.APP_NAME} v{app_settings.APP_VERSION}")

    # Database connection (FAIL FAST)
    try:
        await Database.connect_db(app_settings)
        logger.info("✅ Database connected successfully")
    except Exception as e:
        logger.critical(f"❌ Database startup failed: {e}")
        raise RuntimeError("Application startup aborted")

    app.state.container = build_mongo_container(app_settings, Database.get_database())
    logger.info(f"🤖 Vision providers available: {app.state.container.vision.available_services or 'none'}")

    yield

    # ---------------- SHUTDOWN ----------------
    logger.info("🛑 Shutting down application")

    # Let queued preference updates finish before the client goes away
    await app.state.container.learning.drain()

    await Database.close_db()
    logger.info("✅ Application shutdown complete")


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Smart wardrobe API: garment analysis, outfit suggestions and preference learning",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Static uploads
    os.makedirs(app_settings.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=app_settings.UPLOAD_DIR), name="uploads")

    # Routers
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(garments.router, prefix="/api/v1")
    app.include_router(outfits.router, prefix="/api/v1")
    app.include_router(learning.router, prefix="/api/v1")
    app.include_router(recommendations.router, prefix="/api/v1")
    app.include_router(settings_routes.router, prefix="/api/v1")
    app.include_router(ai.router, prefix="/api/v1")
    app.include_router(health.router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "status": "running",
            "docs": "/docs",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": str(exc) if app_settings.DEBUG else "Unexpected error",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "smart_wardrobe.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
