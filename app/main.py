import logging.config

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.ws import router as ws_router
from app.config import get_settings
from tandem.realtime.managers import shutdown_realtime, startup_realtime


settings = get_settings()


def configure_logging(level: str) -> None:
    """Send every log record to stderr; realtime records skip the root handler."""

    handler = {"class": "logging.StreamHandler", "formatter": "standard"}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"}},
            "handlers": {"default": handler},
            "root": {"handlers": ["default"], "level": level},
            "loggers": {
                "tandem.realtime": {"handlers": ["default"], "level": level, "propagate": False},
            },
        }
    )


configure_logging(settings.log_level)


app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


@app.on_event("startup")
async def _startup() -> None:
    await startup_realtime()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await shutdown_realtime()


app.include_router(api_router)
app.include_router(ws_router)
app.include_router(metrics_router)
