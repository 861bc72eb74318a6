import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from chatgate/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

# Import after dotenv is loaded
from chatgate.core.config import settings, split_csv, validate_config  # noqa: E402
from chatgate.core.database import create_all_tables  # noqa: E402
from chatgate.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from chatgate.core.logging import configure_logging  # noqa: E402
from chatgate.core.middleware.gate import RequestGateMiddleware  # noqa: E402
from chatgate.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from chatgate.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from chatgate.core.validation import validate_env  # noqa: E402
from chatgate.features.registry.service import seed_subscription_types  # noqa: E402
from chatgate.api import admin, chat, health, metrics, models, pricing, usage  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("chatgate")
    logger.info("Starting chatgate...")
    app.state.startup_time = time.time()
    create_all_tables()
    seed_subscription_types()
    try:
        yield
    finally:
        logging.getLogger("chatgate").info("Stopping chatgate...")


app = FastAPI(title="chatgate - entitlement & quota policy engine", lifespan=lifespan)

# Middlewares (last added runs first)
app.add_middleware(RequestGateMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=split_csv(settings.CORS_ALLOW_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router, tags=["health"])
app.include_router(metrics.router, tags=["metrics"])
app.include_router(pricing.router, tags=["pricing"])
app.include_router(models.router, tags=["models"])
app.include_router(usage.router, tags=["usage"])
app.include_router(chat.router, tags=["chat"])
app.include_router(admin.router, tags=["admin"])
