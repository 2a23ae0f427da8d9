# salonbook/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader

import salonbook.models  # noqa: F401
from salonbook.config import settings
from salonbook.db import Base, engine
from salonbook.logic.errors import (
    AvailabilityConflict,
    BookingConflict,
    HasBookings,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotUnavailable,
)
from salonbook.routers import admin, payroll, public

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STATUS_CODES = {
    InvalidRequest: 400,
    InvalidTransition: 400,
    NotFound: 404,
    BookingConflict: 409,
    SlotUnavailable: 409,
    AvailabilityConflict: 409,
    HasBookings: 409,
}


def status_for(exc: SchedulingError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure all models are registered before creating tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="salonbook", lifespan=lifespan)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    status = status_for(exc)
    if status >= 409:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")
    return JSONResponse(status_code=status, content=exc.to_dict())


# Define API Key security scheme
api_key_scheme = APIKeyHeader(name="x-admin-key", auto_error=False)

# Show the admin key in the OpenAPI docs for /admin/* routes
for r in admin.router.routes + payroll.router.routes:
    if hasattr(r, "dependencies"):
        r.dependencies.append(Security(api_key_scheme))

app.include_router(public.router)
app.include_router(admin.router)
app.include_router(payroll.router)
