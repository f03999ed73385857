# stay_booking/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stay_booking.config import ALLOWED_ORIGINS
from stay_booking.logging_config import setup_logging
from stay_booking.middleware import RequestIDMiddleware
from stay_booking.routes.bookings import router as bookings_router
from stay_booking.routes.listings import router as listings_router
from stay_booking.routes.ops import router as ops_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Stay Booking API",
    description="Listings, availability and reservations for short-term rentals",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(ops_router, tags=["Ops"])
app.include_router(listings_router, tags=["Listings"])
app.include_router(bookings_router, tags=["Bookings"])

logger.info("app_configured", routes=len(app.routes))
