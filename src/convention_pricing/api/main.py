from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config.settings import configure_logging, get_settings
from ..engine import PricingEngine
from ..services.pricing_service import PricingService
from .pricing_api import router as pricing_router
from .state import get_engine, get_pricing_service

configure_logging(get_settings())

app = FastAPI(
    title="Convention Pricing API",
    description="Price tiers, early-bird discounts and price schedules for Convention Crasher",
    version="1.0.0"
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include pricing API
app.include_router(pricing_router)


@app.get("/")
async def root():
    return {"status": "online", "message": "Convention Pricing API Active"}


@app.get("/system/status")
async def get_status(
    engine: PricingEngine = Depends(get_engine),
    service: PricingService = Depends(get_pricing_service),
):
    return {
        "engine_active": True,
        "default_currency": engine.settings.default_currency,
        "currencies_loaded": len(engine.currencies),
        "store": service.get_stats(),
    }
