import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from erp_pricing import __version__
from erp_pricing.api.rules_api import router as rules_router
from erp_pricing.api.state import calculator, settings, store
from erp_pricing.engine.models import PriceCalculation

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ERP Pricing API",
    description="Price resolution and discount stacking for the back-office console",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include rules management API
app.include_router(rules_router)


class CalcRequest(BaseModel):
    customer_id: Optional[str] = None
    item_id: str
    # Checked by the calculator, reported as InvalidQuantity
    quantity: Any
    pricing_date: Optional[date] = None


class LinesRequest(BaseModel):
    customer_id: Optional[str] = None
    items: Dict[str, Any]
    pricing_date: Optional[date] = None


class DiscountResponse(BaseModel):
    rule_id: str
    rule_name: str
    scope: str
    discount: Decimal


class CalcResponse(BaseModel):
    """Success carries the full breakdown; failure carries only `error`."""
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    base_price: Optional[Decimal] = None
    price_source: Optional[str] = None
    price_list_id: Optional[str] = None
    tier_min_quantity: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    total_discount: Optional[Decimal] = None
    discounts_applied: Optional[List[DiscountResponse]] = None
    warnings: Optional[List[str]] = None
    error: Optional[str] = None


def to_response(calculation: PriceCalculation) -> CalcResponse:
    return CalcResponse(**calculation.to_dict())


@app.get("/")
async def root():
    return {"status": "online", "message": "ERP Pricing API Active"}


@app.post("/calculate", response_model=CalcResponse, response_model_exclude_none=True)
def calculate_price(req: CalcRequest):
    try:
        result = calculator.calculate(req.customer_id, req.item_id, req.quantity, req.pricing_date)
        return to_response(result)
    except Exception as e:
        logger.exception("Unexpected error calculating price for %s", req.item_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/calculate/lines", response_model=List[CalcResponse], response_model_exclude_none=True)
def calculate_lines(req: LinesRequest):
    try:
        results = calculator.calculate_lines(req.customer_id, req.items, req.pricing_date)
        return [to_response(r) for r in results]
    except Exception as e:
        logger.exception("Unexpected error calculating lines")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/system/status")
def get_status():
    return {
        "engine_active": True,
        "data_dir": str(settings.data_dir),
        "counts": store.snapshot().counts(),
        "cost_floor": settings.enforce_cost_floor,
    }


@app.post("/system/reload")
def reload_data():
    snapshot = store.reload()
    return {"success": True, "counts": snapshot.counts()}
