from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Optional
import sys
from pathlib import Path

# Add src to path for internal imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from quote_pricing import __version__
from quote_pricing.engine import CrossServiceReference, PricingContext, TaxConfig
from quote_pricing.services.rules_service import RulesConfigError, load_rules_dict
from quote_pricing.api.services_api import router as services_router
from quote_pricing.api.state import engine, settings


app = FastAPI(
    title="Quote Pricing API",
    description="Internal preview and audit API for the pricing rules engine",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include service configuration API
app.include_router(services_router)


class TaxRequest(BaseModel):
    enabled: bool = False
    label: Optional[str] = None
    rate: float = 0.0

    def to_config(self) -> TaxConfig:
        return TaxConfig.from_tenant_settings(self.enabled, self.label, self.rate)


class CalcRequest(BaseModel):
    """Either service_id or inline rules (pricingRules JSON shape) is required."""
    service_id: Optional[str] = None
    rules: Optional[dict[str, Any]] = None
    answers: dict[str, Any] = {}
    signals: dict[str, Any] = {}
    tax: Optional[TaxRequest] = None
    currency: Optional[str] = None
    project_description: Optional[str] = None
    confidence: Optional[float] = None


class CrossServiceRequest(BaseModel):
    service_name: str
    service_id: Optional[str] = None
    estimated_quantity: Optional[float] = None
    quantity_unit: Optional[str] = None
    extracted_details: list[str] = []
    confidence: float = 0.5
    signals: dict[str, Any] = {}
    tax: Optional[TaxRequest] = None
    currency: Optional[str] = None


def _tax_config(tax: Optional[TaxRequest]) -> TaxConfig:
    return tax.to_config() if tax else TaxConfig()


@app.get("/")
async def root():
    return {"status": "online", "message": "Quote Pricing API Active", "version": __version__}


@app.post("/calculate")
async def calculate_quote(req: CalcRequest):
    tax_config = _tax_config(req.tax)
    try:
        if req.service_id:
            result, trace = engine.price_service(
                req.service_id,
                req.answers,
                signals=req.signals,
                tax_config=tax_config,
                currency=req.currency,
                project_description=req.project_description,
                confidence=req.confidence,
            )
        elif req.rules is not None:
            context = PricingContext(
                project_description=req.project_description,
                confidence=req.confidence,
                config_version=settings.config_version,
            )
            result, trace = engine.calculate(
                load_rules_dict(req.rules),
                req.answers,
                signals=req.signals,
                tax_config=tax_config,
                currency=req.currency,
                context=context,
            )
        else:
            raise HTTPException(status_code=400, detail="Provide either service_id or rules")
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service '{req.service_id}' not found")
    except RulesConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "result": result.to_dict(),
        "trace": trace.to_dict(),
        "trace_text": trace.get_trace_text(),
    }


@app.post("/cross-service")
async def cross_service_estimate(req: CrossServiceRequest):
    reference = CrossServiceReference(
        service_name=req.service_name,
        service_id=req.service_id,
        estimated_quantity=req.estimated_quantity,
        quantity_unit=req.quantity_unit,
        extracted_details=tuple(req.extracted_details),
        confidence=req.confidence,
    )
    estimate = engine.estimate_cross_service(
        reference,
        signals=req.signals,
        tax_config=_tax_config(req.tax),
        currency=req.currency,
    )

    if estimate is None:
        return None
    data = estimate.to_dict()
    data["trace"] = estimate.trace.to_dict()
    return data
