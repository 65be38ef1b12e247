"""
Services API - FastAPI router for inspecting configured service pricing.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..services.rules_service import RulesConfigError
from .state import rules_service

router = APIRouter(prefix="/services", tags=["services"])


class ServiceSummary(BaseModel):
    """Response model for a configured service."""
    id: str
    name: str
    description: str
    config_version: str
    base_fee: float
    minimum_charge: float
    work_steps: int
    addons: int
    multipliers: int
    scope_includes: list[str]


class ValidationResponse(BaseModel):
    """Response model for validation."""
    service_id: str
    valid: bool
    errors: list[str]
    warnings: list[str]


def _summary(service) -> ServiceSummary:
    rules = service.rules
    return ServiceSummary(
        id=service.id,
        name=service.name,
        description=service.description,
        config_version=service.config_version,
        base_fee=rules.base_fee,
        minimum_charge=rules.minimum_charge,
        work_steps=len(rules.work_steps),
        addons=len(rules.addons),
        multipliers=len(rules.multipliers),
        scope_includes=list(service.scope_includes),
    )


def _load(service_id: str):
    try:
        return rules_service.get_service(service_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Service '{service_id}' not found")
    except RulesConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("", response_model=list[ServiceSummary])
async def list_services():
    """List all configured services."""
    try:
        return [_summary(s) for s in rules_service.list_services()]
    except RulesConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/stats")
async def get_stats():
    """Get service configuration statistics."""
    try:
        return rules_service.get_stats()
    except RulesConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{service_id}", response_model=ServiceSummary)
async def get_service(service_id: str):
    """Get a single service by ID."""
    return _summary(_load(service_id))


@router.get("/{service_id}/validate", response_model=ValidationResponse)
async def validate_service(service_id: str):
    """Check a service's rules for configuration that would degrade prices."""
    service = _load(service_id)
    result = rules_service.validate_rules(service.rules)
    return ValidationResponse(
        service_id=service.id,
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
    )
