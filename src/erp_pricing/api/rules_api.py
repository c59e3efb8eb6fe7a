"""
Rules API - FastAPI router for discount rule management.
"""
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..engine.models import DiscountKind, DiscountRule, RuleScope
from .state import rules_service

router = APIRouter(prefix="/rules", tags=["rules"])


# Pydantic models for API
class RuleCreate(BaseModel):
    """Request model for creating a rule."""
    rule_id: Optional[str] = None
    name: str
    scope: RuleScope
    scope_target_id: Optional[str] = None
    kind: DiscountKind
    value: Decimal
    priority: int = 50
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool = True

    def to_rule(self) -> DiscountRule:
        return DiscountRule(**{**self.model_dump(), "rule_id": self.rule_id or ""})


class RuleUpdate(BaseModel):
    """Request model for updating a rule."""
    name: Optional[str] = None
    scope: Optional[RuleScope] = None
    scope_target_id: Optional[str] = None
    kind: Optional[DiscountKind] = None
    value: Optional[Decimal] = None
    priority: Optional[int] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: Optional[bool] = None


class RuleResponse(BaseModel):
    """Response model for a rule; scope/kind/value echo stored data as-is."""
    rule_id: str
    name: str
    scope: str
    scope_target_id: Optional[str]
    kind: str
    value: str
    priority: int
    valid_from: Optional[date]
    valid_until: Optional[date]
    is_active: bool
    sequence: int

    @classmethod
    def from_rule(cls, rule: DiscountRule) -> 'RuleResponse':
        return cls(
            rule_id=rule.rule_id,
            name=rule.name,
            scope=str(getattr(rule.scope, 'value', rule.scope)),
            scope_target_id=rule.scope_target_id,
            kind=str(getattr(rule.kind, 'value', rule.kind)),
            value=str(rule.value),
            priority=rule.priority,
            valid_from=rule.valid_from,
            valid_until=rule.valid_until,
            is_active=rule.is_active,
            sequence=rule.sequence,
        )


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]


# Endpoints

@router.get("", response_model=list[RuleResponse])
def list_rules(include_inactive: bool = True):
    """List all discount rules."""
    rules = rules_service.list_rules(include_inactive=include_inactive)
    return [RuleResponse.from_rule(rule) for rule in rules]


@router.get("/stats")
def get_stats():
    """Get rule statistics."""
    return rules_service.get_stats()


@router.get("/{rule_id}", response_model=RuleResponse)
def get_rule(rule_id: str):
    """Get a single rule by ID."""
    rule = rules_service.get_rule(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
    return RuleResponse.from_rule(rule)


@router.post("", response_model=RuleResponse)
def create_rule(rule_data: RuleCreate):
    """Create a new discount rule."""
    rule = rule_data.to_rule()

    # Validate first
    validation = rules_service.validate_rule(rule)
    if not validation.valid:
        raise HTTPException(status_code=400, detail={"errors": validation.errors})

    try:
        created = rules_service.create_rule(rule)
        return RuleResponse.from_rule(created)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{rule_id}", response_model=RuleResponse)
def update_rule(rule_id: str, updates: RuleUpdate):
    """Update an existing rule."""
    # Only fields present in the body, including explicit nulls
    update_dict = updates.model_dump(exclude_unset=True)

    existing = rules_service.get_rule(rule_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")

    validation = rules_service.validate_rule(replace(existing, **update_dict))
    if not validation.valid:
        raise HTTPException(status_code=400, detail={"errors": validation.errors})

    try:
        updated = rules_service.update_rule(rule_id, update_dict)
        return RuleResponse.from_rule(updated)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{rule_id}")
def delete_rule(rule_id: str):
    """Delete a rule."""
    try:
        rules_service.delete_rule(rule_id)
        return {"success": True, "message": f"Rule '{rule_id}' deleted"}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/validate", response_model=ValidationResponse)
def validate_rule(rule_data: RuleCreate):
    """Validate a rule without saving."""
    result = rules_service.validate_rule(rule_data.to_rule())
    return ValidationResponse(
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
    )
