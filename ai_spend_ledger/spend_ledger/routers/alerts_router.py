"""Budgets (POST /budgets, owner) và alert rules (GET/POST /alerts, PATCH/DELETE /alerts/{id})."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import get_db
from spend_ledger.routers.deps import get_current_user_id, require_role
from spend_ledger.schemas.alerts import AlertRuleCreate, AlertRuleOut, AlertRulePatch
from spend_ledger.schemas.budgets import BudgetOut, BudgetUpsertRequest
from spend_ledger.services.alert_rule_service import (
    AlertRuleValidationError,
    create_rule,
    delete_rule,
    get_rule,
    list_rules,
    update_rule,
)
from spend_ledger.services.budget_service import upsert_budget
from spend_ledger.services.workspace_service import ADMIN_ROLES, OWNER_ROLES

router = APIRouter(tags=["alerts"])


@router.post("/budgets", response_model=BudgetOut)
async def post_budget(
    payload: BudgetUpsertRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> BudgetOut:
    """Create or update the month budget. Owner only."""
    await require_role(db, user_id, payload.workspace_id, OWNER_ROLES)
    budget = await upsert_budget(db, payload.workspace_id, payload.month, payload.amount, payload.currency)
    return BudgetOut.model_validate(budget)


@router.get("/alerts", response_model=List[AlertRuleOut])
async def get_alerts(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> List[AlertRuleOut]:
    await require_role(db, user_id, workspace_id)
    return [AlertRuleOut.model_validate(rule) for rule in await list_rules(db, workspace_id)]


@router.post("/alerts", response_model=AlertRuleOut, status_code=status.HTTP_201_CREATED)
async def post_alert(
    payload: AlertRuleCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> AlertRuleOut:
    """Tạo alert rule (owner/admin)."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    rule = await create_rule(
        db,
        payload.workspace_id,
        payload.type.value,
        payload.channel.value,
        payload.config,
        payload.webhook_url,
        payload.enabled,
        created_by=user_id,
    )
    return AlertRuleOut.model_validate(rule)


async def _load_rule_for_admin(db: AsyncSession, rule_id: UUID, user_id: str):
    rule = await get_rule(db, rule_id)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert rule not found")
    await require_role(db, user_id, rule.workspace_id, ADMIN_ROLES)
    return rule


@router.patch("/alerts/{rule_id}", response_model=AlertRuleOut)
async def patch_alert(
    rule_id: UUID,
    payload: AlertRulePatch,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> AlertRuleOut:
    rule = await _load_rule_for_admin(db, rule_id, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "channel" in changes and changes["channel"] is not None:
        changes["channel"] = changes["channel"].value
    try:
        rule = await update_rule(db, rule, changes)
    except AlertRuleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return AlertRuleOut.model_validate(rule)


@router.delete("/alerts/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_alert(
    rule_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    rule = await _load_rule_for_admin(db, rule_id, user_id)
    await delete_rule(db, rule)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
