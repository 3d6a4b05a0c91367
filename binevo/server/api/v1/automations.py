"""
Automation Endpoints.

Trigger-driven workflows: CRUD with ordered steps, and activation toggling
within the plan's active-automation limit.
"""

from __future__ import annotations

from typing import List, Sequence

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import get_plan_limit, has_feature, is_over_limit
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Automation, AutomationExecution, AutomationStep
from binevo.core.database.repositories import TenantRepository
from binevo.core.errors import PlanFeatureUnavailableError, PlanLimitReachedError
from binevo.core.models.domain import AutomationAction
from binevo.core.models.io.automations import (
    AutomationCreate,
    AutomationRead,
    AutomationStepIn,
    AutomationStepRead,
    AutomationUpdate,
)
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["automations"])

ADVANCED_ACTIONS = {AutomationAction.AI_SUGGESTION, AutomationAction.CONDITION}


def check_advanced_steps(ctx: TenantContext, steps: Sequence[AutomationStepIn]) -> None:
    if any(step.action in ADVANCED_ACTIONS for step in steps) and not has_feature(
        ctx.plan, "automations_advanced", ctx.user.role
    ):
        raise PlanFeatureUnavailableError(
            "Advanced automation features are not available on your plan",
            extra={"feature": "automations_advanced"},
        )


async def check_active_limit(session: AsyncSession, ctx: TenantContext) -> None:
    active = (
        await session.execute(
            select(func.count())
            .select_from(Automation)
            .where((Automation.ngo_id == ctx.ngo_id) & (Automation.is_active == True))  # noqa: E712
        )
    ).scalar_one()
    if is_over_limit(ctx.plan, "max_active_automations", active):
        limit = get_plan_limit(ctx.plan, "max_active_automations")
        raise PlanLimitReachedError(
            f"Active automation limit of {limit} reached for plan {ctx.plan}",
            code="AUTOMATION_LIMIT_REACHED",
            extra={"limit": limit},
        )


def build_steps(automation_id: str, steps: Sequence[AutomationStepIn]) -> List[AutomationStep]:
    return [
        AutomationStep(
            automation_id=automation_id,
            position=position,
            action=step.action.value,
            config=step.config,
            delay_minutes=step.delay_minutes,
        )
        for position, step in enumerate(steps)
    ]


async def to_read(session: AsyncSession, automation: Automation) -> AutomationRead:
    steps = (
        await session.execute(
            select(AutomationStep)
            .where(AutomationStep.automation_id == automation.id)
            .order_by(AutomationStep.position)
        )
    ).scalars().all()
    item = AutomationRead.model_validate(automation)
    item.steps = [AutomationStepRead.model_validate(s) for s in steps]
    return item


async def get_automation_or_404(session: AsyncSession, ngo_id: str, automation_id: str) -> Automation:
    automation = await TenantRepository(session, Automation).get(ngo_id, automation_id)
    if automation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Automation not found")
    return automation


@router.get("", response_model=List[AutomationRead], summary="List Automations")
async def list_automations(
    ctx: TenantContext = Depends(require_tenant("automations:read", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> List[AutomationRead]:
    automations = await TenantRepository(session, Automation).list(ctx.ngo_id, order_by=Automation.created_at.desc())
    return [await to_read(session, a) for a in automations]


@router.post(
    "",
    response_model=AutomationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Automation",
    responses={403: {"description": "Missing plan feature or active automation limit reached"}},
)
async def create_automation(
    payload: AutomationCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("automations:write", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> AutomationRead:
    check_advanced_steps(ctx, payload.steps)
    if payload.is_active:
        if not payload.steps:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot activate an automation with no steps"
            )
        await check_active_limit(session, ctx)

    automation = Automation(
        ngo_id=ctx.ngo_id,
        name=payload.name,
        description=payload.description,
        trigger=payload.trigger.value,
        trigger_config=payload.trigger_config,
        is_active=payload.is_active,
    )
    session.add(automation)
    session.add_all(build_steps(automation.id, payload.steps))
    await record_audit(
        session,
        action="AUTOMATION_CREATED",
        entity_type="Automation",
        entity_id=automation.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": automation.name, "trigger": automation.trigger, "steps_count": len(payload.steps)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return await to_read(session, automation)


@router.get("/{automation_id}", response_model=AutomationRead, summary="Get Automation")
async def get_automation(
    automation_id: str,
    ctx: TenantContext = Depends(require_tenant("automations:read", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> AutomationRead:
    return await to_read(session, await get_automation_or_404(session, ctx.ngo_id, automation_id))


@router.patch("/{automation_id}", response_model=AutomationRead, summary="Update Automation")
async def update_automation(
    automation_id: str,
    payload: AutomationUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("automations:write", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> AutomationRead:
    """Update an automation. When ``steps`` is given it replaces every existing step."""
    automation = await get_automation_or_404(session, ctx.ngo_id, automation_id)
    if payload.steps is not None:
        check_advanced_steps(ctx, payload.steps)
    if payload.is_active and not automation.is_active:
        await check_active_limit(session, ctx)

    changes = payload.model_dump(exclude_unset=True, exclude={"steps"})
    for key, value in changes.items():
        setattr(automation, key, value.value if hasattr(value, "value") else value)
    automation.updated_at = utc_now()
    session.add(automation)

    if payload.steps is not None:
        await session.execute(delete(AutomationStep).where(AutomationStep.automation_id == automation.id))
        session.add_all(build_steps(automation.id, payload.steps))
    await record_audit(
        session,
        action="AUTOMATION_UPDATED",
        entity_type="Automation",
        entity_id=automation.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"fields": sorted(payload.model_fields_set)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return await to_read(session, automation)


@router.delete("/{automation_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Automation")
async def delete_automation(
    automation_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("automations:write", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> None:
    automation = await get_automation_or_404(session, ctx.ngo_id, automation_id)
    await session.execute(delete(AutomationStep).where(AutomationStep.automation_id == automation.id))
    await session.execute(delete(AutomationExecution).where(AutomationExecution.automation_id == automation.id))
    await session.delete(automation)
    await record_audit(
        session,
        action="AUTOMATION_DELETED",
        entity_type="Automation",
        entity_id=automation.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": automation.name},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()


@router.post(
    "/{automation_id}/toggle",
    response_model=AutomationRead,
    summary="Toggle Automation",
    responses={400: {"description": "Automation has no steps"}, 403: {"description": "Active limit reached"}},
)
async def toggle_automation(
    automation_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("automations:write", feature="automations_basic")),
    session: AsyncSession = Depends(get_session),
) -> AutomationRead:
    automation = await get_automation_or_404(session, ctx.ngo_id, automation_id)
    if not automation.is_active:
        step_count = (
            await session.execute(
                select(func.count()).select_from(AutomationStep).where(AutomationStep.automation_id == automation.id)
            )
        ).scalar_one()
        if step_count == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot activate an automation with no steps"
            )
        await check_active_limit(session, ctx)

    automation.is_active = not automation.is_active
    automation.updated_at = utc_now()
    session.add(automation)
    await record_audit(
        session,
        action="AUTOMATION_ACTIVATED" if automation.is_active else "AUTOMATION_DEACTIVATED",
        entity_type="Automation",
        entity_id=automation.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": automation.name, "is_active": automation.is_active},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return await to_read(session, automation)
