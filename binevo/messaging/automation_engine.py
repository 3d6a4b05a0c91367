"""
Automation engine.

``fire_automation_trigger`` starts one execution per matching active
automation. Steps run in order; a step with ``delay_minutes`` parks the
execution as ``waiting`` until ``resume_at``, and the automations cron
(``resume_delayed_automations``) picks it up again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import (
    Automation,
    AutomationExecution,
    AutomationStep,
    Donor,
    Ngo,
)
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import AutomationAction, NotificationType
from binevo.crm.tags import assign_tags, remove_tag

from .email import ngo_email_config, send_email, unsubscribe_url
from .notifications import create_notification, email_ngo_admins
from .sms import ngo_sms_config, send_sms
from .templates import admin_alert_email

logger = get_logger(__name__)

STATUS_RUNNING = "running"
STATUS_WAITING = "waiting"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

_DELAY_ELAPSED_KEY = "delay_elapsed_step"


@dataclass
class TriggerContext:
    ngo_id: str
    donor_id: Optional[str] = None
    campaign_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


def render_template(text: str, donor: Optional[Donor], ngo: Ngo, data: Optional[Dict[str, Any]] = None) -> str:
    """Replace ``{{name}}``-style placeholders."""
    values: Dict[str, Any] = {
        "name": (donor.name if donor and donor.name else "prieten"),
        "ngo": ngo.name,
        "ngo_name": ngo.name,
    }
    values.update({k: v for k, v in (data or {}).items() if isinstance(v, (str, int, float))})
    for key, value in values.items():
        text = text.replace("{{" + key + "}}", str(value))
    return text


async def fire_automation_trigger(session: AsyncSession, trigger: str, context: TriggerContext) -> int:
    """Run every active automation of the NGO listening to ``trigger``; returns executions started."""
    stmt = select(Automation).where(
        (Automation.ngo_id == context.ngo_id)
        & (Automation.trigger == trigger)
        & (Automation.is_active == True)  # noqa: E712
    )
    automations = list((await session.execute(stmt)).scalars().all())
    started = 0
    for automation in automations:
        wanted_campaign = (automation.trigger_config or {}).get("campaign_id")
        if wanted_campaign and wanted_campaign != context.campaign_id:
            continue

        execution = AutomationExecution(
            automation_id=automation.id,
            ngo_id=context.ngo_id,
            donor_id=context.donor_id,
            status=STATUS_RUNNING,
            context={"trigger": trigger, "campaign_id": context.campaign_id, **context.data},
        )
        automation.run_count += 1
        automation.last_run_at = utc_now()
        session.add(automation)
        session.add(execution)
        await session.commit()

        await run_execution(session, execution)
        started += 1

    if started:
        logger.info(f"Trigger {trigger} for NGO {context.ngo_id} started {started} automation(s)")
    return started


async def _load_steps(session: AsyncSession, automation_id: str) -> List[AutomationStep]:
    stmt = (
        select(AutomationStep)
        .where(AutomationStep.automation_id == automation_id)
        .order_by(AutomationStep.position)
    )
    return list((await session.execute(stmt)).scalars().all())


async def run_execution(session: AsyncSession, execution: AutomationExecution, now: Optional[datetime] = None) -> str:
    """Advance an execution as far as possible and return its new status."""
    now = now or utc_now()
    execution_id = execution.id
    steps = await _load_steps(session, execution.automation_id)
    ngo = await session.get(Ngo, execution.ngo_id)
    donor = await session.get(Donor, execution.donor_id) if execution.donor_id else None

    index = execution.current_step
    try:
        while index < len(steps):
            step = steps[index]
            if step.delay_minutes > 0 and execution.context.get(_DELAY_ELAPSED_KEY) != index:
                execution.status = STATUS_WAITING
                execution.current_step = index
                execution.resume_at = now + timedelta(minutes=step.delay_minutes)
                session.add(execution)
                await session.commit()
                return execution.status

            await _execute_step(session, step, execution, ngo, donor)
            index += 1
            execution.current_step = index

        execution.status = STATUS_COMPLETED
        execution.completed_at = utc_now()
        execution.resume_at = None
    except (SQLAlchemyError, ValueError, KeyError) as e:
        logger.error(f"Automation execution {execution_id} failed at step {index}: {e}", exc_info=True)
        if isinstance(e, SQLAlchemyError):
            await session.rollback()
            execution = await session.get(AutomationExecution, execution_id)
        execution.status = STATUS_FAILED
        execution.error = str(e)
        execution.completed_at = utc_now()

    session.add(execution)
    await session.commit()
    return execution.status


async def _execute_step(
    session: AsyncSession,
    step: AutomationStep,
    execution: AutomationExecution,
    ngo: Optional[Ngo],
    donor: Optional[Donor],
) -> None:
    if ngo is None:
        raise ValueError(f"NGO {execution.ngo_id} no longer exists")

    config = step.config or {}
    action = step.action

    if action == AutomationAction.SEND_EMAIL.value:
        if donor is None or donor.is_anonymized or not donor.email or not donor.email_consent:
            logger.debug(f"Skipping email step for execution {execution.id}: no consented address")
            return
        subject = render_template(config.get("subject", ngo.name), donor, ngo, execution.context)
        body = render_template(config.get("body", ""), donor, ngo, execution.context)
        await send_email(
            donor.email,
            subject,
            body,
            config=ngo_email_config(ngo),
            unsubscribe=unsubscribe_url(ngo.slug, donor.id),
        )

    elif action == AutomationAction.SEND_SMS.value:
        if donor is None or donor.is_anonymized or not donor.phone or not donor.sms_consent:
            logger.debug(f"Skipping SMS step for execution {execution.id}: no consented number")
            return
        body = render_template(config.get("body", ""), donor, ngo, execution.context)
        await send_sms(donor.phone, body, config=ngo_sms_config(ngo))

    elif action == AutomationAction.ADD_TAG.value:
        if donor is not None and config.get("tag"):
            await assign_tags(session, ngo.id, donor.id, [config["tag"]])
            await session.commit()

    elif action == AutomationAction.REMOVE_TAG.value:
        if donor is not None and config.get("tag"):
            await remove_tag(session, ngo.id, donor.id, config["tag"])
            await session.commit()

    elif action == AutomationAction.NOTIFY_ADMIN.value:
        title = render_template(config.get("subject", "Automatizare declansata"), donor, ngo, execution.context)
        message = render_template(config.get("message", title), donor, ngo, execution.context)
        await create_notification(
            session,
            ngo_id=ngo.id,
            type=NotificationType.AUTOMATION.value,
            title=title,
            message=message,
            details={"automation_id": execution.automation_id, "execution_id": execution.id},
        )
        subject, html_body = admin_alert_email(title, message)
        await email_ngo_admins(session, ngo.id, subject, html_body)

    elif action == AutomationAction.AI_SUGGESTION.value:
        await record_audit(
            session,
            action="AUTOMATION_AI_SUGGESTION",
            entity_type="Automation",
            entity_id=execution.automation_id,
            ngo_id=ngo.id,
            details={"execution_id": execution.id, "donor_id": execution.donor_id, "prompt": config.get("prompt")},
        )

    elif action in (AutomationAction.WAIT.value, AutomationAction.CONDITION.value):
        return

    else:
        raise ValueError(f"Unknown automation action {action}")


async def resume_delayed_automations(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """Continue every waiting execution whose delay has elapsed."""
    now = now or utc_now()
    stmt = select(AutomationExecution).where(
        (AutomationExecution.status == STATUS_WAITING) & (AutomationExecution.resume_at <= now)
    )
    due = list((await session.execute(stmt)).scalars().all())
    results = {"resumed": len(due), "completed": 0, "waiting": 0, "failed": 0}
    for execution in due:
        execution.context = {**(execution.context or {}), _DELAY_ELAPSED_KEY: execution.current_step}
        execution.status = STATUS_RUNNING
        status = await run_execution(session, execution, now=now)
        results[status] = results.get(status, 0) + 1
    return results
