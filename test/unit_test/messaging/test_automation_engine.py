"""
Unit tests for the automation engine: trigger matching, step execution,
delayed steps and failure handling.
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from binevo.core.database.entities import (
    Automation,
    AutomationExecution,
    AutomationStep,
    Donor,
    Notification,
)
from binevo.crm.tags import tag_names_by_donor
from binevo.messaging.automation_engine import (
    TriggerContext,
    fire_automation_trigger,
    render_template,
    resume_delayed_automations,
)

pytestmark = pytest.mark.asyncio


async def _automation(session, ngo, steps, trigger="NEW_DONATION", is_active=True, trigger_config=None):
    automation = Automation(
        ngo_id=ngo.id,
        name="Multumire",
        trigger=trigger,
        trigger_config=trigger_config or {},
        is_active=is_active,
    )
    session.add(automation)
    await session.flush()
    for position, (action, config, delay) in enumerate(steps):
        session.add(
            AutomationStep(
                automation_id=automation.id,
                position=position,
                action=action,
                config=config,
                delay_minutes=delay,
            )
        )
    await session.commit()
    return automation


async def _donor(session, ngo) -> Donor:
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion", email_consent=True)
    session.add(donor)
    await session.commit()
    return donor


async def _executions(session):
    return list((await session.execute(select(AutomationExecution))).scalars().all())


async def test_render_template(ngo):
    donor = Donor(ngo_id=ngo.id, name="Maria")

    template = "Draga {{name}}, {{ngo}} iti multumeste pentru {{amount}} RON"
    text = render_template(template, donor, ngo, {"amount": 50})

    assert text == "Draga Maria, Asociatia Speranta iti multumeste pentru 50 RON"


async def test_render_template_defaults_name(ngo):
    assert render_template("Salut {{name}}", None, ngo) == "Salut prieten"


async def test_trigger_runs_steps_in_order(session, ngo):
    donor = await _donor(session, ngo)
    automation = await _automation(
        session,
        ngo,
        [
            ("ADD_TAG", {"tag": "donator"}, 0),
            ("NOTIFY_ADMIN", {"subject": "Donatie de la {{name}}"}, 0),
        ],
    )

    started = await fire_automation_trigger(
        session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id, donor_id=donor.id, data={"amount": 100})
    )

    assert started == 1
    [execution] = await _executions(session)
    assert execution.status == "completed"
    assert execution.current_step == 2
    assert (await tag_names_by_donor(session, [donor.id]))[donor.id] == ["donator"]
    titles = (await session.execute(select(Notification.title))).scalars().all()
    assert "Donatie de la Ion" in titles
    await session.refresh(automation)
    assert automation.run_count == 1


async def test_inactive_and_other_triggers_are_ignored(session, ngo):
    await _automation(session, ngo, [("WAIT", {}, 0)], is_active=False)
    await _automation(session, ngo, [("WAIT", {}, 0)], trigger="NEW_SUBSCRIBER")

    started = await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id))

    assert started == 0
    assert await _executions(session) == []


async def test_campaign_filter(session, ngo):
    await _automation(session, ngo, [("WAIT", {}, 0)], trigger_config={"campaign_id": "camp-1"})

    other = await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id, campaign_id="camp-2"))
    match = await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id, campaign_id="camp-1"))

    assert (other, match) == (0, 1)


async def test_delayed_step_waits_then_resumes(session, ngo):
    donor = await _donor(session, ngo)
    await _automation(
        session,
        ngo,
        [
            ("ADD_TAG", {"tag": "nou"}, 0),
            ("REMOVE_TAG", {"tag": "nou"}, 60),
        ],
    )

    await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id, donor_id=donor.id))
    [execution] = await _executions(session)
    assert execution.status == "waiting"
    assert execution.current_step == 1
    assert (await tag_names_by_donor(session, [donor.id]))[donor.id] == ["nou"]

    early = await resume_delayed_automations(session, now=execution.resume_at - timedelta(minutes=1))
    assert early["resumed"] == 0

    results = await resume_delayed_automations(session, now=execution.resume_at + timedelta(seconds=1))
    assert results["resumed"] == 1
    assert results["completed"] == 1
    await session.refresh(execution)
    assert execution.status == "completed"
    assert (await tag_names_by_donor(session, [donor.id]))[donor.id] == []


async def test_unknown_action_fails_execution(session, ngo):
    await _automation(session, ngo, [("LAUNCH_ROCKET", {}, 0)])

    await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id))

    [execution] = await _executions(session)
    assert execution.status == "failed"
    assert "Unknown automation action" in execution.error


async def test_email_step_skips_donor_without_consent(session, ngo):
    donor = Donor(ngo_id=ngo.id, email="fara@example.ro", email_consent=False)
    session.add(donor)
    await session.commit()
    await _automation(session, ngo, [("SEND_EMAIL", {"subject": "Hi", "body": "x"}, 0)])

    await fire_automation_trigger(session, "NEW_DONATION", TriggerContext(ngo_id=ngo.id, donor_id=donor.id))

    [execution] = await _executions(session)
    assert execution.status == "completed"
