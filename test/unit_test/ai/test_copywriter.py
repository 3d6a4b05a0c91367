"""
Unit tests for campaign copy generation, using pydantic-ai's TestModel.
"""

import pytest
from pydantic_ai.exceptions import UserError
from pydantic_ai.models.test import TestModel

from binevo.ai import copywriter
from binevo.ai.copywriter import CopyKind, CopyRequest, build_prompt, generate_copy
from binevo.core.errors import ServiceNotConfiguredError

pytestmark = pytest.mark.asyncio


async def test_build_prompt_includes_only_given_fields():
    prompt = build_prompt(CopyRequest(kind=CopyKind.SMS, ngo_name="Asociatia Speranta", goal="10.000 RON"))

    assert prompt.startswith("Scrie un SMS scurt")
    assert "Organizatie: Asociatia Speranta" in prompt
    assert "Obiectiv: 10.000 RON" in prompt
    assert "Context:" not in prompt


async def test_subject_suggestions():
    model = TestModel(custom_output_args={"subjects": ["Iarna aceasta conteaza", "Ajuta-ne"]})

    result = await generate_copy(CopyRequest(kind=CopyKind.SUBJECT, ngo_name="Speranta"), model=model)

    assert result["kind"] == "subject"
    assert result["subjects"] == ["Iarna aceasta conteaza", "Ajuta-ne"]


async def test_email_body_draft():
    model = TestModel(custom_output_args={"subject": "Multumim", "body_html": "<p>Draga {{name}}</p>"})

    result = await generate_copy(CopyRequest(kind=CopyKind.EMAIL_BODY, ngo_name="Speranta"), model=model)

    assert result["subject"] == "Multumim"
    assert result["body_html"] == "<p>Draga {{name}}</p>"


async def test_long_sms_is_truncated():
    model = TestModel(custom_output_args={"text": "x" * 200})

    result = await generate_copy(CopyRequest(kind=CopyKind.SMS, ngo_name="Speranta"), model=model)

    assert len(result["text"]) == 160
    assert result["text"].endswith("...")



async def test_unconfigured_provider(monkeypatch):
    def _agent(*args, **kwargs):
        raise UserError("Set the `OPENAI_API_KEY` environment variable")

    monkeypatch.setattr(copywriter, "Agent", _agent)

    with pytest.raises(ServiceNotConfiguredError) as exc_info:
        await generate_copy(CopyRequest(kind=CopyKind.SMS, ngo_name="Speranta"), model="openai:gpt-4o-mini")

    assert exc_info.value.code == "AI_NOT_CONFIGURED"
