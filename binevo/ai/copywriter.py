"""
Fundraising copy generation.

Each request runs a ``pydantic_ai`` agent with a typed output against the
provider selected by ``AI_PROVIDER`` (OpenAI, Anthropic or Gemini).
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, UserError

from binevo.core.errors import AIProviderError, ServiceNotConfiguredError
from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "Esti un copywriter pentru organizatii non-profit din Romania. "
    "Scrii in limba romana, cald si concret, fara exagerari si fara promisiuni false. "
    "Poti folosi substituentul {{name}} pentru numele donatorului."
)


class CopyKind(str, Enum):
    SUBJECT = "subject"
    EMAIL_BODY = "email_body"
    SMS = "sms"


class SubjectSuggestions(BaseModel):
    subjects: List[str] = Field(description="Three to five alternative email subject lines, under 70 characters")


class EmailDraft(BaseModel):
    subject: str = Field(description="Email subject line")
    body_html: str = Field(description="Email body as simple HTML paragraphs")


class SmsDraft(BaseModel):
    text: str = Field(description="SMS text, at most 160 characters")


class CopyRequest(BaseModel):
    kind: CopyKind
    ngo_name: str
    campaign_type: Optional[str] = None
    goal: Optional[str] = None
    tone: str = "cald"
    context: Optional[str] = None


_OUTPUT_TYPES = {
    CopyKind.SUBJECT: SubjectSuggestions,
    CopyKind.EMAIL_BODY: EmailDraft,
    CopyKind.SMS: SmsDraft,
}


def build_prompt(request: CopyRequest) -> str:
    lines = [f"Organizatie: {request.ngo_name}", f"Ton: {request.tone}"]
    if request.campaign_type:
        lines.append(f"Tip campanie: {request.campaign_type}")
    if request.goal:
        lines.append(f"Obiectiv: {request.goal}")
    if request.context:
        lines.append(f"Context: {request.context}")
    task = {
        CopyKind.SUBJECT: "Propune subiecte de email pentru aceasta campanie.",
        CopyKind.EMAIL_BODY: "Scrie emailul complet pentru aceasta campanie.",
        CopyKind.SMS: "Scrie un SMS scurt (maxim 160 de caractere) pentru aceasta campanie.",
    }[request.kind]
    return task + "\n\n" + "\n".join(lines)


async def generate_copy(request: CopyRequest, model: Optional[str] = None) -> dict:
    """Run the agent and return its structured output as a dict."""
    model_name = model or settings.ai.model_name
    try:
        agent = Agent(model_name, output_type=_OUTPUT_TYPES[request.kind], system_prompt=SYSTEM_PROMPT)
        result = await agent.run(build_prompt(request))
    except UserError as e:
        logger.warning(f"AI provider {model_name} is not configured: {e}")
        raise ServiceNotConfiguredError("AI provider is not configured", code="AI_NOT_CONFIGURED") from e
    except AgentRunError as e:
        logger.error(f"AI generation with {model_name} failed: {e}")
        raise AIProviderError("AI generation failed") from e

    output = result.output
    if isinstance(output, SmsDraft) and len(output.text) > 160:
        output = SmsDraft(text=output.text[:157].rstrip() + "...")
    return {"kind": request.kind.value, "model": model_name, **output.model_dump()}
