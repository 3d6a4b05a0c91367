"""
AI copy generation I/O models.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from binevo.ai.copywriter import CopyKind


class GenerateCopyRequest(BaseModel):
    kind: CopyKind = Field(description="subject, email_body or sms")
    campaign_type: Optional[str] = None
    goal: Optional[str] = Field(default=None, max_length=500)
    tone: str = Field(default="cald", max_length=50)
    context: Optional[str] = Field(default=None, max_length=2000)
