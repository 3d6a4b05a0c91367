"""
Shared response envelopes.
"""

from __future__ import annotations

from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PageMeta(BaseModel):
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Page size")
    total: int = Field(description="Total matching rows")
    total_pages: int = Field(description="Number of pages")


class Page(BaseModel, Generic[T]):
    """A page of items plus pagination metadata."""

    items: List[T]
    pagination: PageMeta


class MessageResponse(BaseModel):
    message: str
