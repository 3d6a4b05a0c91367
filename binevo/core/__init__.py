"""Shared building blocks: logging, monitoring, errors, persistence and schemas."""
