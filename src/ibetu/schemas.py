"""Shared response envelopes."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Uniform result envelope: exactly one of ``error`` / ``data`` is set."""

    error: str | None = None
    data: T | None = None


class SuccessEnvelope(BaseModel):
    """Envelope for operations without a payload."""

    error: str | None = None
    success: bool
