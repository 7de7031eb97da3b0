"""Ledger record structures: one row per baseline creation and per verdict."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

VerdictStatus = Literal["passed", "failed"]


class BaselineRecord(BaseModel):
    id: int
    identity_key: str
    created_at: str


class VerdictRecord(BaseModel):
    id: int
    identity_key: str
    device: str
    status: VerdictStatus
    image_url: str = ""
    created_at: str
