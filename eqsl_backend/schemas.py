"""
Pydantic schemas for the eQSL backend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class CardResponse(BaseModel):
    public_id: str
    url: str
    thumb: str
    callsign: str
    date: str
    time: str
    band: str
    mode: str
    report: str
    note: str
    downloads: int


class UploadResponse(BaseModel):
    success: bool
    qsl: Optional[CardResponse] = None
    error: Optional[str] = None


class StoredObjectResponse(BaseModel):
    public_id: str
    key: str
    url: str
    created_at: float
    metadata: dict


class HealthResponse(BaseModel):
    ok: bool
