"""Pydantic models for the report handed to presentation collaborators."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class CheckResultModel(BaseModel):
    status: str
    description: str
    data: dict[str, Any] = {}


class HealthReportModel(BaseModel):
    status: str
    checks: dict[str, CheckResultModel]
    cancelled: list[str] = []
