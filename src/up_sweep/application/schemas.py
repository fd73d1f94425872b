# src/up_sweep/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, Field


class SweepError(BaseModel):
    bid_id: str
    error: str


class SweepResult(BaseModel):
    run_at: datetime
    skipped_run: bool = False
    processed: int = 0
    accepted: int = 0
    declined: int = 0
    skipped: int = 0
    errors: int = 0
    accepted_ids: list[str] = Field(default_factory=list)
    declined_ids: list[str] = Field(default_factory=list)
    skipped_ids: list[str] = Field(default_factory=list)
    error_details: list[SweepError] = Field(default_factory=list)
    reconciled: int = 0
