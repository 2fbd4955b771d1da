"""Donations made by users to athletes."""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


class AthleteSummary(BaseModel):
    """Athlete fields embedded in a donation."""

    id: UUID
    name: str


class Donation(BaseModel):

    id: UUID = Field(default_factory=uuid4, frozen=True)
    donor_id: UUID
    athlete_id: UUID
    amount: float
    message: Optional[str] = None
    is_anonymous: bool = False
    donation_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    athlete: Optional[AthleteSummary] = None

    @model_validator(mode="after")
    def validate_amount(self):
        # donations are always strictly positive
        if self.amount <= 0:
            raise ValueError("Donation amount must be positive.")
        return self
