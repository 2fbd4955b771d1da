"""Financial aid applications submitted by athletes."""
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


class FinancialAidApplication(BaseModel):

    id: UUID = Field(default_factory=uuid4, frozen=True)
    user_id: UUID
    sport: str
    reason: str
    amount_requested: float
    status: Literal["pending", "approved", "rejected"] = "pending"
    reviewer_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), frozen=True)

    @model_validator(mode="after")
    def validate_amount(self):
        if self.amount_requested <= 0:
            raise ValueError("amount_requested must be positive.")
        return self
