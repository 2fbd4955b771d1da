from uuid import UUID, uuid4
from typing import Literal, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field, model_validator
from utils import validate_timestamps
from Facilities.structure import FacilitySummary, TrainerSummary


class Booking(BaseModel):

    id : UUID = Field(default_factory=lambda: uuid4(), frozen=True)
    user_id : UUID
    facility_id : UUID
    trainer_id : Optional[UUID] = None
    date : datetime
    time_slot : str
    status : Literal['upcoming', 'completed', 'cancelled'] = 'upcoming'
    total_cost : float = 0
    created_at : datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_modified_at : datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    facility : Optional[FacilitySummary] = None
    trainer : Optional[TrainerSummary] = None

    @model_validator(mode="after")
    def validate_booking(self):
        # enforce chronological consistency
        try:
            validate_timestamps(self.created_at, self.last_modified_at)
        except ValueError as e:
            raise ValueError(f"Booking {self.id} has invalid timestamps: {e}")
        if self.total_cost < 0:
            raise ValueError("Booking total_cost must not be negative.")
        return self
