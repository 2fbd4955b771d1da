'''
Facility models for the Facilities module.
'''
from uuid import UUID, uuid4
from typing import Optional
from pydantic import BaseModel, model_validator, Field


class Facility(BaseModel):

    id : UUID = Field(default_factory=lambda: uuid4(), frozen=True)
    name : str
    location : str
    description : Optional[str] = None
    images : list[str] = Field(default_factory=list)
    sport_types : list[str] = Field(default_factory=list)
    price_per_hour : Optional[float] = None

    @model_validator(mode="after")
    def validate_structure(self):
        # a free facility is fine, a negative price is not
        if self.price_per_hour is not None and self.price_per_hour < 0:
            raise ValueError("Facility price must not be negative.")
        return self

    def to_dict(self) -> dict:
        """
        Serialize the facility into a dictionary.

        Returns:
            dict: Mapping with stringified identifiers.
        """
        return {
            "id": str(self.id),
            "name": self.name,
            "location": self.location,
            "description": self.description,
            "images": list(self.images),
            "sport_types": list(self.sport_types),
            "price_per_hour": self.price_per_hour,
        }


class FacilitySummary(BaseModel):
    """Facility fields embedded in a booking."""

    id : UUID
    name : str
    location : Optional[str] = None
    images : list[str] = Field(default_factory=list)


class TrainerSummary(BaseModel):
    """Trainer fields embedded in a booking."""

    id : UUID
    name : str
    specialization : Optional[str] = None
    avatar : Optional[str] = None
