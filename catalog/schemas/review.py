from typing import Optional

from pydantic import BaseModel, Field, field_validator

MIN_RATING = 1
MAX_RATING = 5


class ReviewCreate(BaseModel):
    """Schema for submitting a product review."""
    rating: int = Field(..., description="Rating from 1 to 5")
    title: Optional[str] = Field(None, max_length=255, description="Review headline")
    comment: Optional[str] = Field(None, description="Review text")

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, value):
        if not MIN_RATING <= value <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        return value
