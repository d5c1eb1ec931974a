# eyewear_catalog/models/base.py
from datetime import datetime
from typing import Optional
import pytz
from pydantic import BaseModel, ConfigDict, field_validator

class TimeStampedModel(BaseModel):
    """Base model with timestamp fields; naive timestamps are taken as UTC"""
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return pytz.utc.localize(value)
        return value
