"""
Base schemas with common functionality.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator
from typing import Type, TypeVar, Any

from jobrunner.core.utils import ensure_utc

T = TypeVar('T', bound='BaseSchema')

class BaseSchema(BaseModel):
    """Base schema with common functionality for all schemas"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True
    )

    @classmethod
    def from_orm_model(cls: Type[T], orm_model: Any) -> T:
        """Create a schema instance from an ORM model"""
        return cls.model_validate(orm_model)

class TimestampedSchema(BaseSchema):
    """Base schema for models with timestamp fields"""
    created_at: datetime
    updated_at: datetime

    @field_validator('created_at', 'updated_at', mode='after')
    @classmethod
    def as_utc(cls, v):
        return ensure_utc(v)
