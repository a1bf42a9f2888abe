"""
Base schemas and mixins for stored rows.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for schemas built from database rows.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Ignore columns the schema does not declare
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="ignore"
    )


class TimestampMixin(BaseModel):
    """Row timestamps."""
    created_at: datetime
    updated_at: Optional[datetime] = None
