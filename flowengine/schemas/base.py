"""Base Pydantic schemas with common patterns.

This module defines the base schema shared by every request, response
and engine result model.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas.

    Configures Pydantic v2 settings for consistent behavior across all schemas.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


__all__ = ["BaseSchema"]
