"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base for request schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Accept field names as well as aliases
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True
    )


class CamelResponse(BaseModel):
    """
    Base for response schemas.

    Fields are snake_case in Python and camelCase on the wire,
    matching what the frontend already consumes.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )
