"""
Base schema for models read from hand-authored JSON files.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for mapping-file schemas.

    Features:
        - Fields are read and written under their PascalCase aliases
        - Python code may use either the alias or the field name
        - Validate on attribute assignment
        - Unknown fields are ignored
    """
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore"
    )
