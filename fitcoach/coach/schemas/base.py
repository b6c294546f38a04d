"""Shared pydantic base for wire-facing records.

Plan entities and proposal payloads arrive camelCased from the completion
endpoint and the Plan Store. Python code uses snake_case attribute names.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model accepting both camelCase aliases and snake_case field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )
