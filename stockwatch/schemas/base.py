"""
Base schemas with common functionality.
"""
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar('T', bound='BaseSchema')


class BaseSchema(BaseModel):
    """
    Base schema for every wire and storage document.

    Field names are snake_case in Python and camelCase on the wire, matching
    the JSON documents exchanged over the queues and stored in JSON columns.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @classmethod
    def from_payload(cls: Type[T], payload: Dict[str, Any]) -> T:
        """Parse a camelCase JSON document"""
        return cls.model_validate(payload)

    def to_payload(self) -> Dict[str, Any]:
        """Dump to a JSON-safe camelCase document, dropping unset optionals"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenSchema(BaseSchema):
    """Immutable message documents (events and queued requests)"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )
