"""
Metafield model: a typed, namespaced key/value attribute on a remote Customer or Order.
"""

from enum import Enum
from typing import Annotated, Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class MetafieldType(str, Enum):
    """Metafield value types written by the handlers."""

    DATE = 'date'
    BOOLEAN = 'boolean'
    INTEGER = 'number_integer'
    SINGLE_LINE_TEXT = 'single_line_text_field'
    MULTI_LINE_TEXT = 'multi_line_text_field'
    JSON = 'json'
    LIST_SINGLE_LINE_TEXT = 'list.single_line_text_field'
    FILE_REFERENCE = 'file_reference'


class MetafieldInput(BaseModel):
    """One entry of a ``metafieldsSet`` mutation."""

    model_config = ConfigDict(frozen=True)

    owner_id: Annotated[str, Field(
        min_length=1,
        description='GID of the owning Customer or Order',
        examples=['gid://shopify/Customer/123']
    )]

    namespace: Annotated[str, Field(min_length=1, examples=['retainer'])]

    key: Annotated[str, Field(min_length=1, examples=['dob'])]

    type: MetafieldType

    value: Annotated[str, Field(description='Value encoded as the remote API expects for the type')]

    def to_graphql(self) -> Dict[str, Any]:
        """Variables shape of ``MetafieldsSetInput``."""
        return {
            'ownerId': self.owner_id,
            'namespace': self.namespace,
            'key': self.key,
            'type': self.type.value,
            'value': self.value,
        }
