"""
Order webhook payload model.

Only the parts of the order the reconciliation reads are modelled; everything else
in the platform payload is ignored.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from retainer_sync.logic.validators import non_blank


class NameValue(BaseModel):
    """A cart attribute or line-item property."""

    model_config = ConfigDict(extra='ignore')

    name: str = ''
    value: Any = None

    @field_validator('name', mode='before')
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return '' if v is None else str(v)


class LineItem(BaseModel):
    model_config = ConfigDict(extra='ignore')

    properties: List[NameValue] = []

    @field_validator('properties', mode='before')
    @classmethod
    def only_name_value_pairs(cls, v: Any) -> List[Any]:
        return [item for item in v if isinstance(item, dict)] if isinstance(v, list) else []


class WebhookCustomer(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Optional[Union[int, str]] = None
    email: Optional[str] = None


class OrderWebhookPayload(BaseModel):
    """``orders/create`` / ``orders/paid`` webhook body."""

    model_config = ConfigDict(extra='ignore')

    id: Union[int, str]
    email: Optional[str] = None
    customer: Optional[WebhookCustomer] = None
    note_attributes: List[NameValue] = []
    line_items: List[LineItem] = []

    @field_validator('note_attributes', 'line_items', mode='before')
    @classmethod
    def only_objects(cls, v: Any) -> List[Any]:
        return [item for item in v if isinstance(item, dict)] if isinstance(v, list) else []

    def cart_attributes(self) -> Dict[str, Any]:
        """Order-level free-text attributes as a flat map."""
        return {attribute.name: attribute.value for attribute in self.note_attributes if attribute.name}

    def line_item_properties(self) -> Dict[str, Any]:
        """Non-blank properties of every line item as a flat map; later items win."""
        properties: Dict[str, Any] = {}
        for line_item in self.line_items:
            for prop in line_item.properties:
                if prop.name and prop.value is not None and non_blank(str(prop.value)):
                    properties[prop.name] = prop.value
        return properties

    def reconciled_fields(self) -> Dict[str, Any]:
        """Cart attributes overlaid with line-item properties (properties take precedence)."""
        return {**self.cart_attributes(), **self.line_item_properties()}
