"""
Intake record model for the alternate record backend.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retainer_sync.logic.validators import coerce_number, normalize_email


class IntakeRecord(BaseModel):
    """One stored intake, keyed by normalized email; the last write wins."""

    model_config = ConfigDict(extra='ignore')

    email: Annotated[str, Field(min_length=1, examples=['jane.doe@example.com'])]
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[str] = None
    phone: Optional[str] = None
    home_address: Optional[str] = None
    insurer: Optional[str] = None
    bi_limits: Optional[str] = None
    has_bi: bool = False
    cars_count: Union[int, float] = 0
    household: List[Any] = []
    vehicles: List[Any] = []
    notes: Optional[str] = None
    signature_url: Optional[str] = None
    updated_at: Annotated[str, Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description='ISO timestamp of the last write'
    )]

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email_address(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator(
        'full_name', 'first_name', 'last_name', 'phone', 'home_address', 'insurer', 'bi_limits', 'notes',
        mode='before',
    )
    @classmethod
    def coerce_optional_text(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator('dob', mode='before')
    @classmethod
    def blank_dob_is_none(cls, v: Any) -> Optional[str]:
        return str(v) if v else None

    @field_validator('has_bi', mode='before')
    @classmethod
    def truthiness(cls, v: Any) -> bool:
        return bool(v)

    @field_validator('cars_count', mode='before')
    @classmethod
    def finite_number(cls, v: Any) -> Union[int, float]:
        return coerce_number(v)

    @field_validator('household', 'vehicles', mode='before')
    @classmethod
    def arrays_only(cls, v: Any) -> List[Any]:
        return v if isinstance(v, list) else []

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], signature_url: Optional[str]) -> 'IntakeRecord':
        """Build a record from a PUT body, ignoring any client supplied timestamp."""
        data = {key: value for key, value in payload.items() if key not in ('updated_at', 'signature_url')}
        return cls(**data, signature_url=signature_url)
