"""
Input models for request parsing using Pydantic.

Storefront forms post loosely typed values, so these models coerce instead of
rejecting: missing strings become empty, malformed arrays become empty lists.
Format checks that must produce HTTP 400 live in the service layer.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from retainer_sync.logic.validators import normalize_email, non_blank

TRUTHY_STRINGS = frozenset({'true', 'yes', 'y', 'on', '1'})
HOUSEHOLD_SEPARATOR = ' \u2014 '


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    return bool(value)


def _as_object_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class IntakeRequest(BaseModel):
    """Request model for the intake upsert endpoint."""

    model_config = ConfigDict(extra='ignore')

    email: Annotated[str, Field(
        default='',
        description='Customer email address, normalized to lower case',
        examples=['jane.doe@example.com']
    )] = ''

    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    phone_digits: str = ''
    password: str = ''
    home_address: str = ''
    dob: Annotated[str, Field(default='', description='Date of birth (YYYY-MM-DD)')] = ''
    insurer: str = ''
    bi_limits: str = ''
    has_bi: bool = False
    cars_count: Any = None
    intake_notes: str = ''
    retainer_plan: str = ''
    retainer_term: str = ''

    vehicles: Annotated[List[Dict[str, Any]], Field(
        default_factory=list,
        description='Vehicles as objects with year, make and model'
    )]

    household: Annotated[List[Dict[str, Any]], Field(
        default_factory=list,
        description='Household members as objects with name, dob and relationship'
    )]

    signature_data_url: str = ''
    license_data_url: str = ''
    insurance_card_data_url: str = ''

    @field_validator(
        'first_name', 'last_name', 'phone', 'phone_digits', 'password', 'home_address', 'dob',
        'insurer', 'bi_limits', 'intake_notes', 'retainer_plan', 'retainer_term',
        'signature_data_url', 'license_data_url', 'insurance_card_data_url',
        mode='before',
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v).strip()

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email_address(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator('has_bi', mode='before')
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return _as_flag(v)

    @field_validator('vehicles', 'household', mode='before')
    @classmethod
    def coerce_object_list(cls, v: Any) -> List[Dict[str, Any]]:
        return _as_object_list(v)

    @property
    def vehicles_list(self) -> List[str]:
        """Vehicles rendered as ``year make model`` lines."""
        lines = []
        for vehicle in self.vehicles:
            parts = [str(vehicle[key]) for key in ('year', 'make', 'model') if non_blank(vehicle.get(key))]
            if parts:
                lines.append(' '.join(parts).strip())
        return lines

    @property
    def household_list(self) -> List[str]:
        """Household members rendered as name, dob and relationship joined by ``HOUSEHOLD_SEPARATOR``."""
        lines = []
        for member in self.household:
            parts = [str(member[key]) for key in ('name', 'dob', 'relationship') if non_blank(member.get(key))]
            if parts:
                lines.append(HOUSEHOLD_SEPARATOR.join(parts).strip())
        return lines


class ProfileUpdateRequest(BaseModel):
    """Request model for partial profile updates; absent values are left untouched."""

    model_config = ConfigDict(extra='ignore')

    email: str = ''
    insurer: Optional[str] = None
    bi_limits: Optional[str] = None
    has_bi: Optional[bool] = None
    cars_count: Any = None
    dob: Optional[str] = None
    intake_notes: Optional[str] = None
    household_list: Optional[List[str]] = None
    vehicles_list: Optional[List[str]] = None
    household: Optional[List[Dict[str, Any]]] = None
    vehicles: Optional[List[Dict[str, Any]]] = None
    signature_data_url: str = ''
    license_data_url: str = ''
    insurance_card_data_url: str = ''

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email_address(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator('insurer', 'bi_limits', 'dob', 'intake_notes', mode='before')
    @classmethod
    def coerce_optional_text(cls, v: Any) -> Optional[str]:
        return None if v is None else _as_text(v)

    @field_validator('signature_data_url', 'license_data_url', 'insurance_card_data_url', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v).strip()

    @field_validator('has_bi', mode='before')
    @classmethod
    def only_booleans(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @field_validator('household_list', 'vehicles_list', mode='before')
    @classmethod
    def coerce_string_list(cls, v: Any) -> Optional[List[str]]:
        if not isinstance(v, list):
            return None
        return [_as_text(item) for item in v if non_blank(item)]

    @field_validator('household', 'vehicles', mode='before')
    @classmethod
    def coerce_object_list(cls, v: Any) -> Optional[List[Dict[str, Any]]]:
        return _as_object_list(v) if isinstance(v, list) else None


class CustomerCreateRequest(BaseModel):
    """Request model for direct account creation with a user supplied password."""

    model_config = ConfigDict(extra='ignore')

    email: str = ''
    password: str = ''
    first_name: str = ''
    last_name: str = ''
    phone: str = ''

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email_address(cls, v: Any) -> str:
        return normalize_email(v)

    @field_validator('password', 'first_name', 'last_name', 'phone', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v).strip()
