"""
Versioned metafield mapping tables.

Each ``FieldRule`` says which payload keys feed a metafield and how its value is
encoded; a ``FieldMapping`` groups the rules used by every operation for one
product revision. ``FIELD_MAPPING_VERSION`` selects the active table.

- v1: phone optional, BI limits recorded, vehicles and household members stored
  as JSON arrays.
- v2: phone required, BI limits removed, vehicles and household members stored
  as human readable lists of strings.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from retainer_sync.logic.validators import coerce_integer, is_ymd, non_blank
from retainer_sync.models.metafield import MetafieldInput, MetafieldType

TRUTHY_STRINGS = frozenset({'true', 'yes', 'y', 'on', '1'})
FILE_GID_PREFIX = 'gid://'


@dataclass(frozen=True)
class FieldRule:
    """Maps the first non-blank payload value among ``sources`` to metafield ``key``."""

    key: str
    type: MetafieldType
    sources: Tuple[str, ...]
    always: bool = False
    default: Any = None


@dataclass(frozen=True)
class FieldMapping:
    """Rules of one mapping version for every operation."""

    version: str
    phone_required: bool
    intake_rules: Tuple[FieldRule, ...]
    profile_rules: Tuple[FieldRule, ...]
    order_rules: Tuple[FieldRule, ...]
    customer_snapshot_rules: Tuple[FieldRule, ...]
    mirrored_customer_keys: Tuple[str, ...] = field(default_factory=tuple)


def _encode_date(value: Any) -> Optional[str]:
    text = str(value).strip()
    return text if is_ymd(text) else None


def _encode_boolean(value: Any) -> Optional[str]:
    if isinstance(value, str):
        truthy = value.strip().lower() in TRUTHY_STRINGS
    else:
        truthy = bool(value)
    return 'true' if truthy else 'false'


def _encode_integer(value: Any) -> Optional[str]:
    number = coerce_integer(value)
    return None if number is None else str(number)


def _encode_text(value: Any) -> Optional[str]:
    return str(value) if non_blank(value) else None


def _encode_json(value: Any) -> Optional[str]:
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    if isinstance(value, str):
        try:
            json.loads(value)
        except ValueError:
            return None
        return value.strip()
    return None


def _encode_list(value: Any) -> Optional[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            value = [value]
    if not isinstance(value, (list, tuple)):
        return None
    items = [str(item).strip() for item in value if non_blank(item)]
    return json.dumps(items) if items else None


def _encode_file_reference(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.startswith(FILE_GID_PREFIX):
        return value
    return None


ENCODERS: Dict[MetafieldType, Callable[[Any], Optional[str]]] = {
    MetafieldType.DATE: _encode_date,
    MetafieldType.BOOLEAN: _encode_boolean,
    MetafieldType.INTEGER: _encode_integer,
    MetafieldType.SINGLE_LINE_TEXT: _encode_text,
    MetafieldType.MULTI_LINE_TEXT: _encode_text,
    MetafieldType.JSON: _encode_json,
    MetafieldType.LIST_SINGLE_LINE_TEXT: _encode_list,
    MetafieldType.FILE_REFERENCE: _encode_file_reference,
}


def encode_value(metafield_type: MetafieldType, value: Any) -> Optional[str]:
    """Encode ``value`` for ``metafield_type``; None means the value is not valid for the type."""
    return ENCODERS[metafield_type](value)


def first_present(payload: Mapping[str, Any], sources: Iterable[str]) -> Any:
    for source in sources:
        value = payload.get(source)
        if non_blank(value):
            return value
    return None


def build_metafields(
    payload: Mapping[str, Any],
    rules: Iterable[FieldRule],
    namespace: str,
    owner_id: str,
) -> List[MetafieldInput]:
    """
    Apply mapping rules to a payload.

    Rules whose sources are all blank are skipped unless ``always`` is set, and
    values rejected by the type encoder are dropped instead of being sent.
    """
    metafields: List[MetafieldInput] = []
    for rule in rules:
        value = first_present(payload, rule.sources)
        if value is None:
            if not rule.always:
                continue
            value = rule.default

        encoded = encode_value(rule.type, value)
        if encoded is None:
            continue

        metafields.append(MetafieldInput(
            owner_id=owner_id,
            namespace=namespace,
            key=rule.key,
            type=rule.type,
            value=encoded,
        ))
    return metafields


_T = MetafieldType

_PLAN_RULES = (
    FieldRule('last_retainer_plan', _T.SINGLE_LINE_TEXT, ('retainer_plan',)),
    FieldRule('current_retainer_plan', _T.SINGLE_LINE_TEXT, ('retainer_plan',)),
    FieldRule('last_retainer_term', _T.SINGLE_LINE_TEXT, ('retainer_term',)),
    FieldRule('current_retainer_term', _T.SINGLE_LINE_TEXT, ('retainer_term',)),
)

_FILE_RULES = (
    FieldRule('signature', _T.FILE_REFERENCE, ('signature_file_id',)),
    FieldRule('drivers_license', _T.FILE_REFERENCE, ('license_file_id',)),
    FieldRule('car_insurance', _T.FILE_REFERENCE, ('insurance_card_file_id',)),
)

_SNAPSHOT_RULES = (
    FieldRule('last_retainer_plan', _T.SINGLE_LINE_TEXT, ('retainer_plan',)),
    FieldRule('last_retainer_term', _T.SINGLE_LINE_TEXT, ('retainer_term',)),
)

_ORDER_COMMON_RULES = (
    FieldRule('retainer_plan', _T.SINGLE_LINE_TEXT, ('retainer_plan',)),
    FieldRule('retainer_term', _T.SINGLE_LINE_TEXT, ('retainer_term',)),
    FieldRule('signature_url', _T.SINGLE_LINE_TEXT, ('retainer_signature_url', 'signature_url')),
    FieldRule('signed_name', _T.SINGLE_LINE_TEXT, ('retainer_signed_name', 'signed_name')),
    FieldRule('signed_date', _T.DATE, ('retainer_signed_date', 'signed_date')),
    FieldRule('intake_household_json', _T.JSON, ('intake_household_json',), always=True, default='[]'),
    FieldRule('intake_vehicles_json', _T.JSON, ('intake_vehicles_json',), always=True, default='[]'),
    FieldRule('intake_notes', _T.MULTI_LINE_TEXT, ('intake_notes',)),
    FieldRule('insurer', _T.SINGLE_LINE_TEXT, ('intake_insurer', 'insurer')),
)

_ORDER_TAIL_RULES = (
    FieldRule('has_bi', _T.BOOLEAN, ('intake_has_bi', 'has_bi'), always=True, default=False),
    FieldRule('dob', _T.DATE, ('intake_dob', 'dob')),
    FieldRule('cars_count', _T.INTEGER, ('intake_cars_count', 'cars_count'), always=True, default=0),
)

_FILE_KEYS = ('signature', 'drivers_license', 'car_insurance')

V1 = FieldMapping(
    version='v1',
    phone_required=False,
    intake_rules=(
        FieldRule('dob', _T.DATE, ('dob',)),
        FieldRule('insurer', _T.SINGLE_LINE_TEXT, ('insurer',)),
        FieldRule('bi_limits', _T.SINGLE_LINE_TEXT, ('bi_limits',)),
        FieldRule('has_bi', _T.BOOLEAN, ('has_bi',), always=True, default=False),
        FieldRule('cars_count', _T.INTEGER, ('cars_count',), always=True, default=0),
        FieldRule('household_json', _T.JSON, ('household',), always=True, default='[]'),
        FieldRule('vehicles_json', _T.JSON, ('vehicles',), always=True, default='[]'),
        FieldRule('intake_notes', _T.MULTI_LINE_TEXT, ('intake_notes',)),
    ) + _PLAN_RULES + _FILE_RULES,
    profile_rules=(
        FieldRule('insurer', _T.SINGLE_LINE_TEXT, ('insurer',)),
        FieldRule('bi_limits', _T.SINGLE_LINE_TEXT, ('bi_limits',)),
        FieldRule('has_bi', _T.BOOLEAN, ('has_bi',)),
        FieldRule('cars_count', _T.INTEGER, ('cars_count',)),
        FieldRule('dob', _T.DATE, ('dob',)),
        FieldRule('intake_notes', _T.MULTI_LINE_TEXT, ('intake_notes',)),
        FieldRule('household_json', _T.JSON, ('household',)),
        FieldRule('vehicles_json', _T.JSON, ('vehicles',)),
    ) + _FILE_RULES,
    order_rules=_ORDER_COMMON_RULES + (
        FieldRule('bi_limits', _T.SINGLE_LINE_TEXT, ('intake_bi_limits', 'bi_limits')),
    ) + _ORDER_TAIL_RULES,
    customer_snapshot_rules=_SNAPSHOT_RULES,
    mirrored_customer_keys=_FILE_KEYS + ('household_json', 'vehicles_json'),
)

V2 = FieldMapping(
    version='v2',
    phone_required=True,
    intake_rules=(
        FieldRule('dob', _T.DATE, ('dob',)),
        FieldRule('insurer', _T.SINGLE_LINE_TEXT, ('insurer',)),
        FieldRule('has_bi', _T.BOOLEAN, ('has_bi',), always=True, default=False),
        FieldRule('cars_count', _T.INTEGER, ('cars_count',), always=True, default=0),
        FieldRule('vehicles_list', _T.LIST_SINGLE_LINE_TEXT, ('vehicles_list',)),
        FieldRule('household_list', _T.LIST_SINGLE_LINE_TEXT, ('household_list',)),
        FieldRule('intake_notes', _T.MULTI_LINE_TEXT, ('intake_notes',)),
        FieldRule('phone_digits', _T.SINGLE_LINE_TEXT, ('phone_digits',)),
    ) + _PLAN_RULES + _FILE_RULES,
    profile_rules=(
        FieldRule('insurer', _T.SINGLE_LINE_TEXT, ('insurer',)),
        FieldRule('has_bi', _T.BOOLEAN, ('has_bi',)),
        FieldRule('cars_count', _T.INTEGER, ('cars_count',)),
        FieldRule('dob', _T.DATE, ('dob',)),
        FieldRule('intake_notes', _T.MULTI_LINE_TEXT, ('intake_notes',)),
        FieldRule('household_list', _T.LIST_SINGLE_LINE_TEXT, ('household_list',)),
        FieldRule('vehicles_list', _T.LIST_SINGLE_LINE_TEXT, ('vehicles_list',)),
    ) + _FILE_RULES,
    order_rules=_ORDER_COMMON_RULES + _ORDER_TAIL_RULES,
    customer_snapshot_rules=_SNAPSHOT_RULES,
    mirrored_customer_keys=_FILE_KEYS + ('vehicles_list', 'household_list'),
)

FIELD_MAPPINGS: Dict[str, FieldMapping] = {mapping.version: mapping for mapping in (V1, V2)}


def get_field_mapping(version: str) -> FieldMapping:
    """
    Look up a mapping table by version.

    Raises:
        ValueError: If the version is unknown
    """
    try:
        return FIELD_MAPPINGS[version]
    except KeyError:
        raise ValueError(f'unknown field mapping version: {version}') from None
