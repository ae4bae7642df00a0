"""
Validation and coercion of raw submission payloads.

The shaper turns whatever JSON the form posted into the canonical record
stored by app.storage. It assigns no id or timestamp; those belong to the
store.
"""

import json
import logging
import math
from typing import Any, Optional

from app.errors import MissingFieldError
from app.phone import normalize_phone_number

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "phone", "businessTitle")

RATING_MIN = 0
RATING_MAX = 5

# Address shapes seen from the form, keyed by schema version.
ADDRESS_FIELDS = {
    1: ("area", "town"),
    2: ("district", "mandal", "area"),
}
_V2_MARKERS = ("district", "mandal")


def to_text(value: Any) -> str:
    """
    Convert a JSON value to trimmed text.

    None and empty containers become an empty string; other lists and
    objects are rendered as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        if not value:
            return ""
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def clamp_rating(value: Any) -> Optional[float]:
    """Clamp a numeric rating into [0, 5]; anything non-numeric is None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return max(RATING_MIN, min(RATING_MAX, value))


def address_version(address: dict) -> int:
    if any(key in address for key in _V2_MARKERS):
        return 2
    return 1


def shape_address(raw: Any) -> tuple[int, dict]:
    """
    Coerce the address sub-record.

    Returns:
        Tuple of (schema version, address dict). Missing sub-fields are
        filled with empty strings.
    """
    address = raw if isinstance(raw, dict) else {}
    version = address_version(address)
    return version, {key: to_text(address.get(key)) for key in ADDRESS_FIELDS[version]}


def shape_submission(payload: Any) -> dict:
    """
    Validate and coerce a raw POST payload into a submission record.

    Args:
        payload: Decoded JSON body. Anything other than an object is
            treated as an empty payload.

    Returns:
        Dict with name, phone, business_title, address, address_version
        and rating, ready for create_submission().

    Raises:
        MissingFieldError: name, phone or businessTitle is absent or blank.
    """
    if not isinstance(payload, dict):
        payload = {}

    values = {field: to_text(payload.get(field)) for field in REQUIRED_FIELDS}
    # Normalization can strip a phone down to nothing ("0", "+")
    values["phone"] = normalize_phone_number(values["phone"])
    missing = [field for field, value in values.items() if not value]
    if missing:
        logger.debug(f"Submission rejected, missing fields: {missing}")
        raise MissingFieldError(fields=missing)

    version, address = shape_address(payload.get("address"))

    return {
        "name": values["name"],
        "phone": values["phone"],
        "business_title": values["businessTitle"],
        "address": address,
        "address_version": version,
        "rating": clamp_rating(payload.get("rating")),
    }
