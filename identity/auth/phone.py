"""Phone number parsing and default timezone resolution."""

from __future__ import annotations

import phonenumbers
import pytz

from identity.auth.errors import InvalidPhoneNumber
from identity.auth.models import PhoneNumber


def parse_phone_number(raw_number: str) -> PhoneNumber:
    """Parse digits (international form, with or without ``+``) into parts."""
    digits = raw_number.strip()
    candidate = digits if digits.startswith("+") else f"+{digits}"
    try:
        parsed = phonenumbers.parse(candidate, None)
    except phonenumbers.NumberParseException as exc:
        raise InvalidPhoneNumber() from exc

    iso_code = phonenumbers.region_code_for_number(parsed)
    if not parsed.country_code or not iso_code or iso_code == "001":
        raise InvalidPhoneNumber()

    return PhoneNumber(
        country_code=str(parsed.country_code),
        iso_code=iso_code,
        international_number=phonenumbers.format_number(
            parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL
        ),
    )


def default_timezone(iso_code: str) -> str:
    """Return the first listed timezone for an ISO 3166 country code."""
    zones = pytz.country_timezones.get(iso_code.upper(), [])
    if not zones:
        raise InvalidPhoneNumber()
    return zones[0]
