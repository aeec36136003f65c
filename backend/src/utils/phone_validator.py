"""
Phone number normalization and validation utilities.

Clients are identified by phone number. Every lookup and insert goes through
normalize_phone_number so that "+34 612 345 678", "0034612345678" and
"612-345-678" all resolve to the same client.
"""

import re
from typing import List, Optional

from core.config import DEFAULT_PHONE_COUNTRY_CODE


def normalize_phone_number(phone: Optional[str], country_code: str = DEFAULT_PHONE_COUNTRY_CODE) -> str:
    """
    Reduce a phone number to its canonical national form.

    Removes everything except digits and '+', strips the international
    prefix of the default country (+CC, 00CC, or a bare CC when the number is
    too long to be national) and drops leading zeros.

    Args:
        phone: Phone number as typed by the user
        country_code: Country calling code without '+'

    Returns:
        Canonical phone number, or "" when phone is empty
    """
    if not phone:
        return ""

    normalized = re.sub(r"[^\d+]", "", phone)

    if normalized.startswith(f"+{country_code}"):
        normalized = normalized[len(country_code) + 1:]
    elif normalized.startswith(f"00{country_code}"):
        normalized = normalized[len(country_code) + 2:]
    elif normalized.startswith(country_code) and len(normalized) > 11:
        normalized = normalized[len(country_code):]

    return normalized.lstrip("0")


def is_valid_phone_number(phone: Optional[str]) -> bool:
    """A normalized number must be 9 to 15 digits."""
    normalized = normalize_phone_number(phone)
    return 9 <= len(normalized) <= 15 and normalized.isdigit()


def validate_phone_number(phone: Optional[str]) -> str:
    """
    Validate and normalize a phone number.

    Returns:
        Canonical phone number

    Raises:
        ValueError: If phone number is missing or invalid
    """
    if not phone or not phone.strip():
        raise ValueError('Phone number is required')

    if not is_valid_phone_number(phone):
        raise ValueError(f'Invalid phone number: {phone}')

    return normalize_phone_number(phone)


def get_phone_search_variations(phone: Optional[str], country_code: str = DEFAULT_PHONE_COUNTRY_CODE) -> List[str]:
    """
    Build the spellings under which a number may have been stored.

    National 9-digit numbers are also searched with the international
    prefixes; anything else only in its normalized form.
    """
    normalized = normalize_phone_number(phone, country_code)

    if len(normalized) == 9:
        return [
            normalized,
            f"+{country_code}{normalized}",
            f"00{country_code}{normalized}",
            f"{country_code}{normalized}",
        ]

    return [normalized]


def phone_numbers_equal(phone1: Optional[str], phone2: Optional[str]) -> bool:
    """Compare two numbers by canonical form; short numbers never match."""
    normalized1 = normalize_phone_number(phone1)
    return normalized1 == normalize_phone_number(phone2) and len(normalized1) >= 9
