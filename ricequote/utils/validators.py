"""Customer contact validation for quote submissions."""
import re
from typing import Dict, Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DIGITS_PATTERN = re.compile(r"^\d+$")

DEFAULT_PHONE_LENGTH = 10

# Dial code -> (country, national number length)
COUNTRY_OPTIONS = {
    '+91': ('India', 10),
    '+1': ('USA', 10),
    '+44': ('UK', 10),
    '+971': ('UAE', 9),
    '+61': ('Australia', 9),
    '+98': ('Iran', 10),
}


def phone_length_for(country_code: str) -> int:
    option = COUNTRY_OPTIONS.get(country_code)
    return option[1] if option else DEFAULT_PHONE_LENGTH


def validate_phone(number: Optional[str], country_code: str) -> Optional[str]:
    """
    Validate a national phone number for a dial code.

    Returns an error message, or None when the number is valid.
    """
    if not number:
        return 'Phone number is required'
    length = phone_length_for(country_code)
    if len(number) != length:
        return f'Phone number must be {length} digits'
    if not DIGITS_PATTERN.match(number):
        return 'Phone number must contain digits only'
    return None


def validate_email(email: Optional[str]) -> Optional[str]:
    """Returns an error message, or None when the address is valid."""
    if not email:
        return 'Email is required'
    if not EMAIL_PATTERN.match(email):
        return 'Email address is invalid'
    return None


def split_phone(phone: str) -> Dict[str, str]:
    """
    Split a stored phone like "+91 9876543210" into dial code and number.

    Unknown prefixes fall back to +91, the storefront's home market.
    """
    cleaned = re.sub(r"[^+\d]", "", phone or "")
    # Longest codes first so +971 is not read as +9...
    for code in sorted(COUNTRY_OPTIONS, key=len, reverse=True):
        if cleaned.startswith(code):
            return {'country_code': code, 'number': cleaned[len(code):]}
    return {'country_code': '+91', 'number': cleaned.lstrip('+')}
