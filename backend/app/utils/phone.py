"""
Phone Number Helpers
E.164 normalization and NANP area-code extraction
"""
import re
from typing import Optional


def normalize_phone_number(phone: str) -> str:
    """
    Normalize phone number to E.164 format.

    Handles common formats:
    - (555) 123-4567 -> +15551234567 (assumes US if no country code)
    - 555.123.4567 -> +15551234567
    - +44 20 7946 0958 -> +442079460958

    Raises:
        ValueError: If phone is empty or has an impossible length
    """
    if not phone:
        raise ValueError("Phone number is empty")

    has_plus = phone.strip().startswith('+')
    cleaned = re.sub(r'[^\d]', '', phone)

    if not cleaned:
        raise ValueError("Invalid phone number")

    # International minimum is 7 digits, E.164 maximum is 15
    if len(cleaned) < 7:
        raise ValueError("Phone number too short (minimum 7 digits)")
    if len(cleaned) > 15:
        raise ValueError("Phone number too long (maximum 15 digits)")

    if has_plus:
        return f"+{cleaned}"

    # 10 digits: US/Canada without country code
    if len(cleaned) == 10:
        return f"+1{cleaned}"

    return f"+{cleaned}"


def extract_area_code(phone: str) -> Optional[str]:
    """
    Derive the NANP area code from a phone number.

    "+1 (512) 555-0100" -> "512", "5125550100" -> "512", anything else -> None
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return digits[:3]
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:4]
    return None
