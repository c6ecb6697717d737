"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

from ..config import DEFAULT_COUNTRY_CODE

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-\(\)]+$")


def normalize_phone(phone: str, country_code: Optional[str] = None) -> str:
    """
    Normalize a phone number to E.164 format.

    Args:
        phone: Phone number string in various formats ("050-123-4567", "+972 50 1234567")
        country_code: Dialing code used for local numbers with a leading "0"
            (defaults to DEFAULT_COUNTRY_CODE)

    Returns:
        Normalized phone number ("+972501234567")

    Raises:
        ValueError: If the number contains no digits
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise ValueError("Phone number must contain digits")

    if digits.startswith("0"):
        prefix = (country_code or DEFAULT_COUNTRY_CODE).lstrip("+")
        return f"+{prefix}{digits[1:]}"

    return f"+{digits}"


def is_e164(phone: Optional[str]) -> bool:
    return bool(phone) and re.fullmatch(r"\+[1-9]\d{6,14}", phone) is not None


def normalize_hhmm(value: str) -> str:
    """Validate an HH:MM time and zero-pad the hour ("9:05" -> "09:05")"""
    if not TIME_PATTERN.match(value or ""):
        raise ValueError("Invalid time format (HH:MM)")
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{minutes}"


def format_slot(slot_date: date, slot_time: str) -> str:
    """Human readable slot for SMS texts"""
    return f"{slot_date.strftime('%d/%m/%Y')} at {slot_time}"
