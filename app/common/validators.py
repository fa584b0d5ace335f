"""
Validators for tax registration ids and invoice fields
"""
import re
from typing import Dict, Optional

# 15 characters: state code, PAN, entity number, 'Z', checksum
GSTIN_PATTERN = r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$'

# Jurisdictions that always get strict registration validation
BUILTIN_STRICT_PATTERNS: Dict[str, str] = {
    "IND": GSTIN_PATTERN,
    "IN": GSTIN_PATTERN,
}

EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'


def validate_gstin(gstin: str) -> bool:
    """
    Validate an Indian GSTIN.
    Empty values are accepted, the field is optional.
    """
    if not gstin:
        return True
    return re.match(GSTIN_PATTERN, gstin.strip().upper()) is not None


def validate_vat_number(vat_number: str) -> bool:
    """Free-form VAT id: 4 to 20 characters once spaces are removed."""
    if not vat_number:
        return True
    cleaned = re.sub(r'\s', '', vat_number)
    return 4 <= len(cleaned) <= 20


def strict_pattern_for(jurisdiction_code: Optional[str], overrides: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Configured strict pattern for a jurisdiction, if any."""
    if not jurisdiction_code:
        return None
    code = jurisdiction_code.strip().upper()
    patterns = {**BUILTIN_STRICT_PATTERNS, **(overrides or {})}
    return patterns.get(code)


def validate_tax_registration(
    value: str,
    jurisdiction_code: Optional[str],
    overrides: Optional[Dict[str, str]] = None
) -> bool:
    """
    Validate a tax registration id for a jurisdiction.

    Jurisdictions with a strict pattern (GSTIN for India plus whatever is
    configured) must match it; every other jurisdiction accepts a free-form
    VAT-style id. A missing jurisdiction is treated as India.
    """
    if not value:
        return True
    pattern = strict_pattern_for(jurisdiction_code or "IND", overrides)
    if pattern:
        return re.match(pattern, value.strip().upper()) is not None
    return validate_vat_number(value)


def validate_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return re.match(EMAIL_PATTERN, email.strip()) is not None
