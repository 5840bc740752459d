"""Single place that knows which payload keys may carry a participant's email.

Clients have historically sent the address under different names. The lookup
order below is the only fallback chain in the codebase.
"""
from typing import Any, Dict, Optional

# Priority order: the canonical key first, then historical aliases.
EMAIL_FIELD = "email"
EMAIL_FIELD_ALIASES = ("email_address", "emailAddress", "personal_email")
EMAIL_KEYS = (EMAIL_FIELD,) + EMAIL_FIELD_ALIASES


def normalize_email(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized or None


def extract_email(*payloads: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the first non-empty email found, trying each payload in turn and
    each key in ``EMAIL_KEYS`` order within a payload."""
    for payload in payloads:
        if not payload:
            continue
        for key in EMAIL_KEYS:
            email = normalize_email(payload.get(key))
            if email:
                return email
    return None
