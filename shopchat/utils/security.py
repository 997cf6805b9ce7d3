"""Security helpers: PII masking for safe logging."""
import re

_LONG_DIGITS = re.compile(r"\b\d{10,}\b")
_CARD = re.compile(r"\b(?:\d[ -]?){13,19}\b")
_EMAIL = re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b")


def mask_pii(text: str) -> str:
    if not text:
        return ""
    masked = _CARD.sub("[REDACTED]", text)
    masked = _LONG_DIGITS.sub("[REDACTED]", masked)
    masked = _EMAIL.sub("[EMAIL]", masked)
    return masked
