"""
Counterpart identifier normalization.

Turns whatever a transport reports as a recipient ("Jane Doe" <Jane@X.com>,
+1 (555) 123-4567, a bare handle) into a stable matching key. Input that is
neither an address nor a phone number is kept verbatim so no record is dropped
over an ambiguous identity.
"""

import re
from email.utils import getaddresses, parseaddr

from kinship.features.relationship_intel.domain import NormalizedKey

_PHONE_CHARS = re.compile(r"^\+?[\d\s().\-]+$")
_NON_DIGITS = re.compile(r"\D")


def normalize(raw: str | None) -> NormalizedKey:
    value = (raw or "").strip()
    if not value:
        return NormalizedKey(key="", kind="raw", raw=raw or "")

    if "@" in value:
        return _normalize_address(value)

    if _PHONE_CHARS.match(value) and _NON_DIGITS.sub("", value):
        return NormalizedKey(key=normalize_phone(value), kind="phone", raw=value)

    return NormalizedKey(key=value, kind="raw", raw=value)


def normalize_phone(value: str) -> str:
    """
    Reduce a phone number to its national 10-digit form.

    11 digits with a leading country 1 drop the 1; anything longer keeps its
    trailing 10 digits; shorter numbers are kept as their digits.
    """
    digits = _NON_DIGITS.sub("", value)
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    if len(digits) > 10:
        return digits[-10:]
    return digits


def _normalize_address(value: str) -> NormalizedKey:
    name, address = parseaddr(value)
    address = address.strip().lower()
    if "@" not in address:
        return NormalizedKey(key=value, kind="raw", raw=value)

    hint = name.strip().strip('"').strip() or None
    return NormalizedKey(key=address, kind="email", raw=value, display_hint=hint)


def split_recipients(header_value: str | None) -> list[str]:
    """
    Split a To/Cc header value into individual recipients.

    Commas inside quoted display names ("Doe, Jane" <jane@x.com>) do not split.
    Each recipient is returned as "Name <addr>" when a name was present so the
    display hint survives until normalize().
    """
    if not header_value:
        return []

    recipients = []
    for name, address in getaddresses([header_value]):
        if not address:
            continue
        recipients.append(f'"{name}" <{address}>' if name else address)
    return recipients
