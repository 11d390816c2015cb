"""Phone number normalization.

Customer phone numbers arrive in whatever shape the checkout form produced
("07507 659550", "447507659550", "+44 7507 659550"). Accounts are looked up
by exact match, so every number is reduced to one international form before
it is stored or queried.
"""

import re

_STRIP = re.compile(r"[^\d+]")


def normalize_phone(raw: str | None, default_country_code: str = "+44") -> str | None:
    """Return ``raw`` in ``+<country><number>`` form, or None when unusable."""
    if raw is None:
        return None

    cleaned = _STRIP.sub("", str(raw))
    # Only a leading plus is meaningful
    if "+" in cleaned[1:]:
        cleaned = cleaned[0] + cleaned[1:].replace("+", "")
    if not re.search(r"\d", cleaned):
        return None

    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]

    country_digits = default_country_code.lstrip("+")
    if cleaned.startswith("0"):
        return default_country_code + cleaned[1:]
    if cleaned.startswith(country_digits):
        return "+" + cleaned
    return default_country_code + cleaned


def split_name(full_name: str | None) -> tuple[str, str]:
    """Split a declared full name into (first, last). Empty names become "Customer"."""
    parts = (full_name or "").split()
    if not parts:
        return "Customer", ""
    return parts[0], " ".join(parts[1:])
