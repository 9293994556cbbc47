# Overview: Settlement method vocabulary; resolves free-text payment method names into a closed bucket set.

"""
Settlement buckets.

Payment method names arrive as free text entered at the till ("Nakit",
"POS", "Açık Hesap", "Kredi Kartı", ...). Reports only care which bucket a
payment settles into, so the name is resolved once when the row is written
and the bucket is stored next to the raw name.

Unrecognized names fall into CASH. That is the only silent default in the
engine.
"""

from __future__ import annotations

BUCKET_CASH = "CASH"
BUCKET_CARD = "CARD"
BUCKET_OPEN_ACCOUNT = "OPEN_ACCOUNT"

BUCKETS = (BUCKET_CASH, BUCKET_CARD, BUCKET_OPEN_ACCOUNT)

# Turkish letters folded to ASCII before lookup; "İ".lower() would
# otherwise produce "i" plus a combining dot.
_FOLD = str.maketrans({
    "İ": "i", "I": "i", "ı": "i",
    "Ç": "c", "ç": "c",
    "Ş": "s", "ş": "s",
    "Ğ": "g", "ğ": "g",
    "Ö": "o", "ö": "o",
    "Ü": "u", "ü": "u",
})

_ALIASES = {
    "nakit": BUCKET_CASH,
    "cash": BUCKET_CASH,
    "pos": BUCKET_CARD,
    "kredi karti": BUCKET_CARD,
    "kart": BUCKET_CARD,
    "card": BUCKET_CARD,
    "credit card": BUCKET_CARD,
    "acik hesap": BUCKET_OPEN_ACCOUNT,
    "open account": BUCKET_OPEN_ACCOUNT,
    "veresiye": BUCKET_OPEN_ACCOUNT,
}


def normalize_method_name(name: str | None) -> str:
    if not name:
        return ""
    return " ".join(name.translate(_FOLD).lower().split())


def resolve_bucket(name: str | None) -> str:
    """Map a payment method name to CASH, CARD or OPEN_ACCOUNT."""
    key = normalize_method_name(name)
    if key.upper() in BUCKETS:
        return key.upper()
    return _ALIASES.get(key, BUCKET_CASH)


def is_open_account(name: str | None) -> bool:
    return resolve_bucket(name) == BUCKET_OPEN_ACCOUNT
