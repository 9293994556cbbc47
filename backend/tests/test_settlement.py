# Overview: Pytest coverage for settlement method resolution.

import pytest

from backoffice.services.settlement import (
    BUCKET_CARD,
    BUCKET_CASH,
    BUCKET_OPEN_ACCOUNT,
    is_open_account,
    resolve_bucket,
)


@pytest.mark.parametrize("name,expected", [
    ("Nakit", BUCKET_CASH),
    ("NAKIT", BUCKET_CASH),
    ("POS", BUCKET_CARD),
    ("pos", BUCKET_CARD),
    ("KREDİ KARTI", BUCKET_CARD),
    ("Kredi Kartı", BUCKET_CARD),
    ("Açık Hesap", BUCKET_OPEN_ACCOUNT),
    ("AÇIK HESAP", BUCKET_OPEN_ACCOUNT),
    ("  açık   hesap ", BUCKET_OPEN_ACCOUNT),
    ("OPEN_ACCOUNT", BUCKET_OPEN_ACCOUNT),
    ("card", BUCKET_CARD),
])
def test_known_names_resolve(name, expected):
    assert resolve_bucket(name) == expected


def test_unknown_name_defaults_to_cash():
    """Anything unrecognized settles as cash."""
    assert resolve_bucket("Havale") == BUCKET_CASH
    assert resolve_bucket("") == BUCKET_CASH
    assert resolve_bucket(None) == BUCKET_CASH


def test_is_open_account():
    assert is_open_account("Açık Hesap")
    assert not is_open_account("Nakit")
