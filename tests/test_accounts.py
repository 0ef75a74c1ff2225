"""Tests for the account directory."""

import pytest

from app import accounts, models
from app.errors import NotFound


def test_first_contact_creates_user(db):
    user = accounts.upsert_user(db, "555", display_name="Carol", username="carol")

    assert user.id is not None
    assert user.external_id == "555"
    assert user.display_name == "Carol"
    assert user.username == "carol"


def test_upsert_refreshes_names_and_keeps_id(db):
    first = accounts.upsert_user(db, "555", display_name="Carol", username="carol")
    again = accounts.upsert_user(db, "555", display_name="Carol K.", username="carolk")

    assert again.id == first.id
    assert again.display_name == "Carol K."
    assert again.username == "carolk"
    assert db.query(models.User).count() == 1


def test_upsert_with_missing_names_keeps_existing(db):
    accounts.upsert_user(db, "555", display_name="Carol", username="carol")
    user = accounts.upsert_user(db, "555")

    assert user.display_name == "Carol"
    assert user.username == "carol"


def test_numeric_external_id_is_normalized(db):
    user = accounts.upsert_user(db, 555)

    assert accounts.get_user_by_external_id(db, "555").id == user.id


def test_lookups_raise_not_found(db):
    with pytest.raises(NotFound):
        accounts.get_user(db, 404)
    with pytest.raises(NotFound):
        accounts.get_user_by_external_id(db, "nobody")
    assert accounts.find_user(db, "nobody") is None
