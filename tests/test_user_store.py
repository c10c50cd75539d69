"""
Tests for auth/store.py -- UserStore repository over in-memory SQLite.
"""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore, normalize_email


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def test_create_and_fetch_user(store):
    user_id = store.create_user(User(email="a@b.com", password_hash="h", first_name="A"))
    uuid.UUID(user_id)

    user = store.get_by_id(user_id)
    assert user.email == "a@b.com"
    assert user.first_name == "A"
    assert user.auth_method == "email"
    assert user.is_active is True
    assert user.created_at and user.updated_at
    assert user.last_login is None


def test_email_is_normalized_on_write_and_lookup(store):
    user_id = store.create_user(User(email="  Mixed@Case.COM "))
    assert store.get_by_email("mixed@case.com").id == user_id
    assert store.get_by_email("MIXED@CASE.COM ").id == user_id
    assert store.get_by_id(user_id).email == "mixed@case.com"


def test_duplicate_email_raises_integrity_error(store):
    store.create_user(User(email="a@b.com"))
    with pytest.raises(IntegrityError):
        store.create_user(User(email="A@B.com"))


def test_many_users_without_google_id(store):
    store.create_user(User(email="one@b.com"))
    store.create_user(User(email="two@b.com"))
    assert store.exists_by_email("one@b.com")
    assert store.exists_by_email("two@b.com")


def test_link_google_sets_identity_and_method(store):
    user_id = store.create_user(User(email="a@b.com", password_hash="h"))
    assert store.link_google(user_id, "g-1", "https://pic/1.png")

    user = store.get_by_google_id("g-1")
    assert user.id == user_id
    assert user.auth_method == "google"
    assert user.profile_picture_url == "https://pic/1.png"
    assert user.password_hash == "h"


def test_link_google_without_picture_keeps_existing_one(store):
    user_id = store.create_user(User(email="a@b.com", profile_picture_url="https://pic/old.png"))
    store.link_google(user_id, "g-1")
    assert store.get_by_id(user_id).profile_picture_url == "https://pic/old.png"


def test_google_id_is_unique(store):
    first = store.create_user(User(email="one@b.com"))
    second = store.create_user(User(email="two@b.com"))
    store.link_google(first, "g-1")
    with pytest.raises(IntegrityError):
        store.link_google(second, "g-1")


def test_deactivated_user_is_invisible_but_keeps_email(store):
    user_id = store.create_user(User(email="a@b.com", google_id="g-1"))
    assert store.deactivate_user(user_id)

    assert store.get_by_id(user_id) is None
    assert store.get_by_email("a@b.com") is None
    assert store.get_by_google_id("g-1") is None
    assert store.exists_by_email("a@b.com")
    assert store.exists_by_google_id("g-1")


def test_update_user_rejects_unknown_fields(store):
    user_id = store.create_user(User(email="a@b.com"))
    with pytest.raises(ValueError, match="email"):
        store.update_user(user_id, email="c@d.com")


def test_update_user_stamps_updated_at(store):
    user_id = store.create_user(User(email="a@b.com"))
    before = store.get_by_id(user_id).updated_at
    assert store.update_user(user_id, first_name="New")
    after = store.get_by_id(user_id)
    assert after.first_name == "New"
    assert after.updated_at >= before


def test_update_missing_user_returns_false(store):
    assert store.update_user("no-such-id", first_name="X") is False


def test_update_last_login(store):
    user_id = store.create_user(User(email="a@b.com"))
    store.update_last_login(user_id)
    assert store.get_by_id(user_id).last_login is not None


def test_init_schema_drop_wipes_users(store):
    store.create_user(User(email="a@b.com"))
    store.init_schema(drop=True)
    assert not store.exists_by_email("a@b.com")


def test_ping(store):
    store.ping()


def test_normalize_email():
    assert normalize_email("  A@B.Com ") == "a@b.com"
