"""
tests/test_user_store.py -- Unit tests for the UserStore repository.

Coverage:
  - create/get by username and id
  - username uniqueness enforced by the DB (IntegrityError)
  - update_user: profile fields, ha1 replacement, unknown-field rejection
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.digest import derive_credential_hash
from auth.models import User
from auth.store import UserStore


def _user(username: str = "bob", password: str = "secret1") -> User:
    return User(username=username, ha1=derive_credential_hash(username, password), nickname=username.title())


def test_empty_store(user_store: UserStore) -> None:
    assert user_store.get_by_username("bob") is None
    assert user_store.get_by_id(1) is None


def test_create_and_fetch(user_store: UserStore) -> None:
    uid = user_store.create_user(_user())
    by_name = user_store.get_by_username("bob")
    by_id = user_store.get_by_id(uid)
    assert by_name == by_id
    assert by_id.ha1 == derive_credential_hash("bob", "secret1")
    assert by_id.nickname == "Bob"
    assert by_id.created_at


def test_username_lookup_is_case_sensitive(user_store: UserStore) -> None:
    user_store.create_user(_user())
    assert user_store.get_by_username("BOB") is None


def test_duplicate_username_rejected(user_store: UserStore) -> None:
    user_store.create_user(_user())
    with pytest.raises(IntegrityError):
        user_store.create_user(_user(password="different"))


def test_update_profile_fields(user_store: UserStore) -> None:
    uid = user_store.create_user(_user())
    assert user_store.update_user(uid, nickname="Robert", avatar_key="abc123") is True
    user = user_store.get_by_id(uid)
    assert user.nickname == "Robert"
    assert user.avatar_key == "abc123"


def test_password_change_replaces_ha1(user_store: UserStore) -> None:
    uid = user_store.create_user(_user())
    new_ha1 = derive_credential_hash("bob", "new-secret")
    user_store.update_user(uid, ha1=new_ha1)
    assert user_store.get_by_id(uid).ha1 == new_ha1


def test_update_unknown_user(user_store: UserStore) -> None:
    assert user_store.update_user(999, nickname="ghost") is False


def test_update_rejects_unknown_fields(user_store: UserStore) -> None:
    uid = user_store.create_user(_user())
    with pytest.raises(ValueError):
        user_store.update_user(uid, username="renamed")


def test_update_with_no_fields(user_store: UserStore) -> None:
    uid = user_store.create_user(_user())
    assert user_store.update_user(uid) is False
