"""Session lifecycle: login, refresh-token rotation, logout, password change."""

import pytest
from mongoengine.errors import NotUniqueError

from vidnet.models import Account
from vidnet.services.auth import TokenPair, verify_password
from vidnet.utils.errors import Conflict, NotFound, Unauthorized, ValidationError


def _stored_refresh_token(account_id):
    return Account.objects(id=account_id).first().refresh_token


def test_login_stores_returned_refresh_token(sessions, make_account):
    account = make_account("alice")
    result = sessions.login("alice", "password123")
    assert _stored_refresh_token(account.id) == result.refresh_token
    assert result.account["username"] == "alice"
    assert "password" not in result.account
    assert "refresh_token" not in result.account


def test_login_by_email_case_insensitive(sessions, make_account):
    account = make_account("alice")
    result = sessions.login("ALICE@example.com", "password123")
    assert result.account["id"] == str(account.id)


def test_login_wrong_password_is_unauthorized_not_not_found(sessions, make_account):
    make_account("alice")
    with pytest.raises(Unauthorized):
        sessions.login("alice", "wrong-password")


def test_login_unknown_account_is_not_found(sessions):
    with pytest.raises(NotFound):
        sessions.login("nobody", "password123")


def test_login_requires_identifier_and_password(sessions):
    with pytest.raises(ValidationError):
        sessions.login("  ", "password123")
    with pytest.raises(ValidationError):
        sessions.login("alice", "")


def test_second_login_invalidates_previous_refresh_token(sessions, make_account):
    make_account("alice")
    first = sessions.login("alice", "password123")
    sessions.login("alice", "password123")
    with pytest.raises(Unauthorized):
        sessions.refresh(first.refresh_token)


def test_refresh_rotates_and_rejects_original_token(sessions, make_account):
    account = make_account("alice")
    original = sessions.login("alice", "password123").refresh_token

    rotated = sessions.refresh(original)
    assert rotated.refresh_token != original
    assert _stored_refresh_token(account.id) == rotated.refresh_token

    with pytest.raises(Unauthorized) as exc:
        sessions.refresh(original)
    assert "reused" in exc.value.message
    # Rejection does not touch the stored value
    assert _stored_refresh_token(account.id) == rotated.refresh_token


def test_refresh_chain_yields_fresh_tokens(sessions, make_account):
    make_account("alice")
    seen = set()
    token = sessions.login("alice", "password123").refresh_token
    seen.add(token)
    for _ in range(5):
        pair = sessions.refresh(token)
        assert pair.refresh_token not in seen
        assert pair.access_token not in seen
        seen.update({pair.refresh_token, pair.access_token})
        token = pair.refresh_token


def test_refresh_without_token_is_unauthorized(sessions):
    with pytest.raises(Unauthorized):
        sessions.refresh(None)
    with pytest.raises(Unauthorized):
        sessions.refresh("")


def test_refresh_with_garbage_or_access_token_is_invalid(sessions, make_account):
    make_account("alice")
    result = sessions.login("alice", "password123")
    for bad in ("not-a-jwt", result.access_token):
        with pytest.raises(Unauthorized) as exc:
            sessions.refresh(bad)
        assert exc.value.message == "Invalid refresh token"


def test_refresh_for_deleted_account_is_unauthorized(sessions, make_account):
    account = make_account("alice")
    token = sessions.login("alice", "password123").refresh_token
    Account.objects(id=account.id).delete()
    with pytest.raises(Unauthorized):
        sessions.refresh(token)


def test_refresh_losing_rotation_race_is_rejected(sessions, make_account, monkeypatch):
    account = make_account("alice")
    token = sessions.login("alice", "password123").refresh_token
    issue_pair = sessions.issuer.issue_pair

    def _rotate_concurrently(account_id) -> TokenPair:
        # Another request rotates the slot between our check and our write
        Account.objects(id=account_id).update_one(set__refresh_token="rotated-elsewhere")
        return issue_pair(account_id)

    monkeypatch.setattr(sessions.issuer, "issue_pair", _rotate_concurrently)
    with pytest.raises(Unauthorized):
        sessions.refresh(token)
    assert _stored_refresh_token(account.id) == "rotated-elsewhere"


def test_logout_clears_slot_and_is_idempotent(sessions, make_account):
    account = make_account("alice")
    token = sessions.login("alice", "password123").refresh_token
    sessions.logout(account.id)
    sessions.logout(account.id)
    assert _stored_refresh_token(account.id) is None
    with pytest.raises(Unauthorized):
        sessions.refresh(token)


def test_change_password(sessions, make_account):
    account = make_account("alice")
    token = sessions.login("alice", "password123").refresh_token

    with pytest.raises(Unauthorized):
        sessions.change_password(account.id, "wrong", "new-password")

    sessions.change_password(account.id, "password123", "new-password")
    stored = Account.objects(id=account.id).first().password
    assert verify_password("new-password", stored)
    with pytest.raises(Unauthorized):
        sessions.login("alice", "password123")
    # Existing session survives a password change
    assert sessions.refresh(token).refresh_token


def test_register_normalizes_username_and_email(make_account):
    account = make_account("  Alice ", email="Alice@Example.com")
    assert account.username == "alice"
    assert account.email == "alice@example.com"
    assert verify_password("password123", account.password)


def test_register_rejects_username_differing_only_in_case(make_account):
    make_account("alice")
    with pytest.raises(Conflict) as exc:
        make_account("ALICE", email="other@example.com")
    assert exc.value.message == "Username already taken"


def test_register_rejects_duplicate_email(make_account):
    make_account("alice")
    with pytest.raises(Conflict) as exc:
        make_account("alice2", email="alice@example.com")
    assert exc.value.message == "Email already taken"


def test_register_requires_fields(sessions):
    with pytest.raises(ValidationError):
        sessions.register(full_name=" ", email="a@example.com", username="a", password="x", avatar="https://a")
    with pytest.raises(ValidationError):
        sessions.register(full_name="A", email="a@example.com", username="a", password="x", avatar="")


def test_register_unique_index_race_is_conflict(sessions, monkeypatch):
    def _raise(self, *args, **kwargs):
        raise NotUniqueError("duplicate key")

    monkeypatch.setattr(Account, "save", _raise)
    with pytest.raises(Conflict):
        sessions.register(full_name="A", email="a@example.com", username="a", password="x", avatar="https://a")


def test_register_rejects_username_with_at_sign(sessions, make_account):
    make_account("bob")
    with pytest.raises(ValidationError):
        sessions.register(
            full_name="Mallory",
            email="mallory@example.com",
            username="bob@example.com",
            password="password123",
            avatar="https://a",
        )
    assert Account.objects(username="bob@example.com").count() == 0


def test_login_identifier_resolves_one_field(sessions, make_account):
    bob = make_account("bob")
    carol = make_account("carol", email="bob.backup@example.com")
    assert sessions.login("bob@example.com", "password123").account["id"] == str(bob.id)
    assert sessions.login("bob.backup@example.com", "password123").account["id"] == str(carol.id)
    with pytest.raises(NotFound):
        sessions.login("carol@example.com", "password123")
