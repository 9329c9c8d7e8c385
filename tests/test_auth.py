"""
Accounts, login and role checks
"""
import pytest
from bson import ObjectId

from auth import authentication
from auth.session import Identity, has_role, require_role
from services.errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, ValidationError


@pytest.fixture
def account(ctx):
    return authentication.register_user(ctx.users, "Asha Naik", " Asha@Example.org ", "correct-horse")


def test_hash_and_verify():
    hashed = authentication.hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert authentication.verify_password("s3cret-pass", hashed)
    assert not authentication.verify_password("wrong", hashed)


def test_register_stores_lowercase_email_and_no_password(ctx, account):
    assert account["email"] == "asha@example.org"
    assert "password" not in account
    assert account["points"] == 0
    assert account["role"] == "user"
    stored = ctx.users.find_by_email("asha@example.org", include_password=True)
    assert stored["password"].startswith("$2")


def test_duplicate_email(ctx, account):
    with pytest.raises(ConflictError):
        authentication.register_user(ctx.users, "Other", "ASHA@example.org", "another-pass")


@pytest.mark.parametrize("name, email, password, role", [
    ("", "a@b.org", "long-enough", "user"),
    ("A", "", "long-enough", "user"),
    ("A", "a@b.org", "short", "user"),
    ("A", "a@b.org", "long-enough", "mayor"),
])
def test_register_rejects(ctx, name, email, password, role):
    with pytest.raises(ValidationError):
        authentication.register_user(ctx.users, name, email, password, role=role)


def test_login(ctx, account):
    identity = authentication.login(ctx.users, "ASHA@example.org", "correct-horse")
    assert identity == Identity(str(account["_id"]), "user")


@pytest.mark.parametrize("email, password", [
    ("asha@example.org", "wrong-horse"),
    ("ghost@example.org", "correct-horse"),
    ("asha@example.org", None),
])
def test_login_failures(ctx, account, email, password):
    with pytest.raises(UnauthorizedError):
        authentication.login(ctx.users, email, password)


def test_update_profile(ctx, account):
    user = authentication.update_profile(ctx.users, str(account["_id"]), {"name": "Asha N", "role": "admin"})
    assert user["name"] == "Asha N"
    assert user["role"] == "user"
    assert "password" not in user


def test_update_profile_email_taken(ctx, account):
    authentication.register_user(ctx.users, "Ravi", "ravi@example.org", "password-2")
    with pytest.raises(ConflictError):
        authentication.update_profile(ctx.users, str(account["_id"]), {"email": "Ravi@example.org"})


def test_update_profile_unknown_user(ctx):
    with pytest.raises(NotFoundError):
        authentication.update_profile(ctx.users, str(ObjectId()), {"name": "X"})


def test_change_password(ctx, account):
    with pytest.raises(UnauthorizedError):
        authentication.change_password(ctx.users, str(account["_id"]), "wrong", "brand-new-pass")
    authentication.change_password(ctx.users, str(account["_id"]), "correct-horse", "brand-new-pass")
    assert authentication.login(ctx.users, "asha@example.org", "brand-new-pass")
    with pytest.raises(UnauthorizedError):
        authentication.login(ctx.users, "asha@example.org", "correct-horse")


class TestRoles:
    def test_identity_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            Identity("x", "superuser")

    def test_privileged(self):
        assert Identity("x", "authority").is_privileged
        assert not Identity("x").is_privileged

    def test_has_role(self):
        assert has_role(Identity("x", "admin"), "admin", "authority")
        assert not has_role(None, "user")

    def test_require_role_defaults_to_privileged(self):
        admin = Identity("x", "admin")
        assert require_role(admin) is admin
        with pytest.raises(ForbiddenError) as exc:
            require_role(Identity("x"))
        assert exc.value.status_code == 403
        with pytest.raises(ForbiddenError):
            require_role(None, "user")
