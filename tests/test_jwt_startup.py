"""
tests/test_jwt_startup — JWT Secret Validation at Startup
===========================================================
The API must refuse to start when JWT_SECRET is missing, blank, too short,
or a known weak default.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from summit.api import deps


class TestJWTSecretValidation:
    """Prove that _load_jwt_secret() rejects bad secrets and accepts good ones."""

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                deps._load_jwt_secret()

    def test_rejects_known_weak_default(self):
        with patch.dict(os.environ, {"JWT_SECRET": "summit-dev-secret-change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "tooshort"}):
            with pytest.raises(RuntimeError, match="too short"):
                deps._load_jwt_secret()

    def test_accepts_strong_secret(self):
        good_secret = "a" * 64
        with patch.dict(os.environ, {"JWT_SECRET": good_secret}):
            assert deps._load_jwt_secret() == good_secret

    def test_rejects_change_me_variant(self):
        with patch.dict(os.environ, {"JWT_SECRET": "change-me"}):
            with pytest.raises(RuntimeError, match="known weak default"):
                deps._load_jwt_secret()


class TestMemberFromToken:
    def test_claims_become_context(self):
        from conftest import make_token

        ctx = deps.member_from_token(
            make_token("m1", "Ann", is_admin=True, tz="Europe/Paris"),
        )
        assert ctx.member_id == "m1"
        assert ctx.display_name == "Ann"
        assert ctx.timezone == "Europe/Paris"
        assert ctx.is_admin

    def test_default_timezone_applies(self):
        from conftest import make_token

        ctx = deps.member_from_token(make_token("m1"), "America/Denver")
        assert ctx.timezone == "America/Denver"
        assert not ctx.is_admin

    def test_token_signed_with_other_secret(self):
        import jwt

        from summit.errors import AuthRequired

        token = jwt.encode({"sub": "m1"}, "b" * 64, algorithm="HS256")
        with pytest.raises(AuthRequired):
            deps.member_from_token(token)
