"""
Auth Endpoint Tests

End-to-end tests for registration, OTP verification, login, logout and
password reset through the HTTP API.
"""

import pytest
from sqlalchemy import select

from trendx.core.config import settings
from trendx.models.user import User
from trendx.services.email_service import LenientDispatchPolicy

from conftest import TEST_OTP, TEST_PASSWORD, session_cookie


API = "/api/v1"


async def register(client, email="a@test.com", username="alice", password=TEST_PASSWORD):
    return await client.post(
        f"{API}/auth/register",
        json={"email": email, "username": username, "password": password},
    )


async def register_and_verify(client, email="a@test.com", username="alice") -> str:
    """Register and verify an account; returns the session token."""
    assert (await register(client, email=email, username=username)).status_code == 201
    response = await client.post(f"{API}/auth/verify-otp", json={"email": email, "otp": TEST_OTP})
    assert response.status_code == 200
    token = response.cookies[settings.SESSION_COOKIE_NAME]
    client.cookies.clear()
    return token


class TestRegistrationAndVerification:
    """The register → email code → verify → session flow."""

    @pytest.mark.asyncio
    async def test_full_flow(self, client, mail_transport):
        response = await register(client)

        assert response.status_code == 201
        assert response.json()["requires_verification"] is True

        # Mocked dispatcher received the code
        assert len(mail_transport.messages) == 1
        assert mail_transport.messages[0].to == "a@test.com"
        assert TEST_OTP in mail_transport.messages[0].text

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "a@test.com"
        assert body["user"]["is_email_verified"] is True
        assert "password_hash" not in body["user"]

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
        assert "HttpOnly" in set_cookie
        token = response.cookies[settings.SESSION_COOKIE_NAME]
        client.cookies.clear()

        response = await client.get(f"{API}/auth/me", headers=session_cookie(token))
        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert "password_hash" not in response.json()

        response = await client.get(f"{API}/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_code_cannot_be_used_twice(self, client):
        await register_and_verify(client)

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired verification code"

    @pytest.mark.asyncio
    async def test_wrong_code_is_rejected_with_generic_message(self, client):
        await register(client)

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "000000"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired verification code"
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_unknown_email_is_rejected_with_generic_message(self, client):
        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "nobody@test.com", "otp": TEST_OTP},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired verification code"

    @pytest.mark.asyncio
    async def test_verification_marks_user_verified(self, client, db_session):
        await register_and_verify(client)

        user = (
            await db_session.execute(select(User).where(User.email == "a@test.com"))
        ).scalar_one()

        assert user.is_email_verified is True
        assert user.email_verified_at is not None


class TestRegistrationValidation:
    """Conflicts and malformed input on register."""

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client):
        await register(client)

        response = await register(client, username="alice2")

        assert response.status_code == 409
        assert response.json()["field"] == "email"

    @pytest.mark.asyncio
    async def test_duplicate_email_is_case_insensitive(self, client):
        await register(client)

        response = await register(client, email="A@Test.com", username="alice2")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_username_conflicts(self, client):
        await register(client)

        response = await register(client, email="b@test.com")

        assert response.status_code == 409
        assert response.json()["field"] == "username"

    @pytest.mark.asyncio
    async def test_reserved_username_is_rejected(self, client):
        response = await register(client, username="Admin")

        assert response.status_code == 422
        assert response.json()["field"] == "username"

    @pytest.mark.asyncio
    async def test_invalid_email_reports_field(self, client):
        response = await register(client, email="not-an-email")

        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "Validation error"
        assert "email" in [error["field"] for error in body["errors"]]

    @pytest.mark.asyncio
    async def test_short_password_reports_field(self, client):
        response = await register(client, password="short")

        assert response.status_code == 422
        assert "password" in [error["field"] for error in response.json()["errors"]]

    @pytest.mark.asyncio
    async def test_password_over_bcrypt_limit_is_rejected(self, client):
        # 37 characters, 74 bytes
        response = await register(client, password="é" * 37)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_malformed_otp_is_rejected(self, client):
        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "12ab56"},
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "otp"

    @pytest.mark.asyncio
    async def test_code_length_follows_settings(self, client, otp_settings, monkeypatch):
        monkeypatch.setattr(settings, "OTP_LENGTH", 8)
        otp_settings.update(code_factory=lambda: "36389913")
        await register(client)

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "123456"},
        )
        assert response.status_code == 422

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "36389913"},
        )
        assert response.status_code == 200


class TestIssueOTP:
    """Resending verification codes."""

    @pytest.mark.asyncio
    async def test_resend_during_cooldown_is_quietly_skipped(self, client, mail_transport):
        await register(client)

        response = await client.post(f"{API}/auth/otp", json={"email": "a@test.com"})

        assert response.status_code == 200
        assert "retry-after" not in response.headers
        assert len(mail_transport.messages) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/auth/otp", "/auth/forgot-password"])
    async def test_repeat_requests_look_the_same_for_known_and_unknown_emails(self, client, path):
        await register(client)

        known = [await client.post(f"{API}{path}", json={"email": "a@test.com"}) for _ in range(2)]
        unknown = [await client.post(f"{API}{path}", json={"email": "nobody@test.com"}) for _ in range(2)]

        assert [r.status_code for r in known] == [200, 200]
        assert [(r.status_code, r.json()) for r in known] == [(r.status_code, r.json()) for r in unknown]

    @pytest.mark.asyncio
    async def test_resend_replaces_code(self, client, mail_transport, otp_settings):
        codes = iter(["111111", "222222"])
        otp_settings.update(code_factory=lambda: next(codes), cooldown_seconds=0)
        await register(client)

        response = await client.post(f"{API}/auth/otp", json={"email": "a@test.com"})
        assert response.status_code == 200
        assert len(mail_transport.messages) == 2
        assert "222222" in mail_transport.messages[1].text

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "111111"},
        )
        assert response.status_code == 401

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": "222222"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_email_gets_same_answer_without_a_code(self, client, mail_transport):
        response = await client.post(f"{API}/auth/otp", json={"email": "nobody@test.com"})

        assert response.status_code == 200
        assert mail_transport.messages == []


class TestLoginLogout:
    """Password login and logout."""

    @pytest.mark.asyncio
    async def test_login_with_email(self, client):
        await register_and_verify(client)

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "A@test.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"
        assert settings.SESSION_COOKIE_NAME in response.cookies

    @pytest.mark.asyncio
    async def test_login_with_username(self, client):
        await register_and_verify(client)

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        token = response.cookies[settings.SESSION_COOKIE_NAME]
        client.cookies.clear()

        response = await client.get(f"{API}/auth/me", headers=session_cookie(token))
        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "identifier, password",
        [
            ("alice", "wrong-password"),
            ("nobody", TEST_PASSWORD),
            ("nobody@test.com", TEST_PASSWORD),
        ],
    )
    async def test_bad_credentials_get_generic_401(self, client, identifier, password):
        await register_and_verify(client)

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": identifier, "password": password},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unverified_login_is_refused(self, client):
        await register(client)

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": TEST_PASSWORD},
        )

        assert response.status_code == 403
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_unverified_login_resends_code_after_cooldown(self, client, mail_transport, otp_settings):
        otp_settings.update(cooldown_seconds=0)
        await register(client)

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": TEST_PASSWORD},
        )

        assert response.status_code == 403
        assert len(mail_transport.messages) == 2

    @pytest.mark.asyncio
    async def test_logout_invalidates_session_server_side(self, client):
        token = await register_and_verify(client)

        response = await client.post(f"{API}/auth/logout", headers=session_cookie(token))
        assert response.status_code == 200
        client.cookies.clear()

        # The old cookie is dead even if the client kept it
        response = await client.get(f"{API}/auth/me", headers=session_cookie(token))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_without_session_succeeds(self, client):
        response = await client.post(f"{API}/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out"

    @pytest.mark.asyncio
    async def test_bogus_cookie_is_unauthorized(self, client):
        response = await client.get(f"{API}/auth/me", headers=session_cookie("forged"))

        assert response.status_code == 401


class TestPasswordReset:
    """Forgot / reset password."""

    @pytest.mark.asyncio
    async def test_reset_flow(self, client, mail_transport):
        token = await register_and_verify(client)

        response = await client.post(f"{API}/auth/forgot-password", json={"email": "a@test.com"})
        assert response.status_code == 200
        assert "reset" in mail_transport.messages[-1].subject.lower()

        response = await client.post(
            f"{API}/auth/reset-password",
            json={"email": "a@test.com", "otp": TEST_OTP, "new_password": "a-brand-new-password"},
        )
        assert response.status_code == 200
        client.cookies.clear()

        # Existing sessions are dropped
        response = await client.get(f"{API}/auth/me", headers=session_cookie(token))
        assert response.status_code == 401

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": "a-brand-new-password"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_verification_code_cannot_reset_password(self, client):
        await register(client)

        response = await client.post(
            f"{API}/auth/reset-password",
            json={"email": "a@test.com", "otp": TEST_OTP, "new_password": "a-brand-new-password"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_email_gets_same_answer(self, client, mail_transport):
        response = await client.post(f"{API}/auth/forgot-password", json={"email": "nobody@test.com"})

        assert response.status_code == 200
        assert mail_transport.messages == []


class TestOTPAttemptLimit:
    """Wrong guesses burn the pending code."""

    @pytest.mark.asyncio
    async def test_code_is_burned_after_max_wrong_attempts(self, client, otp_settings):
        otp_settings.update(max_attempts=3)
        await register(client)

        for _ in range(3):
            response = await client.post(
                f"{API}/auth/verify-otp",
                json={"email": "a@test.com", "otp": "000000"},
            )
            assert response.status_code == 401

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_fresh_code_starts_a_new_count(self, client, otp_settings):
        otp_settings.update(max_attempts=3, cooldown_seconds=0)
        await register(client)
        for _ in range(3):
            await client.post(f"{API}/auth/verify-otp", json={"email": "a@test.com", "otp": "000000"})

        response = await client.post(f"{API}/auth/otp", json={"email": "a@test.com"})
        assert response.status_code == 200

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_code_cannot_be_guessed(self, client, otp_settings):
        otp_settings.update(max_attempts=3)
        await register_and_verify(client)
        await client.post(f"{API}/auth/forgot-password", json={"email": "a@test.com"})

        for _ in range(3):
            await client.post(
                f"{API}/auth/reset-password",
                json={"email": "a@test.com", "otp": "000000", "new_password": "attacker-password"},
            )

        response = await client.post(
            f"{API}/auth/reset-password",
            json={"email": "a@test.com", "otp": TEST_OTP, "new_password": "attacker-password"},
        )
        assert response.status_code == 401

        response = await client.post(
            f"{API}/auth/login",
            json={"identifier": "alice", "password": TEST_PASSWORD},
        )
        assert response.status_code == 200


class TestDeliveryFailure:
    """What callers see when the mail transport is down."""

    @pytest.mark.asyncio
    async def test_strict_register_answers_503_and_keeps_account(self, client, mail_transport, db_session):
        mail_transport.fail = True

        response = await register(client)

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to send verification email"
        user = (
            await db_session.execute(select(User).where(User.email == "a@test.com"))
        ).scalar_one_or_none()
        assert user is not None
        assert user.is_email_verified is False

    @pytest.mark.asyncio
    async def test_strict_resend_answers_503(self, client, mail_transport):
        mail_transport.fail = True
        await register(client)

        response = await client.post(f"{API}/auth/otp", json={"email": "a@test.com"})

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_retry_after_failed_send_is_not_held_by_cooldown(self, client, mail_transport):
        mail_transport.fail = True
        assert (await register(client)).status_code == 503

        mail_transport.fail = False
        response = await client.post(f"{API}/auth/otp", json={"email": "a@test.com"})

        assert response.status_code == 200
        assert len(mail_transport.messages) == 1

        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_lenient_register_still_succeeds(self, client, mail_transport, email_dispatcher):
        mail_transport.fail = True
        email_dispatcher.policy = LenientDispatchPolicy()

        response = await register(client)

        assert response.status_code == 201
        assert mail_transport.messages == []

        # The code from the console fallback still works
        response = await client.post(
            f"{API}/auth/verify-otp",
            json={"email": "a@test.com", "otp": TEST_OTP},
        )
        assert response.status_code == 200
