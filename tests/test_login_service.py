import re

import pytest

from passwordless.core.errors import ErrorCode, StorageFailure
from passwordless.services.login_service import LoginService
from passwordless.services.otp_service import OTPService
from passwordless.services.session_service import SessionService


@pytest.fixture
def login(db, clock, fake_sender):
    return LoginService(
        db,
        send_code=fake_sender,
        otps=OTPService(db, clock=clock),
        sessions=SessionService(db, clock=clock),
    )


class TestLoginFlow:
    """Email login from request to logout."""

    def test_end_to_end(self, login, sent_codes):
        requested = login.request_login("a@example.com")
        assert requested.success is True
        assert requested.is_new_user is True

        (to_address, code), = sent_codes
        assert to_address == "a@example.com"
        assert re.fullmatch(r"\d{6}", code)

        completed = login.complete_login(code)
        assert completed.success is True
        assert completed.user_id == requested.user_id

        current = login.current_session(completed.token)
        assert current.is_valid
        assert current.user_id == requested.user_id

        assert login.logout_everywhere(completed.token) == 1
        assert not login.current_session(completed.token).is_valid

    def test_returning_user_is_not_new(self, login):
        first = login.request_login("a@example.com")
        second = login.request_login("a@example.com")

        assert second.user_id == first.user_id
        assert second.is_new_user is False

    def test_code_is_single_use(self, login, sent_codes):
        login.request_login("a@example.com")
        code = sent_codes[-1][1]

        assert login.complete_login(code).success is True

        again = login.complete_login(code)
        assert again.success is False
        assert again.error == ErrorCode.INVALID_CODE

    def test_expired_code(self, login, sent_codes, clock):
        login.request_login("a@example.com")
        clock.advance(minutes=15)

        result = login.complete_login(sent_codes[-1][1])

        assert result.error == ErrorCode.EXPIRED_CODE
        assert result.token is None

    def test_malformed_code(self, login):
        assert login.complete_login("12-456").error == ErrorCode.MALFORMED_CODE

    def test_delivery_failure_is_distinct(self, db, clock):
        login = LoginService(db, send_code=lambda to, code: False, otps=OTPService(db, clock=clock))

        result = login.request_login("a@example.com")

        assert result.success is False
        assert result.error == ErrorCode.EMAIL_SEND_FAILED
        assert result.user_id is not None

    def test_storage_failure_on_issue(self, login, monkeypatch):
        def broken(user_id):
            raise StorageFailure("failed to store OTP code")

        monkeypatch.setattr(login.otps, "issue", broken)

        assert login.request_login("a@example.com").error == ErrorCode.OTP_GENERATION_FAILED

    def test_storage_failure_on_verify(self, login, monkeypatch):
        def broken(raw_code):
            raise StorageFailure("failed to verify OTP code")

        monkeypatch.setattr(login.otps, "verify", broken)

        assert login.complete_login("123456").error == ErrorCode.VERIFICATION_FAILED

    def test_cleanup_failure_does_not_fail_login(self, login, sent_codes, monkeypatch):
        login.request_login("a@example.com")

        def broken(user_id):
            raise StorageFailure("failed to remove OTP codes")

        monkeypatch.setattr(login.otps, "consume", broken)

        result = login.complete_login(sent_codes[-1][1])

        assert result.success is True
        assert login.current_session(result.token).is_valid

    def test_logout_ends_only_current_session(self, login, sent_codes):
        login.request_login("a@example.com")
        laptop = login.complete_login(sent_codes[-1][1]).token
        login.request_login("a@example.com")
        phone = login.complete_login(sent_codes[-1][1]).token

        login.logout(laptop)

        assert not login.current_session(laptop).is_valid
        assert login.current_session(phone).is_valid

    def test_logout_everywhere_with_bad_token(self, login):
        assert login.logout_everywhere("nope") is None
        assert login.logout_everywhere(None) is None
