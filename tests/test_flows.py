# tests/test_flows.py

from unittest.mock import MagicMock

import pytest

from identity.errors import (
    AccountNotFound,
    DeliveryFailed,
    InvalidInput,
    InvalidOrExpired,
    ResendCooldownActive,
)
from identity.verification.code_manager import VerificationCodeManager
from identity.verification.flows import PasswordRecovery, TwoFactorLogin
from identity.verification.throttle import StoreResendThrottle


@pytest.fixture
def sender():
    mock = MagicMock()
    mock.send_code.return_value = True
    return mock


@pytest.fixture
def throttled_manager(code_store, clock):
    return VerificationCodeManager(code_store, throttle=StoreResendThrottle(code_store), clock=clock)


def test_two_factor_start_delivers_code(manager, sender):
    authorize = MagicMock()
    flow = TwoFactorLogin(manager, sender, authorize)

    record = flow.start("User@X.com")

    sender.send_code.assert_called_once_with("user@x.com", record.code, 5)
    authorize.assert_not_called()


def test_two_factor_verify_authorizes_sign_in(manager, sender):
    authorize = MagicMock(return_value="session")
    flow = TwoFactorLogin(manager, sender, authorize)
    record = flow.start("user@x.com")

    # Pasted with spaces, as the code box allows
    assert flow.verify("user@x.com", f"{record.code[:3]} {record.code[3:]}") == "session"
    authorize.assert_called_once_with("user@x.com")


def test_two_factor_verify_rejects_reuse(manager, sender):
    authorize = MagicMock()
    flow = TwoFactorLogin(manager, sender, authorize)
    record = flow.start("user@x.com")
    flow.verify("user@x.com", record.code)

    with pytest.raises(InvalidOrExpired):
        flow.verify("user@x.com", record.code)
    assert authorize.call_count == 1


def test_two_factor_verify_incomplete_code(manager, sender):
    flow = TwoFactorLogin(manager, sender, MagicMock())
    flow.start("user@x.com")

    with pytest.raises(InvalidInput):
        flow.verify("user@x.com", "12")


def test_two_factor_delivery_failure(manager, sender):
    sender.send_code.return_value = False
    flow = TwoFactorLogin(manager, sender, MagicMock())

    with pytest.raises(DeliveryFailed):
        flow.start("user@x.com")


def test_delivery_failure_keeps_cooldown(throttled_manager, sender, clock):
    """An undelivered code still counts as an issuance for the resend cooldown."""
    sender.send_code.return_value = False
    flow = TwoFactorLogin(throttled_manager, sender, MagicMock())

    with pytest.raises(DeliveryFailed):
        flow.start("user@x.com")
    assert flow.seconds_until_resend("user@x.com") == 60
    with pytest.raises(ResendCooldownActive):
        flow.resend("user@x.com")

    clock.advance(seconds=60)
    sender.send_code.return_value = True
    flow.resend("user@x.com")
    assert sender.send_code.call_count == 2


def test_two_factor_resend_respects_cooldown(throttled_manager, sender, clock):
    flow = TwoFactorLogin(throttled_manager, sender, MagicMock())
    flow.start("user@x.com")

    with pytest.raises(ResendCooldownActive):
        flow.resend("user@x.com")
    assert flow.seconds_until_resend("user@x.com") == 60

    clock.advance(seconds=60)
    assert flow.seconds_until_resend("user@x.com") == 0
    second = flow.resend("user@x.com")
    assert sender.send_code.call_count == 2
    assert sender.send_code.call_args[0][1] == second.code


def test_password_recovery_round_trip(manager, sender, directory):
    flow = PasswordRecovery(manager, sender, directory)

    user = flow.start("  A@X.com")
    record_code = sender.send_code.call_args[0][1]

    assert user.id == 1
    assert flow.verify("a@x.com", record_code).id == 1


def test_password_recovery_unknown_account(manager, sender, directory, code_store):
    flow = PasswordRecovery(manager, sender, directory)

    with pytest.raises(AccountNotFound):
        flow.start("ghost@x.com")
    assert code_store.records == []
    sender.send_code.assert_not_called()


@pytest.mark.parametrize("email", ["", "not-an-email", "a@b"])
def test_password_recovery_rejects_bad_email(manager, sender, directory, email):
    flow = PasswordRecovery(manager, sender, directory)

    with pytest.raises(InvalidInput):
        flow.start(email)
    assert directory.lookups == []


def test_password_recovery_wrong_code(manager, sender, directory):
    flow = PasswordRecovery(manager, sender, directory)
    flow.start("a@x.com")
    issued = sender.send_code.call_args[0][1]
    wrong = "100000" if issued != "100000" else "100001"

    with pytest.raises(InvalidOrExpired):
        flow.verify("a@x.com", wrong)
