# identity/verification/flows.py
from typing import Callable

from identity.config import CODE_TTL_MINUTES
from identity.errors import (
    AccountNotFound, DeliveryFailed, DirectoryUnavailable, IdentityError, InvalidInput, InvalidOrExpired
)
from identity.interfaces import CodeSender, Directory
from identity.models import DirectoryUser, VerificationCode
from identity.utils.logging_config import log_operation, log_context, mask
from identity.utils.normalization import is_valid_email, normalize_email, sanitize_code
from identity.verification.code_manager import VerificationCodeManager

# Import the verification logger
from . import logger


class _CodeFlow:
    logger = logger

    def __init__(self, manager: VerificationCodeManager, sender: CodeSender):
        self.manager = manager
        self.sender = sender

    def _issue_and_deliver(self, email: str) -> VerificationCode:
        # An undelivered code keeps its cooldown
        record = self.manager.issue(email)
        if not self.sender.send_code(record.destination, record.code, CODE_TTL_MINUTES):
            raise DeliveryFailed(f"Could not deliver verification code to {mask(record.destination)}")
        return record

    def _redeem(self, email: str, raw_code: str) -> VerificationCode:
        result = self.manager.redeem(email, sanitize_code(raw_code))
        if not result.success:
            raise InvalidOrExpired()
        return result.record

    def seconds_until_resend(self, email: str) -> int:
        return self.manager.seconds_until_resend(email)


class TwoFactorLogin(_CodeFlow):
    """
    Second factor for a password login.

    The caller has already checked the password shape; once the emailed code
    is redeemed, `authorize_sign_in(email)` performs the actual sign-in.
    """

    def __init__(
            self,
            manager: VerificationCodeManager,
            sender: CodeSender,
            authorize_sign_in: Callable[[str], object]
    ):
        super().__init__(manager, sender)
        self.authorize_sign_in = authorize_sign_in

    @log_operation("two_factor_start")
    def start(self, email: str) -> VerificationCode:
        """Issue a code for the login email and deliver it"""
        return self._issue_and_deliver(email)

    @log_operation("two_factor_resend")
    def resend(self, email: str) -> VerificationCode:
        """Same as start; the manager's throttle decides if it is too soon"""
        return self._issue_and_deliver(email)

    @log_operation("two_factor_verify")
    def verify(self, email: str, raw_code: str):
        """
        Redeem the submitted code and authorize the sign-in.

        Returns:
            Whatever `authorize_sign_in` returns

        Raises:
            InvalidInput: empty email or incomplete code
            InvalidOrExpired: the code was not accepted
        """
        record = self._redeem(email, raw_code)
        with log_context(self.logger, destination=mask(record.destination)):
            self.logger.info("Second factor accepted, authorizing sign-in")
            return self.authorize_sign_in(record.destination)


class PasswordRecovery(_CodeFlow):
    """Proves ownership of a registered email before a password reset."""

    def __init__(self, manager: VerificationCodeManager, sender: CodeSender, directory: Directory):
        super().__init__(manager, sender)
        self.directory = directory

    def _find_account(self, email: str) -> DirectoryUser:
        try:
            users = self.directory.find_by_emails_or_phones({email}, set())
        except IdentityError:
            raise
        except Exception as e:
            raise DirectoryUnavailable("User directory unavailable during account lookup") from e

        for user in sorted(users, key=lambda u: u.id):
            if user.normalized_email == email:
                return user
        raise AccountNotFound(f"No account registered for {mask(email)}")

    @log_operation("password_recovery_start")
    def start(self, email: str) -> DirectoryUser:
        """
        Raises:
            InvalidInput: email is empty or not shaped like an address
            AccountNotFound: nobody is registered with this email
        """
        if not is_valid_email(email):
            raise InvalidInput("A valid email address is required")
        email = normalize_email(email)

        with log_context(self.logger, destination=mask(email)):
            user = self._find_account(email)
            self._issue_and_deliver(email)
            self.logger.info("Password recovery code sent", extra={'user_id': user.id})
            return user

    @log_operation("password_recovery_resend")
    def resend(self, email: str) -> DirectoryUser:
        return self.start(email)

    @log_operation("password_recovery_verify")
    def verify(self, email: str, raw_code: str) -> DirectoryUser:
        """
        Returns:
            The account whose password may now be reset
        """
        record = self._redeem(email, raw_code)
        return self._find_account(record.destination)
