# identity/verification/email_service.py

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from identity import config
from identity.interfaces import CodeSender
from identity.utils.logging_config import log_operation, log_context, mask

# Import the verification logger
from . import logger


class EmailCodeSender(CodeSender):
    """
    Sends verification codes by SMTP.

    With the email service disabled (the default outside production) the
    send is only logged, without the code itself.
    """

    logger = logger

    def __init__(
            self,
            enabled: Optional[bool] = None,
            smtp_server: str = config.SMTP_SERVER,
            smtp_port: int = config.SMTP_PORT,
            username: Optional[str] = config.SMTP_USERNAME,
            password: Optional[str] = config.SMTP_PASSWORD,
            from_email: str = config.FROM_EMAIL,
            subject: str = "Your verification code"
    ):
        self.enabled = config.EMAIL_SERVICE_ENABLED if enabled is None else enabled
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.subject = subject

    def build_message(self, destination: str, code: str, expires_in_minutes: int) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg['From'] = self.from_email
        msg['To'] = destination
        msg['Subject'] = self.subject

        body = f"""
        <html>
        <body>
            <h2>Verification code</h2>
            <p>Your verification code is: <strong>{code}</strong></p>
            <p>This code will expire in {expires_in_minutes} minutes.</p>
            <p>If you didn't request this code, please ignore this email.</p>
        </body>
        </html>
        """
        msg.attach(MIMEText(body, 'html'))
        return msg

    @log_operation("send_verification_email")
    def send_code(self, destination: str, code: str, expires_in_minutes: int) -> bool:
        with log_context(self.logger, destination=mask(destination), email_service_enabled=self.enabled):
            if not self.enabled:
                self.logger.info("EMAIL SERVICE DISABLED", extra={'action': 'would_send'})
                return True

            try:
                msg = self.build_message(destination, code, expires_in_minutes)

                server = smtplib.SMTP(self.smtp_server, self.smtp_port)
                try:
                    server.starttls()
                    if self.username:
                        server.login(self.username, self.password)
                    server.send_message(msg)
                finally:
                    server.quit()

                self.logger.info("Sent verification email")
                return True

            except (smtplib.SMTPException, OSError) as e:
                self.logger.error("Failed to send verification email", exc_info=True, extra={
                    'smtp_server': self.smtp_server,
                    'smtp_port': self.smtp_port,
                    'error_type': type(e).__name__
                })
                return False
