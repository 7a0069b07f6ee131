class MailSendError(Exception):
    """Base exception for email sending errors."""
    pass


class MissingConfigurationError(MailSendError):
    """A required credential or the recipient is not set."""

    def __init__(self, names):
        self.names = list(names)
        super().__init__(f"Missing required configuration: {', '.join(self.names)}")


class AttachmentNotFoundError(MailSendError):
    """An attachment path does not name an existing regular file."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Attachment not found: {path}")


class DeliveryError(MailSendError):
    """Every delivery attempt failed."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"SMTP send failed after {attempts} attempts: {last_error}")
