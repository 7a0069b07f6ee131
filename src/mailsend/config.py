import socket

from dotenv import load_dotenv
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import SmtpConfig

# Load variables from .env before creating settings so BaseSettings can see them
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    # SMTP credentials (required at send time, not at load time)
    smtp_user: str = Field("", alias="SMTP_USER")
    smtp_pass: str = Field("", alias="SMTP_PASS")

    # SMTP endpoint. TLS is always on and deliberately not configurable.
    smtp_host: str = Field("smtp.gmail.com", alias="SMTP_SERVER")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_timeout: float | None = Field(30.0, alias="SMTP_TIMEOUT")

    # Sender/recipient defaults
    email_from: str = Field("", alias="EMAIL_FROM")  # defaults to smtp_user
    email_to: str = Field("", alias="EMAIL_TO")
    from_name: str = Field("", alias="EMAIL_FROM_NAME")  # defaults to host name

    @computed_field(return_type=str)
    @property
    def from_address(self) -> str:
        return self.email_from or self.smtp_user

    @computed_field(return_type=str)
    @property
    def display_name(self) -> str:
        return self.from_name or socket.gethostname()

    def smtp_config(self) -> SmtpConfig:
        return SmtpConfig(
            host=self.smtp_host,
            port=self.smtp_port,
            username=self.smtp_user,
            password=self.smtp_pass,
            timeout=self.smtp_timeout,
        )


def get_settings() -> Settings:
    """Read settings from the environment (and .env) at call time."""
    return Settings()
