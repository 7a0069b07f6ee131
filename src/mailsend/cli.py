from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import yaml
from pydantic import ValidationError

from .config import get_settings
from .logging_setup import load_config, setup_logging
from .models import DeliveryStatus
from .sender import send

EXIT_SENT = 0
EXIT_MISSING_CONFIGURATION = 1
EXIT_ATTACHMENT_NOT_FOUND = 4
EXIT_DELIVERY_FAILED = 3
EXIT_USAGE = 6

_EXIT_CODES = {
    DeliveryStatus.SENT: EXIT_SENT,
    DeliveryStatus.MISSING_CONFIGURATION: EXIT_MISSING_CONFIGURATION,
    DeliveryStatus.ATTACHMENT_NOT_FOUND: EXIT_ATTACHMENT_NOT_FOUND,
    DeliveryStatus.FAILED: EXIT_DELIVERY_FAILED,
}

app = typer.Typer(help="Send an email through an SMTP server")


def _usage_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=EXIT_USAGE)


@app.command(help="Send one email, retrying failed deliveries with backoff.")
def send_email(
    subject: Annotated[str, typer.Option("-s", "--subject", help="Email subject")],
    body: Annotated[
        str | None, typer.Option("-b", "--body", help="Email body")
    ] = None,
    body_file: Annotated[
        Path | None,
        typer.Option("--body-file", help="Read the email body from this file"),
    ] = None,
    html: Annotated[
        bool,
        typer.Option("--html/--text", help="Send the body as HTML or plain text"),
    ] = False,
    from_name: Annotated[
        str | None,
        typer.Option(
            "--from-name",
            help="Sender display name (defaults to EMAIL_FROM_NAME or the host name)",
        ),
    ] = None,
    to: Annotated[
        str | None,
        typer.Option("-t", "--to", help="Recipient address (defaults to EMAIL_TO)"),
    ] = None,
    attachment: Annotated[
        list[str] | None,
        typer.Option("-a", "--attachment", help="File to attach (repeatable)"),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="YAML file with a logging section"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("-v", "--verbose", help="Enable debug logging")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("-q", "--quiet", help="Only log errors")
    ] = False,
) -> None:
    if verbose and quiet:
        _usage_error("--verbose and --quiet are mutually exclusive")
    if (body is None) == (body_file is None):
        _usage_error("Exactly one of --body or --body-file is required")

    loaded_config: dict = {}
    if config is not None:
        try:
            loaded_config = load_config(str(config))
        except (OSError, yaml.YAMLError) as e:
            _usage_error(f"Could not load config {config}: {e}")

    setup_logging(verbose=verbose, quiet=quiet, config=loaded_config)

    if body_file is not None:
        try:
            body = body_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            _usage_error(f"Could not read body file {body_file}: {e}")

    try:
        settings = get_settings()
    except ValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_MISSING_CONFIGURATION)

    outcome = send(
        subject=subject,
        body=body,
        is_html=html,
        from_display_name=from_name,
        to=to,
        attachments=attachment or [],
        settings=settings,
    )

    if outcome.ok:
        typer.secho("Email sent successfully.", fg=typer.colors.GREEN)
    elif outcome.status is DeliveryStatus.FAILED:
        typer.secho(
            f"Email send failed after {outcome.attempts} attempts: {outcome.reason}",
            fg=typer.colors.RED,
            err=True,
        )
    else:
        typer.secho(f"Email not sent: {outcome.reason}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=_EXIT_CODES[outcome.status])


def main() -> None:
    app()


if __name__ == "__main__":
    main()
