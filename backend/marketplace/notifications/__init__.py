"""Email channel wiring.

The adapter is created once per application by init_app() and kept in
app.extensions, so each app (and each test app) owns its own channel.
MAIL_BACKEND selects the adapter: "fake" (default) or "smtp".
"""

from flask import Flask, current_app

from marketplace.notifications.email_port import EmailPort

EXTENSION_KEY = "email_channel"


def build_email_channel(config) -> EmailPort:
    backend = (config.get("MAIL_BACKEND") or "fake").lower()
    if backend == "fake":
        from marketplace.notifications.fake_email import FakeEmailAdapter

        return FakeEmailAdapter()
    if backend == "smtp":
        from marketplace.notifications.smtp_email import SmtpEmailAdapter

        return SmtpEmailAdapter(
            host=config["MAIL_SERVER"],
            port=int(config["MAIL_PORT"]),
            sender=config["MAIL_SENDER"],
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
        )
    raise ValueError(f"Unknown MAIL_BACKEND: {backend}")


def init_app(app: Flask) -> None:
    app.extensions[EXTENSION_KEY] = build_email_channel(app.config)


def get_email_channel() -> EmailPort:
    """Return the email adapter of the current application."""
    return current_app.extensions[EXTENSION_KEY]
