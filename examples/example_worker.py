"""Example runner with custom handlers next to the built-in ones.

Run with a configuration such as::

    {
        "workers": [
            {"tubes": ["emails"], "handlers": [{"path": "send_email", "sender": "noreply@example.com"}]},
            {"tubes": ["reports"], "handlers": ["generate_report", {"path": "noop", "action": "bury"}]}
        ]
    }
"""

import asyncio
from typing import Any

from pydantic import BaseModel, Field

from tuberunner import Action, Handler, HandlerRegistry, Logger
from tuberunner.cli import main as cli_main
from tuberunner.handlers import register_handlers

registry = HandlerRegistry()
register_handlers(registry)


class SendEmailConfig(BaseModel):
    sender: str = Field(min_length=3)


class SendEmailPayload(BaseModel):
    email_id: str
    to: str
    template: str = "welcome"


@registry.handler("send_email")
class SendEmailHandler(Handler):
    """Example: Send email notification (idempotent).

    Expected payload:
        {"email_id": "email_456", "to": "user@example.com", "template": "welcome"}
    """

    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        super().__init__(
            "send_email", configuration, SendEmailConfig, SendEmailPayload, logger
        )

    async def process(self, payload: Any, id: int | str, type: str) -> Any:
        email = SendEmailPayload.model_validate(payload)
        self.logger.info(
            f"Sending email {email.email_id} to {email.to}",
            {"template": email.template, "sender": self.validated_configuration.sender},
        )

        # In production: use email_id as idempotency key with the email provider
        await asyncio.sleep(0.5)

        return Action.DELETE


class ReportPayload(BaseModel):
    report_id: str
    start_date: str
    end_date: str


@registry.handler("generate_report")
class GenerateReportHandler(Handler):
    """Example: Generate analytics report, retried later while data is missing."""

    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        super().__init__("generate_report", configuration, None, ReportPayload, logger)

    async def process(self, payload: Any, id: int | str, type: str) -> Any:
        report = ReportPayload.model_validate(payload)
        if report.end_date > "2100-01-01":
            return [Action.RELEASE, {"delay": 3600}]

        self.logger.info(f"Generating report {report.report_id}")
        await asyncio.sleep(2)
        return Action.DELETE


if __name__ == "__main__":
    cli_main(registry=registry)
