"""Email sender that only records deliveries in the log.

Used in development and tests. Message bodies are never logged since they
carry passcodes.
"""

import hashlib
import logging

from compiler_api.adapters.email.base import AbstractEmailSender

logger = logging.getLogger(__name__)


class LoggingEmailSender(AbstractEmailSender):
    def __init__(self) -> None:
        self.sent_count = 0

    async def send(self, to: str, subject: str, html: str) -> None:
        self.sent_count += 1
        logger.info(
            "email.sent",
            extra={
                "email_hash": hashlib.sha256(to.encode()).hexdigest()[:16],
                "subject": subject,
                "body_chars": len(html),
            },
        )
