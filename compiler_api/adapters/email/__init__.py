"""Outbound email adapter layer."""

from compiler_api.adapters.email.base import AbstractEmailSender
from compiler_api.adapters.email.logging_sender import LoggingEmailSender

__all__ = ["AbstractEmailSender", "LoggingEmailSender"]
