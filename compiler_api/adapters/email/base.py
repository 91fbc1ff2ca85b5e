from abc import ABC, abstractmethod


class AbstractEmailSender(ABC):
	"""Interface for outbound email delivery."""

	@abstractmethod
	async def send(self, to: str, subject: str, html: str) -> None:
		"""Deliver one message.

		Raises:
			RuntimeError: If delivery fails.
		"""
		...
