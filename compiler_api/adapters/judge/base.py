from abc import ABC, abstractmethod
from typing import Any


class AbstractJudgeClient(ABC):
	"""Interface for remote code execution services."""

	@abstractmethod
	async def submit(
		self,
		language_id: int,
		source_code: str,
		*,
		stdin: str = "",
		**kwargs: Any,
	) -> dict[str, Any]:
		"""Run a submission and wait for its result.

		Args:
			language_id: Judge language identifier.
			source_code: Program text.
			stdin: Standard input fed to the program.
			**kwargs: Provider-specific limits (e.g., cpu_time_limit, memory_limit).

		Returns:
			dict[str, Any]: Raw submission result as returned by the provider.

		Raises:
			JudgeAppError: If the provider call fails.
		"""
		...

	@abstractmethod
	async def get_submission(self, token: str) -> dict[str, Any]:
		"""Fetch a previously created submission by token."""
		...

	@abstractmethod
	async def get_batch(self, tokens: list[str]) -> dict[str, Any]:
		"""Fetch several submissions in one call."""
		...

	async def close(self) -> None:
		"""Release network resources."""
		return None
