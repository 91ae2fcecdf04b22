"""
Exceptions raised by the consensus oracle.

Only ``InvalidCriteria`` and ``InsufficientProviders`` reach callers of
``ConsensusOracle.query``. Provider-level errors are converted into
``ProviderFailure`` values by the dispatcher.
"""

from typing import Optional


class OracleError(Exception):
    """Base class for all oracle errors."""


class InvalidCriteria(OracleError, ValueError):
    """Caller supplied out-of-range selection criteria."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class InsufficientProviders(OracleError):
    """No usable response survived a round."""

    def __init__(
        self,
        data_type: str,
        subject: str,
        attempted: list[str],
        failures: Optional[dict[str, str]] = None,
    ):
        self.data_type = data_type
        self.subject = subject
        self.attempted = list(attempted)
        self.failures = dict(failures or {})
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.attempted:
            return f"No active provider supports '{self.data_type}' (subject={self.subject})"
        details = ", ".join(
            f"{name}: {self.failures.get(name, 'no response')}" for name in self.attempted
        )
        return (
            f"No usable responses for {self.data_type}/{self.subject} "
            f"from {len(self.attempted)} providers ({details})"
        )


class ProviderFetchError(OracleError):
    """Raised by adapters when the upstream source returns no usable data."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeout(OracleError):
    """A provider did not answer within its per-call timeout."""

    def __init__(self, provider: str, timeout: float):
        super().__init__(f"{provider} timed out after {timeout:.2f}s")
        self.provider = provider
        self.timeout = timeout
