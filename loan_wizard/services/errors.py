from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WizardError(ValueError):
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class InvalidTransitionError(WizardError):
    pass


class WizardBusyError(WizardError):
    pass


class LineItemLockedError(WizardError):
    pass


class SessionNotFoundError(WizardError):
    pass


@dataclass(frozen=True)
class SaccoApiError(Exception):
    """Raised by the upstream client for transport failures and non-2xx replies."""

    operation: str
    message: str
    status_code: int | None = None
    payload: dict | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.operation} failed: {self.message}"
        return f"{self.operation} failed with HTTP {self.status_code}: {self.message}"
