from typing import Optional


class DeploymentError(Exception):
    """Base class for every failure surfaced by a deployment run."""

    def __init__(self, message: str, module: Optional[str] = None):
        super().__init__(message)
        self.module = module

    def __str__(self) -> str:
        message = super().__str__()
        if self.module:
            return f"[{self.module}] {message}"
        return message


class ConfigurationError(DeploymentError):
    """Raised when an input (environment, plan file, argument) is missing or malformed."""


class MissingRegistryEntry(ConfigurationError):
    """Raised when a registry lookup has no entry (or resolves to the zero address)."""

    def __init__(self, name: str, module: Optional[str] = None):
        super().__init__(f"No address book entry for '{name}'", module=module)
        self.name = name


class OrderingError(ConfigurationError):
    """Raised when a module is declared before a module it depends on."""


class SubmissionError(DeploymentError):
    """Raised when a transaction could not be submitted (network or client failure)."""


class RevertError(DeploymentError):
    """Raised when a transaction was mined but reverted."""


class DeploymentAborted(DeploymentError):
    """Raised when the operator declines a confirmation prompt."""
