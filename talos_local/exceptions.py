"""Custom exceptions for talos-local."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from talos_local.models.results import StepResult
    from talos_local.shell import CommandResult


class TalosLocalError(Exception):
    """Base exception for all talos-local errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class PreconditionError(TalosLocalError):
    """Raised when the environment cannot support a run (e.g. no home directory)."""

    pass


class ConfigurationError(TalosLocalError):
    """Exception raised for configuration errors."""

    pass


class StepDefinitionError(TalosLocalError):
    """Raised when a pipeline is declared with duplicate steps or unknown dependencies."""

    pass


class CommandError(TalosLocalError):
    """Exception raised when an external command fails."""

    def __init__(self, message: str, details: str = None, result: "CommandResult | None" = None):
        self.result = result
        super().__init__(message, details)


class CommandNotFoundError(CommandError):
    """Raised when an external binary is not installed or not in PATH."""

    pass


class CommandTimeoutError(CommandError):
    """Raised when an external command exceeds its timeout."""

    pass


class StepFailedError(TalosLocalError):
    """Raised when a step's create-action fails and the pipeline aborts."""

    def __init__(self, step: str, result: "StepResult", details: str = None):
        self.step = step
        self.result = result
        super().__init__(f"Step '{step}' failed: {result.message}", details)


class ReadinessTimeoutError(TalosLocalError):
    """Raised when a readiness wait is exhausted and strict readiness is enabled."""

    pass


class VMError(TalosLocalError):
    """Exception raised for VM manager errors."""

    pass


class KubernetesError(TalosLocalError):
    """Exception raised for Kubernetes API errors."""

    pass
