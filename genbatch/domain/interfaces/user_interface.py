"""Interface for reporting run progress to the operator.

Defines the contract for displaying information, errors, warnings,
progress and the final run summary, allowing different UI implementations.
"""

import abc
from typing import Any, Dict


class UserInterface(abc.ABC):
    """Abstract Base Class for operator-facing output."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_progress(self, snapshot: Dict[str, Any]) -> None:
        """Displays a progress update.

        Args:
            snapshot: Counts as produced by ProgressTracker.snapshot().
        """
        pass

    @abc.abstractmethod
    def display_summary(self, snapshot: Dict[str, Any]) -> None:
        """Displays the end-of-run summary."""
        pass
