"""Prompter interface for user interaction."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from core.models.prompt import ChoiceGroup


class IPrompter(ABC):
    """Interface for asking the user questions and reporting progress."""

    @abstractmethod
    def select(self, message: str, groups: List[ChoiceGroup]) -> Any:
        """Ask the user to pick one choice.

        Args:
            message: Question displayed above the choices
            groups: Choice groups in display order

        Returns:
            The value of the selected choice
        """
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask a yes/no question."""
        pass

    @abstractmethod
    def ask_text(self, message: str, default: Optional[str] = None) -> str:
        """Ask for a non-empty string."""
        pass

    @abstractmethod
    def ask_int(self, message: str, default: Optional[int] = None) -> int:
        """Ask for an integer."""
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    @abstractmethod
    def warn(self, message: str) -> None:
        pass

    @abstractmethod
    def show_summary(self, title: str, groups: List[ChoiceGroup]) -> None:
        """Print grouped items under a title without asking anything."""
        pass
