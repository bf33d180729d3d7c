"""Choice models for interactive selection."""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class PromptChoice:
    """A selectable option with its display label."""

    label: str
    value: Any


@dataclass
class ChoiceGroup:
    """A titled group of choices. A group without title renders as a separator."""

    title: Optional[str] = None
    choices: List[PromptChoice] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.choices)
