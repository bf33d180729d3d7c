"""Prompter backed by rich."""

from typing import Any, List, Optional

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt

from core.interfaces.prompter_interface import IPrompter
from core.models.prompt import ChoiceGroup, PromptChoice
from core.utils.logger import get_infrastructure_logger


class RichPrompter(IPrompter):
    """Renders prompts and messages on the terminal.

    Choices are numbered across groups so a single integer answer picks one.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.logger = get_infrastructure_logger(__name__)

    def select(self, message: str, groups: List[ChoiceGroup]) -> Any:
        choices = self._render_groups(groups)
        if not choices:
            raise ValueError("Nothing to select from")

        while True:
            index = IntPrompt.ask(
                f"{message} (1-{len(choices)})", default=1, console=self.console
            )
            if 1 <= index <= len(choices):
                selected = choices[index - 1]
                self.logger.debug(f"Selected {selected.label}")
                return selected.value
            self.console.print(f"[red]Please enter a number between 1 and {len(choices)}[/red]")

    def confirm(self, message: str, default: bool = True) -> bool:
        return Confirm.ask(message, default=default, console=self.console)

    def ask_text(self, message: str, default: Optional[str] = None) -> str:
        while True:
            if default is None:
                answer = Prompt.ask(message, console=self.console)
            else:
                answer = Prompt.ask(message, default=default, console=self.console)
            if answer and answer.strip():
                return answer.strip()
            self.console.print("[red]A value is required[/red]")

    def ask_int(self, message: str, default: Optional[int] = None) -> int:
        if default is None:
            return IntPrompt.ask(message, console=self.console)
        return IntPrompt.ask(message, default=default, console=self.console)

    def info(self, message: str) -> None:
        self.console.print(f"[cyan]❯[/cyan] {message}")

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]Warning: {message}[/yellow]")

    def show_summary(self, title: str, groups: List[ChoiceGroup]) -> None:
        self.console.print(title)
        for group in groups:
            if group.title:
                self.console.print(group.title)
            for choice in group.choices:
                self.console.print(f"  • {choice.label}")

    def _render_groups(self, groups: List[ChoiceGroup]) -> List[PromptChoice]:
        choices = []
        for group in groups:
            if not group.choices:
                continue
            if group.title:
                self.console.print(f"[bold]{group.title}[/bold]")
            else:
                self.console.rule()
            for choice in group.choices:
                choices.append(choice)
                self.console.print(f"  {len(choices)}. {choice.label}")
        return choices
