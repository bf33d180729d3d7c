"""Terminal user interaction."""

from .prompter import RichPrompter

__all__ = ['RichPrompter']
