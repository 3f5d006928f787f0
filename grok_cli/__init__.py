"""Grok CLI - a conversational AI agent for the terminal."""

__version__ = "0.1.0"

from grok_cli.config import Config

__all__ = ["Config", "__version__"]
