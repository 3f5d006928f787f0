"""User approval for file edits and shell commands."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

from grok_cli.logging import get_logger

log = get_logger(__name__)

OperationKind = Literal["file", "bash"]


@dataclass
class ConfirmationOptions:
    operation: str
    filename: str
    content: str = ""


@dataclass
class ConfirmationResult:
    confirmed: bool
    dont_ask_again: bool = False
    feedback: str | None = None


@dataclass
class SessionFlags:
    file_operations: bool = False
    bash_commands: bool = False
    all_operations: bool = False


ApprovalCallback = Callable[
    [ConfirmationOptions, OperationKind],
    ConfirmationResult | Awaitable[ConfirmationResult],
]


class ConfirmationService:
    """Ask the user before a tool touches the filesystem or runs a command.

    Session flags short-circuit the prompt. With no approval callback set
    (headless runs) operations proceed and are logged.
    """

    def __init__(self, callback: ApprovalCallback | None = None):
        self.flags = SessionFlags()
        self._callback = callback

    def set_callback(self, callback: ApprovalCallback | None) -> None:
        self._callback = callback

    def get_session_flags(self) -> SessionFlags:
        return self.flags

    def set_session_flag(self, name: str, value: bool) -> None:
        if not hasattr(self.flags, name):
            raise ValueError(f"Unknown session flag: {name}")
        setattr(self.flags, name, bool(value))

    def reset_session(self) -> None:
        self.flags = SessionFlags()

    def is_preapproved(self, kind: OperationKind) -> bool:
        if self.flags.all_operations:
            return True
        if kind == "file":
            return self.flags.file_operations
        return self.flags.bash_commands

    async def request_confirmation(
        self,
        options: ConfirmationOptions,
        kind: OperationKind = "file",
    ) -> ConfirmationResult:
        """Return whether the operation may proceed."""
        if self.is_preapproved(kind):
            return ConfirmationResult(confirmed=True)

        if self._callback is None:
            log.info(
                "Operation allowed without prompt",
                operation=options.operation,
                target=options.filename,
                kind=kind,
            )
            return ConfirmationResult(confirmed=True)

        result = self._callback(options, kind)
        if inspect.isawaitable(result):
            result = await result

        if result.confirmed and result.dont_ask_again:
            if kind == "file":
                self.flags.file_operations = True
            else:
                self.flags.bash_commands = True
        if not result.confirmed:
            log.info("Operation rejected", operation=options.operation, target=options.filename)
        return result


def rejection_message(operation: str, result: ConfirmationResult) -> str:
    """Failure text for a rejected operation."""
    return result.feedback or f"{operation} cancelled by user"


# Global service
_service: ConfirmationService | None = None


def get_confirmation_service() -> ConfirmationService:
    global _service
    if _service is None:
        _service = ConfirmationService()
    return _service


def set_confirmation_service(service: ConfirmationService) -> None:
    global _service
    _service = service
