"""Bash tool for executing shell commands."""

import asyncio
import os
import shlex
from grok_cli.config import get_config
from grok_cli.logging import get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.confirmation import (
    ConfirmationOptions,
    ConfirmationService,
    get_confirmation_service,
    rejection_message,
)
from grok_cli.tools.registry import ToolResult, is_blocked_shell_command

log = get_logger(__name__)


class BashTool:
    """Execute shell commands in the session working directory."""

    def __init__(
        self,
        context: RuntimeContext | None = None,
        confirmation: ConfirmationService | None = None,
    ):
        self.config = get_config()
        self.context = context or RuntimeContext()
        self.confirmation = confirmation or get_confirmation_service()

    def get_current_directory(self) -> str:
        return str(self.context.cwd)

    def _is_command_safe(self, command: str) -> tuple[bool, str]:
        """Check if command is safe to execute.

        Returns:
            Tuple of (is_safe, reason)
        """
        blocked, matched = is_blocked_shell_command(command, self.config.shell.blocked)
        if blocked:
            if matched == "empty_command":
                return False, "Command is empty"
            if matched == "unparseable_command":
                return False, "Command is not parseable"
            return False, f"Command matches blocked pattern: {matched}"
        return True, ""

    def _change_directory(self, command: str) -> ToolResult:
        parts = shlex.split(command)
        target = parts[1] if len(parts) > 1 else os.path.expanduser("~")
        try:
            new_dir = self.context.change_directory(target)
        except OSError as e:
            return ToolResult(success=False, error=f"Cannot change directory: {e}")
        return ToolResult(success=True, output=f"Changed directory to: {new_dir}")

    async def execute(self, command: str, timeout: int | None = None) -> ToolResult:
        """Execute a shell command.

        Args:
            command: Shell command to execute
            timeout: Optional timeout override in seconds

        Returns:
            ToolResult with stdout (and stderr) on success
        """
        is_safe, reason = self._is_command_safe(command)
        if not is_safe:
            log.warning("Blocked unsafe command", command=command, reason=reason)
            return ToolResult(success=False, error=f"Command blocked: {reason}")

        confirmation = await self.confirmation.request_confirmation(
            ConfirmationOptions(operation="Run bash command", filename=command, content=command),
            "bash",
        )
        if not confirmation.confirmed:
            return ToolResult(success=False, error=rejection_message("Command execution", confirmation))

        stripped = command.strip()
        if stripped == "cd" or stripped.startswith("cd "):
            return self._change_directory(stripped)

        if timeout is None:
            timeout = self.config.shell.timeout
        timeout = max(1, int(timeout))

        try:
            log.info("Executing shell command", command=command, cwd=str(self.context.cwd), timeout=timeout)

            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.context.cwd),
            )

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return ToolResult(success=False, error=f"Command timed out after {timeout}s")
            except asyncio.CancelledError:
                process.kill()
                await process.wait()
                raise

            stdout_text = stdout.decode("utf-8", errors="replace").strip()
            stderr_text = stderr.decode("utf-8", errors="replace").strip()

            if process.returncode != 0:
                detail = stderr_text or stdout_text or "no output"
                return ToolResult(
                    success=False,
                    error=f"Command failed with exit code {process.returncode}: {detail}",
                )

            output = stdout_text
            if stderr_text:
                output += f"\nSTDERR: {stderr_text}"

            max_length = self.config.shell.max_output_chars
            if len(output) > max_length:
                output = output[:max_length] + f"\n... [truncated, {len(output)} total chars]"

            return ToolResult(
                success=True,
                output=output.strip() or "Command executed successfully (no output)",
            )

        except Exception as e:
            log.error("Shell command failed", command=command, error=str(e))
            return ToolResult(success=False, error=f"Command failed: {e}")
