"""Morph Fast Apply editor tool."""

import httpx

from grok_cli.logging import get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.confirmation import (
    ConfirmationOptions,
    ConfirmationService,
    get_confirmation_service,
    rejection_message,
)
from grok_cli.tools.registry import ToolResult
from grok_cli.tools.text_editor import unified_diff

log = get_logger(__name__)


class MorphEditorTool:
    """Apply abbreviated code edits through the Morph apply model.

    The model receives the original file and an edit sketch that marks
    unchanged spans with ``// ... existing code ...`` and returns the
    merged file, which is written back in place.
    """

    def __init__(
        self,
        api_key: str,
        context: RuntimeContext | None = None,
        confirmation: ConfirmationService | None = None,
        base_url: str = "https://api.morphllm.com/v1",
        model: str = "morph-v3-large",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.context = context or RuntimeContext()
        self.confirmation = confirmation or get_confirmation_service()
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _apply(self, instructions: str, original: str, code_edit: str) -> str:
        prompt = (
            f"<instruction>{instructions}</instruction>\n"
            f"<code>{original}</code>\n"
            f"<update>{code_edit}</update>"
        )
        response = await self.client.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        if not response.is_success:
            raise ValueError(f"Morph API error: {response.status_code} {response.reason_phrase}")

        try:
            merged = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            merged = None
        if not isinstance(merged, str):
            raise ValueError("Invalid response from Morph API")
        return merged

    async def edit_file(self, target_file: str, instructions: str, code_edit: str) -> ToolResult:
        try:
            resolved = self.context.resolve(target_file)
            if not resolved.is_file():
                return ToolResult(success=False, error=f"File not found: {target_file}")

            approval = await self.confirmation.request_confirmation(
                ConfirmationOptions(
                    operation="Edit file with Morph Fast Apply",
                    filename=target_file,
                    content=f"{instructions}\n\n{code_edit}",
                ),
                "file",
            )
            if not approval.confirmed:
                return ToolResult(success=False, error=rejection_message("Morph edit", approval))

            original = resolved.read_text(encoding="utf-8")
            log.info("Calling Morph Fast Apply", path=str(resolved), model=self.model)
            merged = await self._apply(instructions, original, code_edit)

            resolved.write_text(merged, encoding="utf-8")
            diff = unified_diff(original, merged, target_file)
            return ToolResult(
                success=True,
                output=f"Updated {target_file} with Morph Fast Apply\n{diff}",
            )
        except ValueError as e:
            log.warning("Morph edit rejected", path=target_file, error=str(e))
            return ToolResult(success=False, error=str(e))
        except Exception as e:
            log.error("Morph edit failed", path=target_file, error=str(e))
            return ToolResult(success=False, error=f"Error executing Morph Fast Apply: {e}")

    async def close(self) -> None:
        await self.client.aclose()
