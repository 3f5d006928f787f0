"""Agent orchestration for Grok CLI."""

import asyncio
import re
import time

from grok_cli.agent_stream_mixin import AgentStreamMixin
from grok_cli.agent_tool_loop_mixin import AgentToolLoopMixin
from grok_cli.config import get_config
from grok_cli.exceptions import LLMResponseError
from grok_cli.instructions import InstructionLoader
from grok_cli.llm import ChatResponse, LLMProvider, Message, create_provider, estimate_tokens
from grok_cli.logging import get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.session import ChatEntry, Conversation
from grok_cli.telemetry import TelemetryManager, get_telemetry
from grok_cli.tools import (
    BashTool,
    ConfirmationService,
    MorphEditorTool,
    SearchTool,
    TextEditorTool,
    TodoTool,
    ToolRegistry,
    ToolResult,
    get_all_tools,
    get_confirmation_service,
    get_tool_registry,
)

log = get_logger(__name__)

NO_RESPONSE_FALLBACK = "I understand, but I don't have a specific response."
TOOL_USE_FALLBACK = "Using tools to help you..."

SEARCH_KEYWORDS = (
    "today",
    "latest",
    "news",
    "trending",
    "breaking",
    "current",
    "now",
    "recent",
    "x.com",
    "twitter",
    "tweet",
    "what happened",
    "as of",
    "update on",
    "release notes",
    "changelog",
    "price",
)
_YEAR_RE = re.compile(r"\b20\d{2}\b")

SYSTEM_PROMPT = """You are Grok CLI, an AI assistant that helps with file editing, coding tasks, and system operations.

You have access to these tools:
- view_file: View file contents or directory listings
- create_file: Create new files with content (ONLY use this for files that don't exist yet)
- str_replace_editor: Replace text in existing files (ALWAYS use this to edit or update existing files)
{morph_line}- bash: Execute bash commands (use for searching, file discovery, navigation, and system operations)
- search: Unified search tool for finding text content or files
- create_todo_list: Create a visual todo list for planning and tracking tasks
- update_todo_list: Update existing todos in your todo list

IMPORTANT TOOL USAGE RULES:
- NEVER use create_file on files that already exist - this will overwrite them completely
- ALWAYS use str_replace_editor to modify existing files, even for small changes
- Before editing a file, use view_file to see its current contents
- Use create_file ONLY when creating entirely new files that don't exist

SEARCHING AND EXPLORATION:
- Use search for fast, powerful text search across files or finding files by name
- Use bash with commands like 'find', 'grep', 'ls' for complex file operations and navigation
- view_file is best for reading specific files you already know exist

TASK PLANNING:
For complex requests, create a todo list first and mark items in_progress and completed as you work.

Be helpful, direct, and efficient in your responses.

Current working directory: {cwd}"""

_MORPH_LINE = (
    "- edit_file: High-speed file editing with Morph Fast Apply "
    "(4,500+ tokens/sec with 98% accuracy)\n"
)


def should_use_search_for(message: str) -> bool:
    """Whether the message asks about something time-sensitive."""
    text = (message or "").lower()
    if any(keyword in text for keyword in SEARCH_KEYWORDS):
        return True
    return bool(_YEAR_RE.search(text))


def is_grok_model(model: str) -> bool:
    return "grok" in (model or "").lower()


class GrokAgent(AgentToolLoopMixin, AgentStreamMixin):
    """Conversational agent driving the model and the local tools."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tool_rounds: int | None = None,
        max_turns: int | None = None,
        provider: LLMProvider | None = None,
        context: RuntimeContext | None = None,
        confirmation: ConfirmationService | None = None,
        plugin_registry: ToolRegistry | None = None,
        telemetry: TelemetryManager | None = None,
        append_system_prompt: str | None = None,
    ):
        """Initialize the agent.

        Args:
            api_key: API key (defaults to config)
            base_url: API base URL (defaults to config)
            model: Model name (defaults to config)
            max_tool_rounds: Tool round bound per user message
            max_turns: Model call bound per user message
            provider: Optional provider override (skips client construction)
            context: Shared working directory state
            confirmation: Approval service for file and shell operations
            plugin_registry: Registry of ``mcp__`` plugin tools
            telemetry: Telemetry manager override
            append_system_prompt: Extra text appended to the system prompt
        """
        cfg = get_config()
        self.llm = provider or create_provider(
            api_key=api_key or cfg.api_key,
            model=model or cfg.model,
            base_url=base_url or cfg.base_url,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            timeout=cfg.timeout,
        )
        if provider is not None and model:
            self.llm.set_model(model)

        self.max_tool_rounds = max_tool_rounds or cfg.agent.max_tool_rounds
        self.max_turns = max_turns or cfg.agent.max_turns
        self.tool_rounds = 0
        self.turns = 0
        self._abort_event: asyncio.Event | None = None

        self.context = context or RuntimeContext()
        self.confirmation = confirmation or get_confirmation_service()
        self.plugin_registry = plugin_registry or get_tool_registry()
        self.telemetry = telemetry or get_telemetry()

        self.text_editor = TextEditorTool(self.context, self.confirmation)
        self.bash = BashTool(self.context, self.confirmation)
        self.search = SearchTool(self.context)
        self.todo = TodoTool()
        morph_key = cfg.morph.resolved_api_key()
        self.morph_editor: MorphEditorTool | None = (
            MorphEditorTool(
                morph_key,
                context=self.context,
                confirmation=self.confirmation,
                base_url=cfg.morph.base_url,
                model=cfg.morph.model,
                timeout=cfg.morph.timeout,
            )
            if morph_key
            else None
        )

        self.conversation = Conversation(self._build_system_prompt(append_system_prompt))

    def _build_system_prompt(self, append_system_prompt: str | None) -> str:
        prompt = SYSTEM_PROMPT.format(
            morph_line=_MORPH_LINE if self.morph_editor is not None else "",
            cwd=self.context.cwd,
        )
        custom = InstructionLoader(cwd=self.context.cwd).load()
        if custom:
            prompt += (
                "\n\nCUSTOM INSTRUCTIONS:\n"
                f"{custom}\n\n"
                "The above custom instructions should be followed alongside the standard instructions."
            )
        if append_system_prompt:
            prompt += f"\n\n{append_system_prompt}"
        return prompt

    def _tool_definitions(self) -> list[dict]:
        return get_all_tools(self.morph_editor is not None, self.plugin_registry)

    def _search_options_for(self, message: str) -> dict:
        wants_search = should_use_search_for(message) and is_grok_model(self.llm.get_current_model())
        mode = "auto" if wants_search else "off"
        return {"search_parameters": {"mode": mode}}

    def _bound_warning(self) -> str:
        if self.tool_rounds >= self.max_tool_rounds:
            log.warning("Tool round bound reached", tool_rounds=self.tool_rounds)
            return "Maximum tool execution rounds reached. Stopping to prevent infinite loops."
        log.warning("Turn bound reached", turns=self.turns)
        return f"Maximum turns ({self.max_turns}) reached. Stopping to prevent infinite loops."

    def _track_output(self, session_id: str, content: str, started: float) -> None:
        self.telemetry.track_agent_output(
            session_id=session_id,
            output=content,
            model=self.llm.get_current_model(),
            tokens_used=estimate_tokens(content),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _call_model(self, tools: list[dict], search_options: dict) -> Message:
        log.debug("Model call", turn=self.turns + 1, msg_count=len(self.conversation.messages))
        response: ChatResponse = await self.llm.chat(
            list(self.conversation.messages),
            tools,
            search_options=search_options,
        )
        self.turns += 1
        if not response.choices:
            raise LLMResponseError("No response from Grok")
        return response.choices[0].message

    async def process_user_message(self, message: str) -> list[ChatEntry]:
        """Process one user message to completion.

        Args:
            message: User's message

        Returns:
            The chat entries added for this message, user entry first.
        """
        new_entries = [self.conversation.add_user(message)]
        self.tool_rounds = 0
        self.turns = 0
        started = time.monotonic()
        session_id = self.telemetry.start_session()

        try:
            tools = self._tool_definitions()
            search_options = self._search_options_for(message)
            assistant = await self._call_model(tools, search_options)
            finished = False

            while True:
                if not assistant.tool_calls:
                    self.conversation.add_message(Message(role="assistant", content=assistant.content or ""))
                    new_entries.append(
                        self.conversation.add_entry(
                            ChatEntry(type="assistant", content=assistant.content or NO_RESPONSE_FALLBACK)
                        )
                    )
                    finished = True
                    break

                self.tool_rounds += 1
                tool_calls = list(assistant.tool_calls)
                self.conversation.add_message(
                    Message(role="assistant", content=assistant.content or "", tool_calls=tool_calls)
                )
                new_entries.append(
                    self.conversation.add_entry(
                        ChatEntry(
                            type="assistant",
                            content=assistant.content or TOOL_USE_FALLBACK,
                            tool_calls=tool_calls,
                        )
                    )
                )
                for tool_call in tool_calls:
                    new_entries.append(
                        self.conversation.add_entry(
                            ChatEntry(type="tool_call", content="Executing...", tool_call=tool_call)
                        )
                    )

                for tool_call in tool_calls:
                    result = await self.execute_tool(tool_call)
                    self.conversation.complete_tool_call(tool_call, result)
                    self.conversation.add_tool_message(tool_call, result)

                if self.tool_rounds >= self.max_tool_rounds or self.turns >= self.max_turns:
                    break
                assistant = await self._call_model(tools, search_options)

            if not finished:
                new_entries.append(
                    self.conversation.add_entry(ChatEntry(type="assistant", content=self._bound_warning()))
                )

            last_assistant = next(
                (entry for entry in reversed(new_entries) if entry.type == "assistant"),
                None,
            )
            if last_assistant is not None:
                self._track_output(session_id, last_assistant.content, started)
            return new_entries

        except Exception as e:
            log.error("Request failed", error=str(e), tool_rounds=self.tool_rounds, turns=self.turns)
            error_entry = self.conversation.add_entry(
                ChatEntry(type="assistant", content=f"Sorry, I encountered an error: {e}")
            )
            new_entries.append(error_entry)
            return new_entries
        finally:
            self.telemetry.end_session()

    def get_chat_history(self) -> list[ChatEntry]:
        return self.conversation.snapshot()

    def get_messages(self) -> list[Message]:
        return list(self.conversation.messages)

    def get_current_directory(self) -> str:
        return self.bash.get_current_directory()

    def get_current_model(self) -> str:
        return self.llm.get_current_model()

    def set_model(self, model: str) -> None:
        self.llm.set_model(model)

    async def execute_bash_command(self, command: str) -> ToolResult:
        """Run a shell command typed directly by the user."""
        return await self.bash.execute(command)

    def abort_current_operation(self) -> None:
        """Signal the running streamed request to stop at its next checkpoint."""
        if self._abort_event is not None:
            log.info("Abort requested")
            self._abort_event.set()

    async def close(self) -> None:
        await self.llm.close()
        if self.morph_editor is not None:
            await self.morph_editor.close()
