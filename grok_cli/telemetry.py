"""Opt-in session telemetry emitted as structured log events."""

import random
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

from grok_cli.config import (
    LOCAL_CONFIG_PATH,
    TelemetryConfig,
    get_config,
    update_settings_file,
)
from grok_cli.logging import get_logger

log = get_logger(__name__)

TelemetrySink = Callable[[str, dict[str, Any]], None]


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


class TelemetryManager:
    """Session spans and agent output records.

    Disabled by default. When enabled, every event is logged as
    ``telemetry.<event>`` and handed to registered sinks. Nothing here
    ever raises into the caller.
    """

    def __init__(
        self,
        settings: TelemetryConfig | None = None,
        settings_path: Path | None = None,
    ):
        self.settings = settings or get_config().telemetry.model_copy()
        self.settings_path = settings_path
        self._sinks: list[TelemetrySink] = []
        self._session_id: str | None = None
        self._session_started_at: str | None = None
        self._sampled = False

    @property
    def active_session(self) -> str | None:
        return self._session_id

    def add_sink(self, sink: TelemetrySink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: TelemetrySink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def _emit(self, event: str, attributes: dict[str, Any]) -> None:
        name = f"telemetry.{event}"
        log.info(name, service=self.settings.service_name, **attributes)
        for sink in list(self._sinks):
            try:
                sink(name, dict(attributes))
            except Exception as e:
                log.debug("Telemetry sink failed", telemetry_event=name, error=str(e))

    def start_session(self, session_id: str | None = None) -> str:
        sid = session_id or str(uuid.uuid4())
        if not self.settings.enabled:
            return sid

        self._session_id = sid
        self._session_started_at = _utcnow_iso()
        self._sampled = random.random() < self.settings.trace_sample_ratio
        if self._sampled:
            self._emit(
                "session_start",
                {"session_id": sid, "start_time": self._session_started_at},
            )
        return sid

    def track_agent_output(
        self,
        session_id: str,
        output: str,
        model: str,
        tokens_used: int,
        duration_ms: int,
    ) -> None:
        if not self.settings.enabled or self._session_id is None or not self._sampled:
            return
        self._emit(
            "agent_output",
            {
                "session_id": session_id,
                "model": model,
                "output_length": len(output or ""),
                "tokens_used": tokens_used,
                "duration_ms": duration_ms,
            },
        )

    def end_session(self) -> None:
        if self._session_id is None:
            return
        if self._sampled:
            self._emit(
                "session_end",
                {
                    "session_id": self._session_id,
                    "start_time": self._session_started_at,
                    "end_time": _utcnow_iso(),
                },
            )
        self._session_id = None
        self._session_started_at = None
        self._sampled = False

    def get_settings(self) -> TelemetryConfig:
        return self.settings.model_copy()

    def update_settings(self, **changes: Any) -> TelemetryConfig:
        """Apply and persist telemetry settings to the project settings file."""
        self.settings = self.settings.model_copy(update=changes)
        if not self.settings.enabled:
            self.end_session()
        try:
            self._persist()
        except Exception as e:
            log.warning("Failed to save telemetry settings", error=str(e))
        return self.get_settings()

    def _persist(self) -> Path:
        path = self.settings_path or (Path.cwd() / LOCAL_CONFIG_PATH)
        return update_settings_file(path, {"telemetry": self.settings.model_dump()})


# Global telemetry manager
_manager: TelemetryManager | None = None


def get_telemetry() -> TelemetryManager:
    global _manager
    if _manager is None:
        _manager = TelemetryManager()
    return _manager


def set_telemetry(manager: TelemetryManager | None) -> None:
    global _manager
    _manager = manager
