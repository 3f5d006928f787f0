import logging

import pytest
import structlog

from grok_cli.config import Config, TelemetryConfig, set_config
from grok_cli.llm import set_provider
from grok_cli.telemetry import TelemetryManager, set_telemetry
from grok_cli.tools.confirmation import ConfirmationService, set_confirmation_service
from grok_cli.tools.registry import ToolRegistry, set_tool_registry


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Keep log lines out of captured command output."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def isolated_globals(monkeypatch, tmp_path):
    """Fresh config, registry, approval and telemetry state for every test."""
    monkeypatch.delenv("MORPH_API_KEY", raising=False)
    set_config(Config(api_key="test-key"))
    set_provider(None)
    set_confirmation_service(ConfirmationService())
    set_tool_registry(ToolRegistry())
    set_telemetry(
        TelemetryManager(
            settings=TelemetryConfig(),
            settings_path=tmp_path / ".grok" / "settings.yaml",
        )
    )
    yield
    set_provider(None)
    set_telemetry(None)
