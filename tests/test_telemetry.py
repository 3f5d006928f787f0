import yaml

from grok_cli.config import TelemetryConfig
from grok_cli.telemetry import TelemetryManager


def _manager(tmp_path, **settings) -> tuple[TelemetryManager, list]:
    events: list = []
    manager = TelemetryManager(
        settings=TelemetryConfig(**settings),
        settings_path=tmp_path / ".grok" / "settings.yaml",
    )
    manager.add_sink(lambda name, attrs: events.append((name, attrs)))
    return manager, events


def test_disabled_manager_emits_nothing(tmp_path):
    manager, events = _manager(tmp_path)

    sid = manager.start_session()
    manager.track_agent_output(sid, "hello", "grok-code-fast-1", 5, 10)
    manager.end_session()

    assert sid
    assert manager.active_session is None
    assert events == []


def test_enabled_session_lifecycle(tmp_path):
    manager, events = _manager(tmp_path, enabled=True)

    sid = manager.start_session("session-1")
    assert manager.active_session == "session-1"
    manager.track_agent_output(sid, "hello", "grok-code-fast-1", 12, 340)
    manager.end_session()

    assert [name for name, _ in events] == [
        "telemetry.session_start",
        "telemetry.agent_output",
        "telemetry.session_end",
    ]
    output = events[1][1]
    assert output == {
        "session_id": "session-1",
        "model": "grok-code-fast-1",
        "output_length": 5,
        "tokens_used": 12,
        "duration_ms": 340,
    }
    assert events[2][1]["start_time"] == events[0][1]["start_time"]
    assert manager.active_session is None


def test_unsampled_session_is_silent(tmp_path):
    manager, events = _manager(tmp_path, enabled=True, trace_sample_ratio=0.0)

    sid = manager.start_session()
    manager.track_agent_output(sid, "x", "m", 1, 1)
    manager.end_session()

    assert events == []


def test_failing_sink_does_not_break_session(tmp_path):
    manager, events = _manager(tmp_path, enabled=True)

    def broken(name, attrs):
        raise RuntimeError("sink down")

    manager.add_sink(broken)
    manager.start_session()
    manager.end_session()
    manager.remove_sink(broken)

    assert len(events) == 2


def test_update_settings_persists_and_keeps_other_keys(tmp_path):
    settings_file = tmp_path / ".grok" / "settings.yaml"
    settings_file.parent.mkdir()
    settings_file.write_text(yaml.safe_dump({"model": "grok-4-latest"}), encoding="utf-8")
    manager, _ = _manager(tmp_path)

    updated = manager.update_settings(enabled=True, trace_sample_ratio=0.5)

    saved = yaml.safe_load(settings_file.read_text(encoding="utf-8"))
    assert updated.enabled is True
    assert saved["model"] == "grok-4-latest"
    assert saved["telemetry"]["enabled"] is True
    assert saved["telemetry"]["trace_sample_ratio"] == 0.5


def test_disabling_closes_open_session(tmp_path):
    manager, events = _manager(tmp_path, enabled=True)
    manager.start_session("s")

    manager.update_settings(enabled=False)

    assert manager.active_session is None
    assert events[-1][0] == "telemetry.session_end"
    assert manager.get_settings().enabled is False
