"""Integration tests for the Runtime wiring across invocations."""

from datetime import timedelta

import pytest
import yaml

from cliforge.config import CliforgeConfig
from cliforge.exceptions import CliforgeParseError
from cliforge.paths import config_file_path, state_home
from cliforge.runtime import Runtime
from cliforge.state.defaults import DefaultPriority


@pytest.fixture
def runtime(tmp_path) -> Runtime:
    return Runtime.open(
        "testcli", state_dir=tmp_path / "state", builtin_defaults={"region": "us-east-1"}
    )


def test_open_uses_state_home_by_default():
    rt = Runtime.open("testcli")

    assert rt.state.state_path == state_home() / "testcli" / "state.yaml"
    assert rt.history.path == state_home() / "testcli" / "history.json"


def test_open_applies_config_file(tmp_path):
    config_path = config_file_path("testcli")
    config_path.parent.mkdir(parents=True)
    config_path.write_text(
        yaml.dump(
            {
                "state_dir": str(tmp_path / "configured"),
                "max_history_entries": 2,
                "max_recent_per_list": 2,
                "defaults": {"output": "json"},
                "env": {"region": "TESTCLI_REGION"},
            }
        )
    )

    rt = Runtime.open("testcli")

    assert rt.state.state_path == tmp_path / "configured" / "state.yaml"
    assert rt.history.max_entries == 2
    assert rt.defaults.resolve_with_priority("output") == ("json", DefaultPriority.CONFIG)
    assert rt.defaults.env_vars == {"region": "TESTCLI_REGION"}

    for value in ("a", "b", "c"):
        rt.state.add_recent_value("ids", value)
    assert rt.state.get_recent_values("ids") == ["c", "b"]


def test_explicit_state_dir_beats_config(tmp_path):
    config = CliforgeConfig(cli_name="testcli", state_dir=tmp_path / "configured")

    rt = Runtime.open("testcli", config=config, state_dir=tmp_path / "explicit")

    assert rt.state.state_path == tmp_path / "explicit" / "state.yaml"


def test_record_updates_history_and_session(runtime, tmp_path):
    runtime.contexts.create("prod", fields={"region": "eu-west-1"})
    runtime.contexts.switch_to("prod")

    entry = runtime.record("clusters list", 0, timedelta(milliseconds=120))

    assert entry.context == "prod"
    assert entry.duration_ms == 120
    assert runtime.state.get_session().last_command == "clusters list"

    # Both files are on disk for the next invocation
    again = Runtime.open("testcli", state_dir=tmp_path / "state")
    assert again.history.get(1).command == "clusters list"
    assert again.state.get_session().last_command == "clusters list"
    assert again.contexts.current_name() == "prod"


def test_state_survives_across_invocations(runtime, tmp_path):
    runtime.contexts.create("prod", fields={"cluster": "c-prod"})
    runtime.contexts.switch_to("prod")
    runtime.state.add_recent_value("regions", "ap-south-1")
    runtime.save()

    again = Runtime.open(
        "testcli", state_dir=tmp_path / "state", builtin_defaults={"region": "us-east-1"}
    )

    assert again.defaults.resolve("cluster") == "c-prod"
    assert again.defaults.resolve_with_priority("region") == ("ap-south-1", DefaultPriority.RECENT)


def test_env_override_through_runtime(tmp_path, monkeypatch):
    config = CliforgeConfig(cli_name="testcli", env_vars={"region": "TESTCLI_REGION"})
    rt = Runtime.open(
        "testcli", config=config, state_dir=tmp_path, builtin_defaults={"region": "us-east-1"}
    )
    monkeypatch.setenv("TESTCLI_REGION", "sa-east-1")

    assert rt.defaults.resolve("region") == "sa-east-1"


def test_corrupt_state_file_fails_open(tmp_path):
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    (state_dir / "state.yaml").write_text("current_context: [broken\n")

    with pytest.raises(CliforgeParseError):
        Runtime.open("testcli", state_dir=state_dir)
