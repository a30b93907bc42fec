"""Tests for command models, settings and process utilities."""

from pathlib import Path

import pytest

from pipecmd import CmdError, CommandSpec, Output
from pipecmd.config import (
    Settings,
    get_settings,
    set_settings,
)
from pipecmd.models import parse_command_input
from pipecmd.process_utils import merge_env, normalize_command


def test_command_spec_defaults():
    """Test optional fields default to no cwd and no env overrides."""
    spec = CommandSpec(cmd=["ls"])

    assert spec.cwd is None
    assert spec.env == {}


def test_command_spec_path_values():
    """Test os.PathLike values are converted to strings."""
    spec = CommandSpec(cmd=[Path("/bin/ls"), "-l"], cwd=Path("/tmp"))

    assert spec.cmd == ["/bin/ls", "-l"]
    assert spec.cwd == "/tmp"


def test_command_spec_rejects_string_cmd():
    """Test cmd must be a sequence, not a single string."""
    with pytest.raises(TypeError):
        CommandSpec.model_validate({"cmd": "ls -l"})


def test_command_spec_env_list_requires_equals():
    """Test list-form env entries must be KEY=VALUE."""
    with pytest.raises(ValueError, match="expected KEY=VALUE"):
        CommandSpec(cmd=["ls"], env=["NOEQUALS"])


def test_parse_command_input_shapes():
    """Test both call shapes produce the same spec."""
    flat = parse_command_input(("ls", "-l"), cwd="/tmp")
    config = parse_command_input(({"cmd": ["ls", "-l"], "cwd": "/tmp"},))

    assert flat == config


def test_command_spec_env_list_splits_on_first_equals():
    """Test list-form env entries split on the first '=' only."""
    spec = CommandSpec(cmd=["ls"], env=["A=1", "B=c=d", "E="])

    assert spec.env == {"A": "1", "B": "c=d", "E": ""}


@pytest.mark.parametrize(
    "env",
    [["=value"], {"": "value"}, {"A=B": "value"}],
)
def test_command_spec_env_rejects_bad_names(env):
    """Test empty names and names containing '=' are rejected."""
    with pytest.raises(ValueError, match="Invalid environment variable name"):
        CommandSpec(cmd=["ls"], env=env)


def test_settings_from_env():
    """Test PIPECMD_* variables override defaults."""
    settings = Settings.from_env(
        {"PIPECMD_CHUNK_SIZE": "16", "PIPECMD_DECODE_ERRORS": "strict"}
    )

    assert settings.chunk_size == 16
    assert settings.decode_errors == "strict"
    assert Settings.from_env({}) == Settings()


def test_settings_invalid_values():
    """Test invalid settings are rejected."""
    with pytest.raises(ValueError):
        Settings.from_env({"PIPECMD_CHUNK_SIZE": "0"})
    with pytest.raises(ValueError):
        Settings.from_env({"PIPECMD_DECODE_ERRORS": "loose"})


def test_get_settings_cached(monkeypatch):
    """Test settings are read once and can be injected."""
    monkeypatch.setenv("PIPECMD_CHUNK_SIZE", "32")
    assert get_settings().chunk_size == 32

    monkeypatch.setenv("PIPECMD_CHUNK_SIZE", "64")
    assert get_settings().chunk_size == 32

    set_settings(Settings(chunk_size=8))
    assert get_settings().chunk_size == 8


def test_normalize_command():
    """Test argv normalization."""
    assert normalize_command(["echo", Path("x")]) == ("echo", "x")
    with pytest.raises(ValueError):
        normalize_command([])
    with pytest.raises(ValueError):
        normalize_command(["  "])
    with pytest.raises(TypeError):
        normalize_command("echo")
    with pytest.raises(TypeError):
        normalize_command(["echo", None])


def test_merge_env_override_wins():
    """Test stage overrides win over the ambient environment."""
    ambient = {"A": "1", "B": "2"}
    merged = merge_env(ambient, {"B": "3", "C": "4"})

    assert merged == {"A": "1", "B": "3", "C": "4"}
    assert ambient == {"A": "1", "B": "2"}
    assert merge_env(ambient) == ambient


def test_cmd_error_fields():
    """Test CmdError exposes command and code."""
    err = CmdError(["node", "fail.js"], 3)

    assert err.command == ("node", "fail.js")
    assert err.code == 3
    assert err.stderr is None
    assert str(err) == "Command 'node fail.js' failed with exit code 3"


def test_cmd_error_with_stderr():
    """Test captured stderr is included in the message."""
    err = CmdError(("x",), 1, "boom\n")

    assert err.stderr == "boom\n"
    assert "boom" in str(err)


def test_output_model():
    """Test the get_all result model."""
    output = Output(stdout="a", stderr="b")
    assert (output.stdout, output.stderr) == ("a", "b")
