"""Pytest configuration and shared fixtures."""

import os
import sys

import pytest

import pipecmd.config
from pipecmd import Ambient

PY = sys.executable

# Writes "This is an error\n" to stderr and exits 3
FAIL_ARGV = [
    PY,
    "-c",
    "import sys; sys.stderr.write('This is an error\\n'); sys.exit(3)",
]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear cached settings before each test to prevent pollution.

    Settings are read from PIPECMD_* variables on first use and cached at
    module level; tests that monkeypatch the environment need a fresh read.
    """
    pipecmd.config.reset_settings()
    yield
    pipecmd.config.reset_settings()


@pytest.fixture
def python():
    """Path of the running interpreter, used as a portable child process."""
    return PY


@pytest.fixture
def fail_argv():
    """argv of a program that prints to stderr and exits with code 3."""
    return list(FAIL_ARGV)


@pytest.fixture
def ambient():
    """Ambient environment without any PIPECMD_TEST_* variables."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("PIPECMD_TEST_")}
    return Ambient(env=env)


@pytest.fixture
def captured_ambient(tmp_path, ambient):
    """Ambient whose stdout/stderr are files, for checking inherited output.

    Yields (ambient, stdout_path, stderr_path).
    """
    stdout_path = tmp_path / "ambient_stdout"
    stderr_path = tmp_path / "ambient_stderr"
    with open(stdout_path, "wb") as out, open(stderr_path, "wb") as err:
        yield (
            Ambient(env=ambient.env, stdout=out, stderr=err),
            stdout_path,
            stderr_path,
        )


@pytest.fixture
def text_file(tmp_path):
    """Provide a file with known multi-line content."""
    path = tmp_path / "input.txt"
    path.write_text("some text\nsome more text", encoding="utf-8")
    return path
