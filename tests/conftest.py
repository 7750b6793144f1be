"""
Pytest configuration and shared fixtures for toolbox tests.

Provides fakes for external commands, the environment and the process
table so that no test touches the real system.
"""

import os
import pytest
from unittest.mock import MagicMock, patch
from pathlib import Path
from typing import Generator, List
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.commands import CommandResult  # noqa: E402


# ============ Environment Fixtures ============

@pytest.fixture
def temp_home(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary home directory for tests."""
    home = tmp_path / "home"
    old_home = os.environ.get('HOME')
    os.environ['HOME'] = str(home)

    # Create common directories
    (home / ".config").mkdir(parents=True)
    (home / ".local/share").mkdir(parents=True)

    yield home

    if old_home:
        os.environ['HOME'] = old_home
    else:
        os.environ.pop('HOME', None)


@pytest.fixture
def temp_config_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point XDG_CONFIG_HOME at an empty directory."""
    config_dir = tmp_path / "xdg-config"
    config_dir.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    return config_dir


@pytest.fixture
def hyprland_environ():
    """Environment variables of a Hyprland session."""
    return {
        "XDG_SESSION_TYPE": "wayland",
        "XDG_CURRENT_DESKTOP": "Hyprland",
        "WAYLAND_DISPLAY": "wayland-1",
        "DBUS_SESSION_BUS_ADDRESS": "unix:path=/run/user/1000/bus",
    }


@pytest.fixture
def kde_environ():
    """Environment variables of a Plasma X11 session."""
    return {
        "XDG_SESSION_TYPE": "x11",
        "XDG_CURRENT_DESKTOP": "KDE",
        "DESKTOP_SESSION": "plasma",
        "DISPLAY": ":0",
    }


# ============ Command Fixtures ============

class FakeRunner:
    """
    Stand-in for common.commands.run / stream.

    Responses are matched by command prefix; the most recently
    registered match wins. Unmatched commands succeed with no output.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.sudo_calls: List[List[str]] = []
        self._responses = []
        self.default_returncode = 0

    def on(self, *prefix, returncode=0, stdout="", stderr=""):
        self._responses.append((list(prefix), returncode, stdout, stderr))
        return self

    def __call__(self, cmd, timeout=None, sudo=False):
        args = [str(c) for c in cmd]
        self.calls.append(args)
        if sudo:
            self.sudo_calls.append(args)
        for prefix, returncode, stdout, stderr in reversed(self._responses):
            if args[:len(prefix)] == prefix:
                return CommandResult(args, returncode, stdout, stderr)
        return CommandResult(args, self.default_returncode, "", "")

    def count(self, *prefix) -> int:
        prefix = list(prefix)
        return sum(1 for args in self.calls if args[:len(prefix)] == prefix)

    def called(self, *prefix) -> bool:
        return self.count(*prefix) > 0


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Recording fake for external commands."""
    return FakeRunner()


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for tests."""
    with patch('subprocess.run') as mock_run:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr="",
        )
        yield mock_run


@pytest.fixture
def mock_subprocess_popen():
    """Mock subprocess.Popen for tests."""
    with patch('subprocess.Popen') as mock_popen:
        mock_proc = MagicMock()
        mock_proc.stdout = iter(["line one\n", "line two\n"])
        mock_proc.wait.return_value = 0
        mock_proc.__enter__.return_value = mock_proc
        mock_proc.__exit__.return_value = False
        mock_popen.return_value = mock_proc
        yield mock_popen


# ============ Process Table Fixtures ============

def make_process(name, rss=0, pid=1, cmdline=None, memory_percent=0.0):
    """A fake psutil.Process carrying the attrs process_iter would fill in."""
    proc = MagicMock()
    proc.pid = pid
    proc.info = {
        "name": name,
        "cmdline": cmdline if cmdline is not None else [name],
        "memory_info": MagicMock(rss=rss),
        "memory_percent": memory_percent,
    }
    return proc


@pytest.fixture
def process_table():
    """
    Patch psutil.process_iter with a configurable list of processes.

    Usage:
        process_table.extend([make_process("Hyprland", rss=100 * 1024 * 1024)])
    """
    processes = []
    with patch("psutil.process_iter", side_effect=lambda *a, **k: iter(processes)):
        yield processes


@pytest.fixture
def not_root():
    """Pretend the tests run as an unprivileged user."""
    with patch("common.decorators.is_root", return_value=False):
        yield


@pytest.fixture
def as_root():
    """Pretend the tests run as root."""
    with patch("common.decorators.is_root", return_value=True):
        yield


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "requires_root: marks tests that need root privileges"
    )
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "hardware: hardware-dependent tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests based on environment."""
    skip_hw = pytest.mark.skip(reason="Hardware tests disabled in CI")
    skip_root = pytest.mark.skip(reason="Requires root privileges")

    for item in items:
        # Skip hardware tests in CI
        if "hardware" in item.keywords and os.environ.get("CI"):
            item.add_marker(skip_hw)

        # Skip root tests if not root
        if "requires_root" in item.keywords:
            try:
                if os.getuid() != 0:
                    item.add_marker(skip_root)
            except AttributeError:
                item.add_marker(skip_root)
