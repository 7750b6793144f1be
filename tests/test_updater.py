"""
Tests for the update orchestrator.
"""

import io
import itertools
import socket
import threading
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeRunner, make_process


LOCK_OUTPUT = """\
:: Synchronizing package databases...
error: failed to init transaction (unable to lock database)
error: could not lock database: File exists
  if you're sure a package manager is not already
  running, you can remove /var/lib/pacman/db.lck
"""


def tty_environment():
    from desktop_env.environment import EnvironmentInfo, SessionType

    return EnvironmentInfo(session_type=SessionType.TTY)


def hyprland_environment():
    from desktop_env.environment import EnvironmentInfo, SessionType

    return EnvironmentInfo(
        session_type=SessionType.WAYLAND,
        desktop="Hyprland",
        desktop_process="Hyprland",
        compositor="Hyprland",
    )


def kde_environment():
    from desktop_env.environment import EnvironmentInfo, SessionType

    return EnvironmentInfo(
        session_type=SessionType.X11,
        desktop="KDE Plasma",
        desktop_process="plasmashell",
        compositor="kwin",
    )


class TestClassification:
    """Tests for failure classification."""

    @pytest.mark.unit
    @pytest.mark.parametrize("output,kind", [
        (LOCK_OUTPUT, "lock"),
        ("error: failed retrieving file 'core.db' from mirror", "network"),
        ("Could not resolve host: mirror.archlinux.org", "network"),
        ("error: failed to commit transaction (conflicting files)\n"
         "foo: /usr/bin/foo exists in filesystem", "filesystem"),
        ("error: package is CORRUPTED (invalid or corrupted package)", "filesystem"),
        ("error: target not found: nosuchpkg", "generic"),
        ("", "generic"),
    ])
    def test_classify(self, output, kind):
        from updater.remediation import classify_error

        assert classify_error(output).value == kind

    @pytest.mark.unit
    def test_lock_wins_over_network(self):
        from updater.remediation import ErrorKind, classify_error

        output = "failed to synchronize all databases (unable to lock database)"
        assert classify_error(output) is ErrorKind.LOCK


class TestRemediator:
    """Tests for the single remediation action per kind."""

    @pytest.fixture
    def remediator(self, fake_runner):
        from updater.remediation import Remediator

        self.sleeps = []
        return Remediator(runner=fake_runner, sleep=self.sleeps.append)

    @pytest.mark.unit
    def test_lock(self, remediator, fake_runner):
        from updater.remediation import ErrorKind

        assert remediator.remediate(ErrorKind.LOCK) is True
        assert fake_runner.sudo_calls == [
            ["rm", "-f", "/var/lib/pacman/db.lck"],
            ["pacman", "-Syy"],
        ]

    @pytest.mark.unit
    def test_network(self, remediator, fake_runner):
        from updater.remediation import ErrorKind

        assert remediator.remediate(ErrorKind.NETWORK) is True
        assert fake_runner.sudo_calls == [["systemctl", "restart", "NetworkManager"]]
        assert self.sleeps == [2.0]

    @pytest.mark.unit
    def test_filesystem(self, remediator, fake_runner):
        from updater.remediation import ErrorKind

        fake_runner.on("pacman", "-Dk", returncode=1, stderr="missing dependency")
        assert remediator.remediate(ErrorKind.FILESYSTEM) is False
        assert fake_runner.sudo_calls == [["pacman", "-Dk"]]

    @pytest.mark.unit
    def test_generic_does_nothing(self, remediator, fake_runner):
        from updater.remediation import ErrorKind

        assert remediator.remediate(ErrorKind.GENERIC) is False
        assert fake_runner.calls == []
        assert remediator.history == [ErrorKind.GENERIC]


class TestNetwork:
    """Tests for the reachability probe."""

    @pytest.mark.unit
    def test_second_host_answers(self):
        from updater.network import check_network

        tried = []

        def connect(address, timeout):
            tried.append(address)
            if address[0] == "8.8.8.8":
                raise OSError("Network is unreachable")
            return MagicMock()

        assert check_network(["8.8.8.8", "1.1.1.1"], 53, 1.0, connect=connect) is True
        assert tried == [("8.8.8.8", 53), ("1.1.1.1", 53)]

    @pytest.mark.unit
    def test_unreachable(self):
        from updater.network import host_reachable

        def connect(address, timeout):
            raise socket.timeout("timed out")

        assert host_reachable("8.8.8.8", connect=connect) is False


class TestRebootSignals:
    """Tests for the reboot recommendation."""

    @pytest.mark.unit
    @pytest.mark.parametrize("signals", list(itertools.product([False, True], repeat=3)))
    def test_truth_table(self, signals):
        from updater.reboot import RebootSignals, reboot_recommended

        assert reboot_recommended(*signals) == any(signals)
        reboot = RebootSignals(*signals)
        assert reboot.recommended == any(signals)
        assert len(reboot.reasons()) == sum(signals)

    @pytest.fixture
    def modules_root(self, tmp_path):
        root = tmp_path / "modules"
        (root / "6.6.8-arch1-1").mkdir(parents=True)
        return root

    @pytest.mark.unit
    def test_kernel_matches(self, modules_root):
        from updater.reboot import kernel_mismatch

        assert not kernel_mismatch("6.6.8-arch1-1", "6.6.8.arch1-1", modules_root)

    @pytest.mark.unit
    def test_kernel_upgraded(self, modules_root):
        from updater.reboot import kernel_mismatch

        assert kernel_mismatch("6.6.8-arch1-1", "6.6.9.arch1-1", modules_root)

    @pytest.mark.unit
    def test_running_modules_removed(self, modules_root):
        from updater.reboot import kernel_mismatch

        assert kernel_mismatch("6.6.7-arch1-1", "6.6.7.arch1-1", modules_root)

    @pytest.mark.unit
    def test_kernel_package_missing(self, modules_root):
        from updater.reboot import kernel_mismatch

        assert not kernel_mismatch("6.6.8-arch1-1", None, modules_root)

    @pytest.mark.unit
    def test_compute_signals_hyprland(self, fake_runner, modules_root):
        from common.packages import Pacman
        from updater.reboot import compute_reboot_signals

        fake_runner.on("pacman", "-Qqu", stdout="hyprland\nmesa\nfirefox\n")
        fake_runner.on("pacman", "-Q", "linux", stdout="linux 6.6.8.arch1-1\n")

        signals = compute_reboot_signals(
            Pacman(runner=fake_runner), hyprland_environment(),
            running_release="6.6.8-arch1-1", modules_root=modules_root,
        )
        assert not signals.kernel_mismatch
        assert signals.compositor_pending
        assert signals.gpu_driver_pending
        assert signals.reasons() == ["Hyprland update", "Graphics driver update"]

    @pytest.mark.unit
    def test_compositor_signal_needs_hyprland(self, fake_runner, modules_root):
        from common.packages import Pacman
        from updater.reboot import compute_reboot_signals

        fake_runner.on("pacman", "-Qqu", stdout="hyprland\n")
        fake_runner.on("pacman", "-Q", "linux", stdout="linux 6.6.8.arch1-1\n")

        signals = compute_reboot_signals(
            Pacman(runner=fake_runner), kde_environment(),
            running_release="6.6.8-arch1-1", modules_root=modules_root,
        )
        assert not signals.recommended


class TestResourceMonitor:
    """Tests for the live resource display."""

    @pytest.mark.unit
    def test_samples_and_stops(self):
        from updater.monitor import ResourceMonitor, ResourceSample

        sampled = threading.Event()

        def sampler():
            sampled.set()
            return ResourceSample(12.5, 40.0, 63.0)

        output = io.StringIO()
        monitor = ResourceMonitor(interval=0.01, output=output, sampler=sampler)
        with monitor:
            assert sampled.wait(timeout=5)
            assert monitor.running

        assert not monitor.running
        assert monitor.samples
        text = output.getvalue()
        assert "CPU:  12.5% RAM:  40.0% Disk: 63%" in text
        assert text.endswith("\r" + " " * 80 + "\r")

    @pytest.mark.unit
    def test_stops_when_command_raises(self):
        from updater.monitor import ResourceMonitor, ResourceSample

        monitor = ResourceMonitor(interval=0.01, output=io.StringIO(),
                                  sampler=lambda: ResourceSample(0, 0, 0))
        with pytest.raises(RuntimeError):
            with monitor:
                raise RuntimeError("update failed")
        assert not monitor.running

    @pytest.mark.unit
    def test_sampling_errors_are_tolerated(self):
        import psutil
        from updater.monitor import ResourceMonitor

        calls = threading.Event()

        def sampler():
            calls.set()
            raise psutil.AccessDenied()

        monitor = ResourceMonitor(interval=0.01, output=io.StringIO(), sampler=sampler)
        with monitor:
            assert calls.wait(timeout=5)
        assert monitor.samples == []


class TestChecks:
    """Tests for check isolation."""

    @pytest.mark.unit
    def test_failing_check_becomes_error(self):
        from updater.checks import CheckLevel, run_checks

        def check_broken():
            raise OSError("no such file")

        def check_fine():
            from updater.checks import CheckResult
            return CheckResult("fine", CheckLevel.OK, "fine")

        results = run_checks([check_broken, check_fine])
        assert results[0].name == "broken"
        assert results[0].level is CheckLevel.ERROR
        assert results[1].ok


class TestHealthChecks:
    """Tests for the pre-update survey."""

    def _checker(self, runner, installed=(), tmp_path=None):
        from updater.health import HealthChecker

        kwargs = {}
        if tmp_path is not None:
            kwargs = {"proc_root": tmp_path / "proc", "boot_root": tmp_path / "boot"}
        return HealthChecker(runner=runner, command_exists=lambda name: name in installed,
                             **kwargs)

    @pytest.mark.unit
    def test_network_interfaces(self, fake_runner):
        from updater.checks import CheckLevel

        addrs = {
            "lo": [SimpleNamespace(family=socket.AF_INET)],
            "enp3s0": [SimpleNamespace(family=socket.AF_INET)],
            "wlan0": [SimpleNamespace(family=socket.AF_INET6)],
        }
        with patch("psutil.net_if_addrs", return_value=addrs):
            result = self._checker(fake_runner).check_network_interfaces()
        assert result.level is CheckLevel.WARNING
        assert result.message == "Disconnected: wlan0"

    @pytest.mark.unit
    def test_storage_smart(self, fake_runner):
        from updater.checks import CheckLevel

        fake_runner.on("lsblk", stdout="sda\nnvme0n1\nloop0\n")
        fake_runner.on("smartctl", "-H", "/dev/sda", stdout="SMART overall-health: PASSED\n")
        fake_runner.on("smartctl", "-H", "/dev/nvme0n1", stdout="SMART overall-health: FAILED!\n")

        result = self._checker(fake_runner, installed={"smartctl"}).check_storage()
        assert result.level is CheckLevel.ERROR
        assert "/dev/nvme0n1" in result.message
        assert "/dev/sda" not in result.message
        assert not fake_runner.called("smartctl", "-H", "/dev/loop0")

    @pytest.mark.unit
    def test_storage_unread_drive_is_not_a_failure(self, fake_runner):
        """A SMART query that timed out or was refused by sudo only warns."""
        from common.commands import TIMED_OUT
        from updater.checks import CheckLevel

        fake_runner.on("lsblk", stdout="sda\nsdb\n")
        fake_runner.on("smartctl", "-H", "/dev/sda", stdout="SMART overall-health: PASSED\n")
        fake_runner.on("smartctl", "-H", "/dev/sdb", returncode=TIMED_OUT, stderr="timed out")

        result = self._checker(fake_runner, installed={"smartctl"}).check_storage()
        assert result.level is CheckLevel.WARNING
        assert result.message == "Could not read SMART status for /dev/sdb"

    @pytest.mark.unit
    def test_sudo_commands_have_no_timeout(self):
        """Privileged commands may wait on a password prompt."""
        from common.commands import CommandResult
        from updater.cleanup import SystemCleaner
        from updater.health import HealthChecker
        from updater.remediation import ErrorKind, Remediator

        sudo_timeouts = []

        def runner(cmd, timeout=None, sudo=False):
            if sudo and timeout is not None:
                sudo_timeouts.append(list(cmd))
            return CommandResult(list(cmd), 0, "sda\n", "")

        checker = HealthChecker(runner=runner, command_exists=lambda name: True)
        checker.check_storage()
        checker.check_firewall()
        SystemCleaner(runner=runner).clean_package_cache()
        SystemCleaner(runner=runner).vacuum_journal()
        remediator = Remediator(runner=runner, sleep=lambda seconds: None)
        for kind in (ErrorKind.LOCK, ErrorKind.NETWORK, ErrorKind.FILESYSTEM):
            remediator.remediate(kind)

        assert sudo_timeouts == []

    @pytest.mark.unit
    def test_storage_without_smartctl(self, fake_runner):
        from updater.checks import CheckLevel

        assert self._checker(fake_runner).check_storage().level is CheckLevel.SKIPPED

    @pytest.mark.unit
    def test_temperatures(self, fake_runner):
        from updater.checks import CheckLevel

        sensors = {"coretemp": [SimpleNamespace(current=55.0), SimpleNamespace(current=61.0)]}
        fake_runner.on("nvidia-smi", stdout="84\n")
        with patch("psutil.sensors_temperatures", return_value=sensors, create=True):
            result = self._checker(fake_runner, installed={"nvidia-smi"}).check_temperatures()
        assert result.level is CheckLevel.WARNING
        assert result.message == "High temperature: GPU 84°C"

    @pytest.mark.unit
    def test_firewall_fallback(self, fake_runner):
        from updater.checks import CheckLevel

        fake_runner.on("firewall-cmd", "--state", stdout="running\n")
        result = self._checker(fake_runner, installed={"firewall-cmd"}).check_firewall()
        assert result.level is CheckLevel.OK
        assert result.message == "firewall-cmd firewall is active"

        assert self._checker(fake_runner).check_firewall().level is CheckLevel.SKIPPED

    @pytest.mark.unit
    def test_audio(self, fake_runner, process_table):
        from updater.checks import CheckLevel

        checker = self._checker(fake_runner)
        assert checker.check_audio().level is CheckLevel.ERROR

        process_table.append(make_process("pipewire"))
        assert checker.check_audio().level is CheckLevel.OK

    @pytest.mark.unit
    def test_failed_user_services(self, fake_runner):
        from updater.checks import CheckLevel

        fake_runner.on("systemctl", "--user", stdout="● foo.service loaded failed failed Foo\n")
        result = self._checker(fake_runner).check_user_services()
        assert result.level is CheckLevel.ERROR
        assert result.message == "Failed user services: foo.service"

    @pytest.mark.unit
    def test_remote_sessions(self, fake_runner):
        from updater.checks import CheckLevel

        users = [
            SimpleNamespace(name="alice", terminal="tty1", host=None),
            SimpleNamespace(name="bob", terminal="pts/0", host="10.0.0.7"),
        ]
        with patch("psutil.users", return_value=users):
            result = self._checker(fake_runner).check_remote_sessions()
        assert result.level is CheckLevel.WARNING
        assert "10.0.0.7" in result.message

    @pytest.mark.unit
    def test_virtualization(self, fake_runner, tmp_path):
        from updater.checks import CheckLevel

        proc = tmp_path / "proc"
        proc.mkdir()
        (proc / "cpuinfo").write_text("processor\t: 0\nflags\t\t: fpu vme svm sse\n")
        (proc / "modules").write_text("kvm_amd 200704 0 - Live 0x0\nkvm 1372160 1 kvm_amd\n")

        result = self._checker(fake_runner, tmp_path=tmp_path).check_virtualization()
        assert result.level is CheckLevel.OK
        assert result.message == "CPU virtualization support: Yes, modules loaded: kvm, kvm_amd"

    @pytest.mark.unit
    def test_bootloader(self, fake_runner, tmp_path):
        from updater.checks import CheckLevel

        (tmp_path / "boot" / "loader").mkdir(parents=True)
        result = self._checker(fake_runner, tmp_path=tmp_path).check_bootloader()
        assert result.level is CheckLevel.OK
        assert result.message == "systemd-boot detected"

    @pytest.mark.unit
    def test_system_report_isolates_failures(self, fake_runner, tmp_path):
        """A missing /proc/cpuinfo turns into an ERROR result, not an exception."""
        from updater.checks import CheckLevel

        results = self._checker(fake_runner, tmp_path=tmp_path).system_report()
        by_name = {r.name: r for r in results}
        assert by_name["virtualization"].level is CheckLevel.ERROR
        assert len(results) == 5


class TestVerifier:
    """Tests for post-update verification."""

    @pytest.mark.unit
    def test_hyprland_processes(self, fake_runner, process_table, hyprland_environ):
        from updater.checks import CheckLevel
        from updater.verifier import UpdateVerifier

        process_table.extend([make_process("Hyprland"), make_process("dunst")])
        verifier = UpdateVerifier(hyprland_environment(), runner=fake_runner,
                                  environ=hyprland_environ)
        levels = {r.name: r.level for r in verifier.desktop_checks()}

        assert levels["process:Hyprland"] is CheckLevel.OK
        assert levels["process:waybar"] is CheckLevel.ERROR
        assert levels["process:dunst"] is CheckLevel.OK
        assert levels["process:polkit-gnome-authentication-agent-1"] is CheckLevel.WARNING

    @pytest.mark.unit
    def test_unknown_desktop(self, fake_runner):
        from updater.checks import CheckLevel
        from updater.verifier import UpdateVerifier

        results = UpdateVerifier(tty_environment(), runner=fake_runner, environ={}).desktop_checks()
        assert [r.level for r in results] == [CheckLevel.WARNING]

    @pytest.mark.unit
    def test_nvidia_driver_not_responding(self, fake_runner):
        from updater.checks import CheckLevel
        from updater.verifier import UpdateVerifier

        fake_runner.on("lspci", stdout=(
            "01:00.0 VGA compatible controller [0300]: NVIDIA Corporation AD104 "
            "[GeForce RTX 4070] [10de:2786] (rev a1)\n"
        ))
        fake_runner.on("nvidia-smi", returncode=9)
        verifier = UpdateVerifier(tty_environment(), runner=fake_runner, environ={})
        assert verifier.check_gpu_driver().level is CheckLevel.WARNING

    @pytest.mark.unit
    def test_dbus_without_session(self, fake_runner):
        from updater.checks import CheckLevel
        from updater.verifier import UpdateVerifier

        verifier = UpdateVerifier(hyprland_environment(), runner=fake_runner, environ={})
        assert verifier.check_dbus().level is CheckLevel.ERROR
        assert not fake_runner.called("dbus-send")

    @pytest.mark.unit
    def test_diagnostics_only_for_hyprland(self, fake_runner, process_table):
        from updater.verifier import UpdateVerifier

        names = [r.name for r in UpdateVerifier(kde_environment(), runner=fake_runner,
                                                environ={}).verify()]
        assert "portals" not in names

        names = [r.name for r in UpdateVerifier(hyprland_environment(), runner=fake_runner,
                                                environ={}).verify(diagnostics=False)]
        assert "portals" not in names

        names = [r.name for r in UpdateVerifier(hyprland_environment(), runner=fake_runner,
                                                environ={}).verify()]
        assert "portals" in names and "compositor_journal" in names

    @pytest.mark.unit
    def test_compositor_errors(self):
        from updater.verifier import compositor_errors

        journal = "\n".join(
            [f"Hyprland[{i}]: error: render failed" for i in range(8)]
            + ["kernel: usb error", "Hyprland[9]: started"]
        )
        errors = compositor_errors(journal)
        assert len(errors) == 5
        assert errors[-1] == "Hyprland[7]: error: render failed"


class TestCleanup:
    """Tests for post-update cleanup."""

    @pytest.mark.unit
    def test_all_steps(self, fake_runner):
        from common.packages import Pacman
        from updater.cleanup import SystemCleaner

        fake_runner.on("du", "-sh", stdout="1.2G\t/var/cache/pacman/pkg\n")
        fake_runner.on("pacman", "-Qtdq", stdout="libfoo\nlibbar\n")

        results = SystemCleaner(runner=fake_runner, pacman=Pacman(runner=fake_runner),
                                journal_retention="14d").run_all()

        assert [r.name for r in results] == ["package_cache", "orphans", "journal"]
        assert all(r.ok for r in results)
        assert results[0].size_before == "1.2G"
        assert ["pacman", "-Sc", "--noconfirm"] in fake_runner.sudo_calls
        assert ["pacman", "-Rns", "libfoo", "libbar", "--noconfirm"] in fake_runner.sudo_calls
        assert ["journalctl", "--vacuum-time=14d"] in fake_runner.sudo_calls

    @pytest.mark.unit
    def test_failure_does_not_stop_later_steps(self, fake_runner):
        from updater.cleanup import SystemCleaner

        fake_runner.on("pacman", "-Sc", returncode=1, stderr="error: failed to lock")
        fake_runner.on("pacman", "-Qtdq", returncode=1)

        results = SystemCleaner(runner=fake_runner).run_all()

        assert [r.ok for r in results] == [False, True, True]
        assert not fake_runner.called("pacman", "-Rns")
        assert fake_runner.called("journalctl")


class TestPipeline:
    """Tests for the full update run."""

    @pytest.fixture
    def streamer(self):
        return FakeRunner()

    def _pipeline(self, fake_runner, streamer, tmp_path, installed=("flatpak", "snap", "yay"),
                  **overrides):
        from common.config import UpdaterConfig
        from updater.pipeline import UpdatePipeline, null_monitor
        from updater.remediation import Remediator

        config = UpdaterConfig(
            health_checks=False,
            cleanup=False,
            backup=False,
            diagnostics=False,
            backup_root=str(tmp_path / "backups"),
        )
        kwargs = dict(
            assume_yes=True,
            runner=fake_runner,
            streamer=streamer,
            command_exists=lambda name: name in installed,
            network_check=lambda: True,
            monitor_factory=null_monitor,
            disk_usage=lambda: 40.0,
            environment=tty_environment(),
            remediator=Remediator(runner=fake_runner, sleep=lambda s: None),
            home=tmp_path / "home",
        )
        kwargs.update(overrides)
        return UpdatePipeline(config, **kwargs)

    @pytest.mark.unit
    def test_stage_order(self, fake_runner, streamer, tmp_path):
        report = self._pipeline(fake_runner, streamer, tmp_path).run()

        assert [s.name for s in report.stages] == ["pacman", "aur", "flatpak", "snap"]
        assert not report.failed_stages
        assert streamer.calls == [
            ["pacman", "-Syu", "--noconfirm"],
            ["yay", "-Sua", "--noconfirm"],
            ["flatpak", "update", "-y"],
            ["snap", "refresh"],
        ]
        assert streamer.sudo_calls == [["pacman", "-Syu", "--noconfirm"], ["snap", "refresh"]]
        assert fake_runner.called("flatpak", "uninstall", "--unused", "-y")
        assert report.finished is not None
        assert report.reboot is not None

    @pytest.mark.unit
    def test_missing_sources_are_skipped(self, fake_runner, streamer, tmp_path):
        from updater.pipeline import StageOutcome

        report = self._pipeline(fake_runner, streamer, tmp_path, installed=("paru",)).run()

        assert report.stage("aur").outcome is StageOutcome.SUCCEEDED
        assert report.stage("flatpak").outcome is StageOutcome.SKIPPED
        assert report.stage("snap").outcome is StageOutcome.SKIPPED
        assert ["paru", "-Sua", "--noconfirm"] in streamer.calls

    @pytest.mark.unit
    def test_mandatory_failure_remediates_once_and_stops(self, fake_runner, streamer, tmp_path):
        from common.exceptions import UpdateStageError
        from updater.remediation import ErrorKind

        streamer.on("pacman", "-Syu", returncode=1, stdout=LOCK_OUTPUT)
        pipeline = self._pipeline(fake_runner, streamer, tmp_path)

        with pytest.raises(UpdateStageError) as exc_info:
            pipeline.run()

        assert exc_info.value.details == {"stage": "pacman", "kind": "lock"}
        assert pipeline.remediator.history == [ErrorKind.LOCK]
        assert fake_runner.count("rm", "-f", "/var/lib/pacman/db.lck") == 1
        assert streamer.count("pacman", "-Syu") == 1
        assert not streamer.called("yay")

    @pytest.mark.unit
    def test_optional_failure_continues(self, fake_runner, streamer, tmp_path):
        from updater.pipeline import StageOutcome
        from updater.remediation import ErrorKind

        streamer.on("flatpak", "update", returncode=1,
                    stdout="error: Could not resolve host: dl.flathub.org")
        pipeline = self._pipeline(fake_runner, streamer, tmp_path)
        report = pipeline.run()

        flatpak = report.stage("flatpak")
        assert flatpak.outcome is StageOutcome.FAILED
        assert flatpak.error_kind is ErrorKind.NETWORK
        assert report.failed_stages == [flatpak]
        assert report.stage("snap").outcome is StageOutcome.SUCCEEDED
        assert pipeline.remediator.history == [ErrorKind.NETWORK]
        assert streamer.count("flatpak", "update") == 1
        assert not fake_runner.called("flatpak", "uninstall")

    @pytest.mark.unit
    def test_network_failure_remediates_and_continues(self, fake_runner, streamer, tmp_path):
        from updater.remediation import ErrorKind

        pipeline = self._pipeline(fake_runner, streamer, tmp_path, network_check=lambda: False)
        report = pipeline.run()

        assert report.network_ok is False
        assert pipeline.remediator.history == [ErrorKind.NETWORK]
        assert fake_runner.called("systemctl", "restart", "NetworkManager")
        assert streamer.called("pacman", "-Syu")

    @pytest.mark.unit
    def test_low_disk_declined(self, fake_runner, streamer, tmp_path):
        from common.exceptions import UserAbort

        pipeline = self._pipeline(
            fake_runner, streamer, tmp_path,
            assume_yes=False, disk_usage=lambda: 95.0,
            confirm=lambda prompt: False, pause=lambda prompt: None,
        )
        with pytest.raises(UserAbort):
            pipeline.run()
        assert streamer.calls == []

    @pytest.mark.unit
    def test_low_disk_with_yes_continues(self, fake_runner, streamer, tmp_path):
        asked = []
        pipeline = self._pipeline(
            fake_runner, streamer, tmp_path,
            disk_usage=lambda: 95.0, confirm=lambda prompt: asked.append(prompt) or False,
        )
        pipeline.run()
        assert asked == []
        assert streamer.called("pacman", "-Syu")

    @pytest.mark.unit
    def test_pause_without_terminal_aborts(self, fake_runner, streamer, tmp_path):
        from common.exceptions import UserAbort
        from updater.pipeline import wait_for_enter

        pipeline = self._pipeline(fake_runner, streamer, tmp_path,
                                  assume_yes=False, pause=wait_for_enter)
        with patch("builtins.input", side_effect=EOFError):
            with pytest.raises(UserAbort):
                pipeline.run()

    @pytest.mark.unit
    def test_backup(self, fake_runner, streamer, tmp_path):
        home = tmp_path / "home"
        (home / ".config" / "hypr").mkdir(parents=True)
        (home / ".config" / "hypr" / "hyprland.conf").write_text("monitor=,auto\n")

        pipeline = self._pipeline(fake_runner, streamer, tmp_path)
        pipeline.config.backup = True
        pipeline.config.backup_paths = [".config/hypr", ".config/waybar"]
        report = pipeline.run()

        assert report.backup.count == 1
        assert report.backup.destination.parent == tmp_path / "backups"
        datetime.strptime(report.backup.destination.name, "%Y%m%d_%H%M%S")
        assert (report.backup.destination / "hypr" / "hyprland.conf").exists()

    @pytest.mark.unit
    def test_cleanup_runs_after_updates(self, fake_runner, streamer, tmp_path):
        pipeline = self._pipeline(fake_runner, streamer, tmp_path)
        pipeline.config.cleanup = True
        report = pipeline.run()

        assert [r.name for r in report.cleanup] == ["package_cache", "orphans", "journal"]
        assert fake_runner.called("pacman", "-Sc")

    @pytest.mark.unit
    def test_monitor_wraps_each_stage(self, fake_runner, streamer, tmp_path):
        import contextlib

        entered = []

        @contextlib.contextmanager
        def monitor():
            entered.append(len(streamer.calls))
            yield

        self._pipeline(fake_runner, streamer, tmp_path, monitor_factory=monitor).run()
        assert entered == [0, 1, 2, 3]


class TestCli:
    """Tests for the update-all command line."""

    @pytest.mark.unit
    def test_log_paths(self, tmp_path):
        from updater.cli import log_paths

        main_log, error_log = log_paths(tmp_path, datetime(2024, 3, 1, 8, 30, 0))
        assert main_log == tmp_path / "update_log_20240301_083000.log"
        assert error_log == tmp_path / "update_errors_20240301_083000.log"

    @pytest.mark.unit
    def test_unknown_flag_exits_1(self):
        from updater.cli import main

        with pytest.raises(SystemExit) as exc:
            main(["--bogus"])
        assert exc.value.code == 1

    @pytest.mark.unit
    def test_flags_override_config(self):
        from common.config import UpdaterConfig
        from updater.cli import apply_flags, build_parser

        args = build_parser().parse_args(["--no-cleanup", "--no-diagnostics", "--log-dir", "/tmp/x"])
        config = apply_flags(UpdaterConfig(), args)

        assert config.cleanup is False
        assert config.diagnostics is False
        assert config.health_checks is True
        assert config.log_dir == "/tmp/x"

    @pytest.mark.unit
    def test_refuses_root(self, as_root):
        from updater.cli import main

        assert main(["--yes"]) == 1

    @pytest.mark.unit
    def test_missing_dependencies(self, not_root, temp_config_dir, tmp_path):
        from updater.cli import main

        with patch("shutil.which", return_value=None):
            code = main(["--yes", "--log-dir", str(tmp_path / "logs")])

        assert code == 1
        error_logs = list((tmp_path / "logs").glob("update_errors_*.log"))
        assert len(error_logs) == 1
        assert "Missing required dependencies: pacman sudo" in error_logs[0].read_text()
