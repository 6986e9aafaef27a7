"""
SimFleet Test Suite - CLI Tests
===============================
Tests for command-line interface.
"""

import pytest
import yaml
from click.testing import CliRunner
from unittest.mock import patch

from conftest import FakeInspector, FakeProcess


@pytest.fixture
def cli_runner():
    """Create CLI test runner."""
    return CliRunner()


def _states(manifest_path):
    data = yaml.safe_load(manifest_path.read_text())
    return {entry["name"]: entry["state"] for entry in data["instances"]}


class TestCLIHelp:
    """Tests for CLI help commands."""

    def test_main_help(self, cli_runner):
        """Test main help output."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "SimFleet" in result.output
        for command in ["status", "power-on", "power-off", "run", "stop", "toggle", "affinity"]:
            assert command in result.output

    def test_version_flag(self, cli_runner):
        """Test --version flag."""
        from simfleet import __version__
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestCLIStatus:
    """Tests for the status command."""

    def test_status(self, cli_runner, manifest_path):
        """Test instances and states are listed."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "status"])

        assert result.exit_code == 0
        assert "plc-1" in result.output
        assert "RUN" in result.output
        assert "3 instances: 2 powered on, 1 running" in result.output

    def test_status_empty(self, cli_runner, tmp_path):
        """Test an empty fleet."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(tmp_path / "none.yaml"), "status"])

        assert result.exit_code == 0
        assert "No instances registered" in result.output

    def test_bad_config(self, cli_runner, manifest_path, tmp_path):
        """Test an invalid config file is reported."""
        from simfleet.cli import cli

        config = tmp_path / "config.yaml"
        config.write_text("fleet:\n  bogus_key: 1\n")

        result = cli_runner.invoke(cli, ["-c", str(config), "-m", str(manifest_path), "status"])

        assert result.exit_code != 0
        assert "bogus_key" in result.output


class TestCLIBulk:
    """Tests for bulk lifecycle commands."""

    def test_run(self, cli_runner, manifest_path):
        """Test run starts stopped instances and saves the manifest."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "run"])

        assert result.exit_code == 0
        assert "run_all: 1/1 succeeded" in result.output
        assert _states(manifest_path) == {"plc-1": "run", "plc-2": "run", "plc-3": "off"}

    def test_power_off_prompt_declined(self, cli_runner, manifest_path):
        """Test declining the prompt leaves everything running."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "power-off"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert _states(manifest_path)["plc-1"] == "run"

    def test_power_off_prompt_accepted(self, cli_runner, manifest_path):
        """Test accepting the prompt powers off the fleet."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "power-off"], input="y\n")

        # plc-3 is already off, which the runtime reports as an issue
        assert result.exit_code == 1
        assert "Failed to power off plc-3" in result.output
        assert set(_states(manifest_path).values()) == {"off"}

    def test_toggle_with_yes(self, cli_runner, manifest_path):
        """Test --yes skips the prompt and toggle stops the running instance."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-y", "-m", str(manifest_path), "toggle"])

        assert result.exit_code == 0
        assert _states(manifest_path) == {"plc-1": "stop", "plc-2": "stop", "plc-3": "off"}

    def test_failure_exit_code(self, cli_runner, tmp_path):
        """Test an injected fault is echoed and sets exit code 1."""
        from simfleet.cli import cli

        manifest = tmp_path / "fleet.yaml"
        manifest.write_text(
            "instances:\n"
            "  - name: good\n    state: stop\n"
            "  - name: bad\n    state: stop\n    fail_on: [run]\n"
        )

        result = cli_runner.invoke(cli, ["-m", str(manifest), "run"])

        assert result.exit_code == 1
        assert "Failed to run bad" in result.output
        assert _states(manifest) == {"good": "run", "bad": "stop"}


class TestCLIRegistry:
    """Tests for add/remove/refresh."""

    def test_add(self, cli_runner, manifest_path):
        """Test adding an instance."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "add", "plc-4", "--state", "stop"])

        assert result.exit_code == 0
        assert "Instance plc-4 added" in result.output
        assert _states(manifest_path)["plc-4"] == "stop"

    def test_add_duplicate(self, cli_runner, manifest_path):
        """Test adding an existing name fails."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "add", "plc-1"])

        assert result.exit_code != 0
        assert "Duplicate" in result.output

    def test_remove(self, cli_runner, manifest_path):
        """Test removing an instance after confirmation."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "remove", "plc-2"], input="y\n")

        assert result.exit_code == 0
        assert "Instance plc-2 removed" in result.output
        assert "plc-2" not in _states(manifest_path)

    def test_remove_unknown(self, cli_runner, manifest_path):
        """Test removing an unknown instance exits with 1."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-y", "-m", str(manifest_path), "remove", "ghost"])

        assert result.exit_code == 1
        assert "Unknown instance ghost" in result.output

    def test_refresh(self, cli_runner, manifest_path):
        """Test refresh reports the instances it picked up."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "refresh"])

        assert result.exit_code == 0
        assert "Instance plc-1 added" in result.output
        assert "Instance plc-3 added" in result.output
        assert "3 instances tracked" in result.output
        assert "up to date" not in result.output

    def test_refresh_empty_manifest(self, cli_runner, tmp_path):
        """Test refresh with nothing upstream."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(tmp_path / "none.yaml"), "refresh"])

        assert result.exit_code == 0
        assert "Fleet is up to date." in result.output

    def test_refresh_unavailable_runtime(self, cli_runner, tmp_path):
        """Test a failed opening refresh is echoed and sets exit code 1."""
        from simfleet.cli import cli
        from simfleet.runtime.loopback import LoopbackRuntime

        runtime = LoopbackRuntime()
        runtime.available = False

        with patch("simfleet.cli.LoopbackRuntime.from_manifest", return_value=runtime):
            result = cli_runner.invoke(cli, ["-m", str(tmp_path / "fleet.yaml"), "refresh"])

        assert result.exit_code == 1
        assert "Instance listing unavailable" in result.output

    def test_commands_do_not_echo_opening_refresh(self, cli_runner, manifest_path):
        """Test only the refresh command lists the instances loaded at start."""
        from simfleet.cli import cli

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "status"])

        assert "added" not in result.output


class TestCLIAffinity:
    """Tests for the affinity command."""

    @patch("simfleet.controller.PsutilProcessInspector")
    def test_affinity_pinned(self, mock_inspector_class, cli_runner, tmp_path):
        """Test running instances are pinned from core 1."""
        from simfleet.cli import cli

        processes = [FakeProcess(100), FakeProcess(101)]
        mock_inspector_class.return_value = FakeInspector(processes, cores=4)
        manifest = tmp_path / "fleet.yaml"
        manifest.write_text(
            "instances:\n"
            "  - name: a\n    state: run\n"
            "  - name: b\n    state: run\n"
        )

        result = cli_runner.invoke(cli, ["-m", str(manifest), "affinity"])

        assert result.exit_code == 0
        assert "CPU 1" in result.output
        assert "CPU 2" in result.output
        assert [p.mask for p in processes] == [[1], [2]]

    @patch("simfleet.controller.PsutilProcessInspector")
    def test_affinity_nothing_running(self, mock_inspector_class, cli_runner, manifest_path):
        """Test a fleet with stopped instances only is left alone."""
        from simfleet.cli import cli

        mock_inspector_class.return_value = FakeInspector([FakeProcess(1)], cores=4)
        manifest_path.write_text("instances:\n  - name: a\n    state: stop\n")

        result = cli_runner.invoke(cli, ["-m", str(manifest_path), "affinity"])

        assert result.exit_code == 0
        assert "Affinity unchanged" in result.output
