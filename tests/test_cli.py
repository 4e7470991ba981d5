"""Tests for vmcreate.cli module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from vmcreate import cli
from vmcreate.exceptions import PipelineError, VMCreateError
from vmcreate.models import VMConfig


class TestUsage:
    @pytest.mark.parametrize("argv", [[], ["Test1"]])
    def test_missing_arguments_exit_1_without_side_effects(self, argv, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        with (
            patch("vmcreate.cli.parse_env") as mock_parse,
            patch("vmcreate.cli.Pipeline") as mock_pipeline,
        ):
            rc = cli.main(argv)
        assert rc == 1
        mock_parse.assert_not_called()
        mock_pipeline.assert_not_called()
        out = capsys.readouterr().out
        assert "Parameters required" in out
        assert "VMName" in out and "BaseImage" in out
        assert list(tmp_path.iterdir()) == []

    def test_help_mentions_settings(self):
        text = cli.build_parser().format_help()
        assert "VMSize" in text
        assert "id_rsa.pub" in text


class TestShowConfig:
    def test_masks_password(self, capsys):
        cfg = VMConfig(root_password="hunter2", packages=["a", "b"])
        cli.show_config(cfg)
        out = capsys.readouterr().out
        assert "root_password: ********" in out
        assert "hunter2" not in out
        assert "packages: a, b" in out
        assert "memory_mb: 1024" in out

    def test_show_config_branch_needs_no_positionals(self, default_vm_config):
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.show_config") as mock_show,
        ):
            rc = cli.main(["--show-config"])
        assert rc == 0
        mock_show.assert_called_once_with(default_vm_config)

    def test_show_config_error(self):
        with (
            patch("vmcreate.cli.parse_env", side_effect=VMCreateError("bad")),
            patch("vmcreate.cli.log") as mock_log,
        ):
            rc = cli.main(["--show-config"])
        assert rc == 1
        mock_log.assert_called_with("ERROR", "bad")


class TestMain:
    def test_config_error_returns_1(self):
        with (
            patch("vmcreate.cli.parse_env", side_effect=VMCreateError("VM_RAM must be an integer")),
            patch("vmcreate.cli.log") as mock_log,
        ):
            rc = cli.main(["Test1", "/img/base.qcow2"])
        assert rc == 1
        mock_log.assert_called_with("ERROR", "VM_RAM must be an integer")

    def test_invalid_name_returns_1(self, default_vm_config):
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.Pipeline") as mock_pipeline,
        ):
            rc = cli.main(["bad name", "/img/base.qcow2"])
        assert rc == 1
        mock_pipeline.assert_not_called()

    def test_config_file_passed_through(self, default_vm_config):
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config) as mock_parse,
            patch("vmcreate.cli.Pipeline"),
            patch("vmcreate.cli.print_summary_banner"),
        ):
            cli.main(["--config", "vm.yaml", "Test1", "/img/base.qcow2"])
        mock_parse.assert_called_once_with(Path("vm.yaml"), announce_password=True)

    def test_successful_run(self, default_vm_config):
        fake_pipeline = MagicMock()
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.Pipeline", return_value=fake_pipeline) as mock_cls,
            patch("vmcreate.cli.print_summary_banner") as mock_banner,
        ):
            rc = cli.main(["Test1", "/img/base.qcow2", "20G"])
        assert rc == 0
        request, cfg = mock_cls.call_args[0]
        assert request.disk_image == Path("/img/test1.qcow2")
        assert request.seed_iso == Path("/img/test1.cloudinit.iso")
        assert cfg is default_vm_config
        fake_pipeline.run.assert_called_once()
        mock_banner.assert_called_once()

    def test_pipeline_error_returns_tool_status(self, default_vm_config):
        fake_pipeline = MagicMock()
        fake_pipeline.run.side_effect = PipelineError("VM launch", "virt-install exited with status 4", 4)
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.Pipeline", return_value=fake_pipeline),
            patch("vmcreate.cli.log") as mock_log,
        ):
            rc = cli.main(["Test1", "/img/base.qcow2"])
        assert rc == 4
        mock_log.assert_called_with("ERROR", "VM launch failed: virt-install exited with status 4")

    def test_unexpected_error_returns_1(self, default_vm_config):
        fake_pipeline = MagicMock()
        fake_pipeline.run.side_effect = RuntimeError("boom")
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.Pipeline", return_value=fake_pipeline),
            patch("traceback.print_exc"),
        ):
            rc = cli.main(["Test1", "/img/base.qcow2"])
        assert rc == 1

    def test_dry_run_prints_plan_without_running(self, default_vm_config, capsys):
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.Pipeline") as mock_pipeline,
            patch("vmcreate.cli.describe_plan", return_value=["plan line"]) as mock_plan,
        ):
            rc = cli.main(["--dry-run", "Test1", "/img/base.qcow2"])
        assert rc == 0
        mock_pipeline.assert_not_called()
        mock_plan.assert_called_once()
        assert "plan line" in capsys.readouterr().out


class TestSummaryBanner:
    def test_banner_lines(self, request_for, default_vm_config, capsys):
        cli.print_summary_banner(request_for("Test1"), default_vm_config)
        out = capsys.readouterr().out
        assert "VM: Test1 (test1.local)" in out
        assert "virsh --connect qemu:///system start Test1" in out
        assert "ssh root@test1.local" in out
        assert "Backing file:" in out


class TestSettingsFileRuns:
    def test_dry_run_with_numeric_password_in_file(self, clean_env, tmp_path, capsys):
        settings = tmp_path / "vm.yaml"
        settings.write_text("root_password: 1\ntimezone: 0\n")
        base = tmp_path / "base.qcow2"
        with patch("vmcreate.cloudinit.generate_instance_id", return_value="iid"):
            rc = cli.main(["--config", str(settings), "--dry-run", "Test1", str(base)])
        assert rc == 0
        out = capsys.readouterr().out
        assert "--- user-data ---" in out
        assert "timezone: '0'" in out
        assert not (tmp_path / "test1.qcow2").exists()

    def test_dry_run_plan_error_returns_status(self, default_vm_config):
        with (
            patch("vmcreate.cli.parse_env", return_value=default_vm_config),
            patch("vmcreate.cli.describe_plan", side_effect=VMCreateError("cannot render")),
            patch("vmcreate.cli.log") as mock_log,
        ):
            rc = cli.main(["--dry-run", "Test1", "/img/base.qcow2"])
        assert rc == 1
        mock_log.assert_called_with("ERROR", "cannot render")

    def test_show_config_does_not_reveal_generated_password(self, clean_env, capsys):
        with patch("vmcreate.config.generate_password", return_value="Gen3ratedSecret1"):
            rc = cli.main(["--show-config"])
        assert rc == 0
        out = capsys.readouterr().out
        assert "Gen3ratedSecret1" not in out
        assert "root_password: ********" in out
