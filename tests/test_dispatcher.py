"""Tests for deployer selection, the deployment command and config-only output."""

import stat

import yaml

from cloudforge.config import DeployConfig
from cloudforge.deploy.base import DeployOptions, DeployResult, Deployer
from cloudforge.deploy.config_only import ConfigOnlyDeployer
from cloudforge.deploy.dispatcher import (
    build_deploy_options,
    build_full_config,
    create_deployer,
    run_deployment,
    wait_for_progress,
)
from cloudforge.deploy.multipass import MultipassDeployer
from cloudforge.deploy.progress import ProgressChannel, ProgressTracker
from cloudforge.deploy.terraform import TerraformDeployer
from cloudforge.deploy.usb import USBDeployer
from cloudforge.models import DeploymentTarget, FullConfig, GenerateOptions, WizardData
from cloudforge.wizard.state import WizardState


class ScriptedDeployer(Deployer):
    name = "Scripted"
    target = DeploymentTarget.MULTIPASS

    def __init__(self, outcome, cleanup_error=None):
        self.outcome = outcome
        self.cleanup_error = cleanup_error
        self.cleaned = False

    def validate(self, opts):
        pass

    def deploy(self, opts, progress):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def cleanup(self, opts):
        self.cleaned = True
        if self.cleanup_error is not None:
            raise self.cleanup_error


def options(tmp_path, target=DeploymentTarget.CONFIG_ONLY, **kwargs):
    return DeployOptions(project_root=tmp_path, config=FullConfig(**kwargs), target=target)


class TestCreateDeployer:
    """Target to backend mapping."""

    def test_each_target(self, registry):
        settings = DeployConfig(multipass_binary="/opt/mp")
        assert isinstance(create_deployer(DeploymentTarget.MULTIPASS, registry, settings), MultipassDeployer)
        assert isinstance(create_deployer(DeploymentTarget.TERRAFORM, registry, settings), TerraformDeployer)
        assert isinstance(create_deployer(DeploymentTarget.USB, registry, settings), USBDeployer)
        assert create_deployer(DeploymentTarget.MULTIPASS, registry, settings).binary == "/opt/mp"

    def test_unknown_target_generates_config(self, registry):
        deployer = create_deployer(None, registry)
        assert isinstance(deployer, ConfigOnlyDeployer)
        assert deployer.registry is registry


class TestRunDeployment:
    """The command always yields a result and closes the channel."""

    def test_exception_becomes_failed_result(self, tmp_path):
        deployer = ScriptedDeployer(RuntimeError("boom"))
        channel = ProgressChannel()
        msg = run_deployment(deployer, options(tmp_path), channel)()
        assert msg.result.success is False
        assert msg.result.error_message == "boom"
        assert msg.result.target == DeploymentTarget.MULTIPASS
        assert deployer.cleaned
        assert channel.closed

    def test_missing_result_synthesized(self, tmp_path):
        deployer = ScriptedDeployer(None)
        msg = run_deployment(deployer, options(tmp_path), ProgressChannel())()
        assert msg.result.success is False
        assert "returned no result" in msg.result.error_message

    def test_cleanup_failure_is_recorded(self, tmp_path):
        deployer = ScriptedDeployer(
            DeployResult(target=DeploymentTarget.MULTIPASS, error=RuntimeError("launch failed")),
            cleanup_error=RuntimeError("delete failed"),
        )
        msg = run_deployment(deployer, options(tmp_path), ProgressChannel())()
        assert msg.result.error_message == "launch failed"
        assert "Cleanup failed: delete failed" in msg.result.logs

    def test_success_skips_cleanup(self, tmp_path):
        deployer = ScriptedDeployer(DeployResult(target=DeploymentTarget.MULTIPASS, success=True))
        msg = run_deployment(deployer, options(tmp_path), ProgressChannel())()
        assert msg.result.success
        assert msg.result.duration >= 0
        assert not deployer.cleaned

    def test_listener_stops_after_close(self):
        channel = ProgressChannel()
        channel.close()
        assert wait_for_progress(channel)() is None


class TestBuildOptions:
    """Wizard data to deploy options."""

    def test_full_config_defaults_and_complement(self, registry):
        data = WizardData(packages=["bat", "docker"], ssh_keys=["k1", "k1", "k2"])
        cfg = build_full_config(data, registry)
        assert cfg.username == "ubuntu"
        assert cfg.hostname == "ubuntu-server"
        assert cfg.ssh_public_keys == ["k1", "k2"]
        assert cfg.disabled_packages == ["btop", "make", "ripgrep"]
        assert cfg.docker_enabled is True

    def test_only_matching_options_copied(self, registry, tmp_path):
        state = WizardState(registry)
        state.data.target = DeploymentTarget.MULTIPASS
        state.data.multipass.vm_name = "lab"
        state.data.terraform.vm_name = "other"
        opts = build_deploy_options(state, tmp_path)
        assert opts.multipass.vm_name == "lab"
        assert opts.multipass is not state.data.multipass
        assert opts.terraform.vm_name == ""

    def test_unset_target_is_config_only(self, tmp_path):
        opts = build_deploy_options(WizardState(), tmp_path)
        assert opts.target == DeploymentTarget.CONFIG_ONLY
        assert opts.config.disabled_packages == []


class TestConfigOnlyDeployer:
    """Files written under the output directory."""

    def test_writes_all_files(self, registry, tmp_path):
        opts = options(tmp_path, username="dev", hostname="devbox",
                       enabled_packages=["bat"], ssh_public_keys=["ssh-ed25519 AAAA dev"])
        opts.generate = GenerateOptions(output_dir="out")
        tracker = ProgressTracker()

        result = ConfigOnlyDeployer(registry).deploy(opts, tracker.callback)

        out = tmp_path / "out"
        assert result.success, result.error_message
        assert set(result.outputs) == {"config.env", "secrets.env", "summary.md", "cloud-init.yaml"}
        assert (out / "config.env").read_text().startswith("#!/bin/bash")
        secrets = out / "cloud-init" / "secrets.env"
        assert stat.S_IMODE(secrets.stat().st_mode) == 0o600
        doc = yaml.safe_load((out / "cloud-init" / "cloud-init.yaml").read_text())
        assert doc["hostname"] == "devbox"
        assert tracker.last_event.percent == 100
        assert not tracker.has_errors

    def test_cloud_init_optional(self, registry, tmp_path):
        opts = options(tmp_path)
        opts.generate = GenerateOptions(output_dir=str(tmp_path / "abs"), generate_cloud_init=False)
        result = ConfigOnlyDeployer(registry).deploy(opts, ProgressTracker().callback)
        assert result.success
        assert "cloud-init.yaml" not in result.outputs
        assert not (tmp_path / "abs" / "cloud-init" / "cloud-init.yaml").exists()

    def test_missing_registry_fails_validation(self, tmp_path):
        tracker = ProgressTracker()
        result = ConfigOnlyDeployer(None).deploy(options(tmp_path), tracker.callback)
        assert result.success is False
        assert "package registry not available" in result.error_message
        assert tracker.has_errors
        assert not (tmp_path / "config.env").exists()
