"""Multipass VM deployer."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from cloudforge import generator
from cloudforge.config import DeployConfig
from cloudforge.deploy.base import (
    CommandRunner,
    DeployError,
    DeployOptions,
    Deployer,
    DeployResult,
    format_command,
)
from cloudforge.deploy.progress import ProgressCallback, ProgressEvent, Stage
from cloudforge.models import DeploymentTarget

logger = logging.getLogger(__name__)

_IPV4_RE = re.compile(r"IPv4:\s*(\d+\.\d+\.\d+\.\d+)")
_LOG_TAIL_LINES = 20
_WAIT_MAX_PERCENT = 85


def default_vm_name() -> str:
    return "cloud-init-" + datetime.now().strftime("%m%d-%H%M")


class MultipassDeployer(Deployer):
    name = "Multipass VM"
    target = DeploymentTarget.MULTIPASS

    def __init__(
        self,
        settings: Optional[DeployConfig] = None,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or DeployConfig()
        self.runner = runner or CommandRunner()
        self._sleep = sleep
        self.binary = self.settings.multipass_binary
        self._launched: Optional[str] = None

    def _mp(self, *args: str) -> list[str]:
        return [self.binary, *args]

    def validate(self, opts: DeployOptions) -> None:
        if not self.runner.available(self.binary):
            raise DeployError("multipass is not installed; see https://multipass.run/install")
        ok, output = self.runner.run(self._mp("version"), timeout=10)
        if not ok:
            raise DeployError(f"multipass is installed but not working: {output.strip()}")

    def deploy(self, opts: DeployOptions, progress: ProgressCallback) -> DeployResult:
        result = DeployResult(target=self.target)
        start = time.monotonic()
        self._launched = None

        def fail(message: str) -> DeployResult:
            logger.error("Multipass deployment failed: %s", message)
            progress(ProgressEvent.error(message))
            result.error = DeployError(message)
            result.duration = time.monotonic() - start
            return result

        progress(ProgressEvent.with_command(
            Stage.VALIDATING, "Validating configuration...", format_command(self._mp("version")), 5,
        ))
        try:
            self.validate(opts)
        except DeployError as e:
            return fail(str(e))

        root = Path(opts.project_root)
        progress(ProgressEvent.with_detail(
            Stage.CONFIG, "Writing configuration files...", f"Writing to {root}/config.env", 15,
        ))
        try:
            generator.write_config_env(opts.config, root)
            generator.write_secrets_env(opts.config, root)
        except OSError as e:
            return fail(f"failed to write configuration files: {e}")

        cloud_init_path = root / "cloud-init" / "cloud-init.yaml"
        progress(ProgressEvent.with_detail(
            Stage.CLOUD_INIT, "Generating cloud-init.yaml...", str(cloud_init_path), 25,
        ))
        try:
            generator.write_file(cloud_init_path, generator.render_cloud_init(opts.config))
        except OSError as e:
            return fail(f"failed to generate cloud-init.yaml: {e}")
        result.outputs["cloud_init_path"] = str(cloud_init_path)

        mp = opts.multipass
        if not mp.vm_name:
            mp.vm_name = default_vm_name()
        vm_name = mp.vm_name
        result.outputs["vm_name"] = vm_name

        launch = self._mp(
            "launch",
            "--name", vm_name,
            "--cpus", str(mp.cpus),
            "--memory", f"{mp.memory_mb}M",
            "--disk", f"{mp.disk_gb}G",
            "--timeout", str(self.settings.launch_timeout),
            "--cloud-init", str(cloud_init_path),
            mp.ubuntu_version or "24.04",
        )
        progress(ProgressEvent.with_command(
            Stage.LAUNCHING, f"Launching VM '{vm_name}'...", format_command(launch), 35,
        ))
        logger.info("Launching multipass VM %s", vm_name)
        ok, output = self.runner.run(launch, timeout=self.settings.launch_timeout + 60)
        if not ok:
            # Not recorded: the name may belong to an existing VM
            return fail(f"failed to launch VM: {output.strip()}")
        self._launched = vm_name

        progress(ProgressEvent.with_command(
            Stage.WAITING, "Waiting for cloud-init to complete...",
            format_command(self._mp("exec", vm_name, "--", "cloud-init", "status")), 50,
        ))
        try:
            self.wait_for_cloud_init(vm_name, progress)
        except DeployError as e:
            logger.warning("cloud-init wait for %s: %s", vm_name, e)
            result.logs.append(f"Warning: {e}")

        progress(ProgressEvent.with_command(
            Stage.VERIFYING, "Retrieving VM information...",
            format_command(self._mp("info", vm_name)), 90,
        ))
        ok, output = self.runner.run(self._mp("info", vm_name), timeout=30)
        if not ok:
            return fail(f"failed to get VM info: {output.strip()}")
        result.outputs.update(self.parse_info(output, vm_name, opts.config.username))

        progress(ProgressEvent(Stage.COMPLETE, "Deployment complete!", 100))
        result.success = True
        result.duration = time.monotonic() - start
        return result

    def wait_for_cloud_init(self, vm_name: str, progress: ProgressCallback) -> None:
        """Poll ``cloud-init status`` until done, error or timeout."""
        deadline = time.monotonic() + self.settings.cloud_init_timeout
        pct = 50
        status_cmd = self._mp("exec", vm_name, "--", "cloud-init", "status")

        while time.monotonic() < deadline:
            ok, output = self.runner.run(status_cmd, timeout=30)
            status = output.strip()

            # status can exit non-zero even after finishing
            if "done" in status:
                return

            if not ok:
                detail = f"Status: {status}" if status else "VM is booting..."
                progress(ProgressEvent.with_detail(
                    Stage.WAITING, "Waiting for cloud-init...", detail, pct,
                ))
                self._sleep(self.settings.poll_interval)
                continue

            if "error" in status:
                ok, log = self.runner.run(
                    self._mp("exec", vm_name, "--", "sudo", "cat", "/var/log/cloud-init-output.log"),
                    timeout=30,
                )
                if ok and log.strip():
                    tail = "\n".join(log.splitlines()[-_LOG_TAIL_LINES:])
                    raise DeployError(f"cloud-init error: {tail}")
                raise DeployError("cloud-init reported an error")

            pct = min(pct + 1, _WAIT_MAX_PERCENT)
            progress(ProgressEvent.with_detail(
                Stage.WAITING, "Waiting for cloud-init...", f"Status: {status}", pct,
            ))
            self._sleep(self.settings.poll_interval)

        raise DeployError("timeout waiting for cloud-init to complete")

    @staticmethod
    def parse_info(output: str, vm_name: str, username: str = "") -> dict[str, str]:
        info: dict[str, str] = {}
        m = _IPV4_RE.search(output)
        if m:
            info["ip"] = m.group(1)
        user = username or "ubuntu"
        info["user"] = user
        if "ip" in info:
            info["ssh_command"] = f"ssh {user}@{info['ip']}"
            info["multipass_shell"] = f"multipass shell {vm_name}"
        return info

    def cleanup(self, opts: DeployOptions) -> None:
        """Delete the VM launched by the last deploy, if any."""
        vm_name = self._launched
        self._launched = None
        if vm_name is None or opts.multipass.keep_on_failure:
            return
        ok, output = self.runner.run(self._mp("delete", vm_name), timeout=120)
        if not ok:
            raise DeployError(f"failed to delete VM: {output.strip()}")
        ok, output = self.runner.run(self._mp("purge"), timeout=120)
        if not ok:
            raise DeployError(f"failed to purge VM: {output.strip()}")
