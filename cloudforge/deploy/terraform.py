"""Terraform/libvirt VM deployer.

Each VM gets its own working directory ``tf/<vm-name>/`` holding a copy of
the project's Terraform module, the rendered cloud-init document and a
``terraform.tfvars.json``.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from cloudforge import generator
from cloudforge.config import DeployConfig
from cloudforge.deploy.base import (
    CommandRunner,
    DeployError,
    DeployOptions,
    Deployer,
    DeployResult,
)
from cloudforge.deploy.multipass import default_vm_name
from cloudforge.deploy.progress import ProgressCallback, ProgressEvent, Stage
from cloudforge.models import DeploymentTarget

logger = logging.getLogger(__name__)

TF_FILES = ("main.tf", "variables.tf", "outputs.tf")


def parse_outputs(raw: str) -> dict[str, str]:
    """Flatten ``terraform output -json`` into a string map.

    Lists collapse to their first string element and ``vm_ip`` is
    mirrored as ``ip``.
    """
    try:
        data = json.loads(raw or "{}")
    except ValueError as e:
        raise DeployError(f"failed to parse terraform output: {e}")
    outputs: dict[str, str] = {}
    for key, entry in data.items():
        value = entry.get("value") if isinstance(entry, dict) else entry
        if isinstance(value, str):
            outputs[key] = value
        elif isinstance(value, list):
            if value and isinstance(value[0], str):
                outputs[key] = value[0]
        elif value is not None:
            outputs[key] = str(value)
    if "vm_ip" in outputs:
        outputs["ip"] = outputs["vm_ip"]
    return outputs


class TerraformDeployer(Deployer):
    name = "Terraform/libvirt"
    target = DeploymentTarget.TERRAFORM

    def __init__(
        self,
        settings: Optional[DeployConfig] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.settings = settings or DeployConfig()
        self.runner = runner or CommandRunner()
        self.binary = self.settings.terraform_binary
        self._applied_dir: Optional[Path] = None

    def _tf(self, *args: str) -> list[str]:
        return [self.binary, *args]

    def validate(self, opts: DeployOptions) -> None:
        if not self.runner.available(self.binary):
            raise DeployError("terraform not found in PATH")
        ok, output = self.runner.run(self._tf("version"), timeout=10)
        if not ok:
            raise DeployError(f"terraform is installed but not working: {output.strip()}")
        image = opts.terraform.ubuntu_image
        if image and not Path(image).expanduser().exists():
            raise DeployError(f"Ubuntu image not found: {image}")

    @staticmethod
    def machine_dir(opts: DeployOptions) -> Path:
        return Path(opts.project_root) / "tf" / opts.terraform.vm_name

    def tfvars(self, opts: DeployOptions, cloud_init_path: Path) -> dict:
        tf = opts.terraform
        data = {
            "vm_name": tf.vm_name,
            "vcpu": tf.cpus,
            "memory": tf.memory_mb,
            "disk_size_gb": tf.disk_gb,
            "libvirt_uri": tf.libvirt_uri,
            "storage_pool": tf.storage_pool,
            "network_name": tf.network,
            "autostart": tf.autostart,
            "cloud_init_file": str(cloud_init_path),
        }
        if tf.ubuntu_image:
            data["ubuntu_image_path"] = str(Path(tf.ubuntu_image).expanduser())
        return data

    def deploy(self, opts: DeployOptions, progress: ProgressCallback) -> DeployResult:
        result = DeployResult(target=self.target)
        start = time.monotonic()
        self._applied_dir = None

        def fail(message: str) -> DeployResult:
            logger.error("Terraform deployment failed: %s", message)
            progress(ProgressEvent.error(message))
            result.error = DeployError(message)
            result.duration = time.monotonic() - start
            return result

        progress(ProgressEvent.with_command(
            Stage.VALIDATING, "Validating configuration...", "terraform version", 5,
        ))
        try:
            self.validate(opts)
        except DeployError as e:
            return fail(str(e))

        tf = opts.terraform
        if not tf.vm_name:
            tf.vm_name = default_vm_name()
        vm_name = tf.vm_name
        result.outputs["vm_name"] = vm_name

        machine_dir = self.machine_dir(opts)
        template_dir = Path(opts.project_root) / "terraform"
        progress(ProgressEvent.with_detail(
            Stage.CONFIG, "Creating machine directory...", f"tf/{vm_name}/", 10,
        ))
        fresh = not machine_dir.exists()
        try:
            machine_dir.mkdir(parents=True, exist_ok=True)
            for name in TF_FILES:
                shutil.copy2(template_dir / name, machine_dir / name)
        except OSError as e:
            return fail(f"failed to create machine directory: {e}")
        result.outputs["machine_dir"] = str(machine_dir)

        cloud_init_path = machine_dir / "cloud-init.yaml"
        progress(ProgressEvent.with_detail(
            Stage.CLOUD_INIT, "Generating cloud-init.yaml...", f"tf/{vm_name}/cloud-init.yaml", 20,
        ))
        try:
            generator.write_file(cloud_init_path, generator.render_cloud_init(opts.config))
        except OSError as e:
            return fail(f"failed to generate cloud-init.yaml: {e}")
        result.outputs["cloud_init_path"] = str(cloud_init_path)

        progress(ProgressEvent.with_detail(
            Stage.CONFIG, "Generating terraform.tfvars.json...",
            f"tf/{vm_name}/terraform.tfvars.json", 30,
        ))
        try:
            generator.write_file(
                machine_dir / "terraform.tfvars.json",
                json.dumps(self.tfvars(opts, cloud_init_path), indent=2) + "\n",
            )
        except OSError as e:
            return fail(f"failed to write terraform.tfvars.json: {e}")

        progress(ProgressEvent.with_command(
            Stage.VALIDATING, "Initializing Terraform...", "terraform init", 40,
        ))
        ok, output = self.runner.run(self._tf("init", "-no-color"), cwd=machine_dir, timeout=300)
        if not ok:
            result.logs.append(output)
            return fail("terraform init failed")

        progress(ProgressEvent.with_command(
            Stage.VALIDATING, "Creating execution plan...", "terraform plan", 50,
        ))
        ok, output = self.runner.run(self._tf("plan", "-no-color"), cwd=machine_dir, timeout=300)
        result.logs.append(output)
        if not ok:
            return fail("terraform plan failed")

        progress(ProgressEvent.with_command(
            Stage.LAUNCHING, f"Creating VM '{vm_name}'...", "terraform apply -auto-approve", 75,
        ))
        logger.info("Applying terraform for %s in %s", vm_name, machine_dir)
        if fresh:
            self._applied_dir = machine_dir
        ok, output = self.runner.run(
            self._tf("apply", "-auto-approve", "-no-color"), cwd=machine_dir, timeout=1800,
        )
        if not ok:
            result.logs.append(output)
            return fail("terraform apply failed")

        progress(ProgressEvent.with_command(
            Stage.VERIFYING, "Retrieving VM information...", "terraform output -json", 90,
        ))
        ok, output = self.runner.run(self._tf("output", "-json"), cwd=machine_dir, timeout=60)
        try:
            if not ok:
                raise DeployError(output.strip())
            result.outputs.update(parse_outputs(output))
        except DeployError as e:
            result.logs.append(f"Warning: could not get terraform outputs: {e}")

        user = opts.config.username or "ubuntu"
        result.outputs["console_command"] = f"virsh console {vm_name}"
        result.outputs["user"] = user
        ip = result.outputs.get("ip", "")
        if ip and ip != "pending":
            result.outputs["ssh_command"] = f"ssh {user}@{ip}"

        progress(ProgressEvent(Stage.COMPLETE, "Deployment complete!", 100))
        result.success = True
        result.duration = time.monotonic() - start
        return result

    def cleanup(self, opts: DeployOptions) -> None:
        """Destroy what the last deploy applied.

        Only a machine directory created by that deploy is destroyed; an
        existing ``tf/<vm>/`` from an earlier run is left alone.
        """
        machine_dir = self._applied_dir
        self._applied_dir = None
        if machine_dir is None or opts.terraform.keep_on_failure:
            return
        if not machine_dir.exists():
            return
        ok, output = self.runner.run(
            self._tf("destroy", "-auto-approve", "-no-color"), cwd=machine_dir, timeout=900,
        )
        if not ok:
            raise DeployError(f"terraform destroy failed: {output.strip()}")
