"""Bootable USB deployer: repacks an Ubuntu server ISO for unattended install."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

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
from cloudforge.models import DeploymentTarget, FullConfig, USBOptions

logger = logging.getLogger(__name__)

STORAGE_LAYOUTS = ("lvm", "direct", "zfs")
AUTOINSTALL_PARAM = r"autoinstall ds=nocloud\;s=/cdrom/nocloud/"
_VOLUME_ID_MAX = 32


def autoinstall_document(cfg: FullConfig, usb: USBOptions) -> dict[str, Any]:
    """Subiquity autoinstall config with the cloud-init document as user-data."""
    user_data = generator.cloud_init_document(cfg)
    # identity creates the user; the nested users entry would conflict
    user_data.pop("users", None)
    user_data.pop("hostname", None)
    return {
        "autoinstall": {
            "version": 1,
            "locale": "en_US.UTF-8",
            "keyboard": {"layout": "us"},
            "timezone": usb.timezone or "UTC",
            "identity": {
                "hostname": cfg.hostname,
                "username": cfg.username,
                # No usable password; login is by SSH key only
                "password": "!",
            },
            "ssh": {
                "install-server": True,
                "authorized-keys": list(cfg.ssh_public_keys),
                "allow-pw": False,
            },
            "storage": {"layout": {"name": usb.storage_layout or "lvm"}},
            "user-data": user_data,
        }
    }


def render_autoinstall(cfg: FullConfig, usb: USBOptions) -> str:
    body = yaml.safe_dump(autoinstall_document(cfg, usb), default_flow_style=False, sort_keys=False)
    return "#cloud-config\n" + body


def volume_id(version: str) -> str:
    return f"UBUNTU_AUTOINSTALL_{(version or '24.04').replace('.', '_')}"[:_VOLUME_ID_MAX]


def default_output_path(project_root: Path, usb: USBOptions, hostname: str) -> Path:
    stem = Path(usb.source_iso).stem or "ubuntu"
    stamp = datetime.now().strftime("%Y%m%d%H%M")
    return Path(project_root) / "output" / f"{stem}-{hostname}-{stamp}-autoinstall.iso"


def patch_boot_config(extract_dir: Path) -> Path:
    """Add the autoinstall kernel parameters to grub.cfg and loopback.cfg."""
    candidates = [
        extract_dir / "boot" / "grub" / "grub.cfg",
        extract_dir / "EFI" / "boot" / "grub.cfg",
    ]
    grub_cfg = next((p for p in candidates if p.exists()), None)
    if grub_cfg is None:
        raise DeployError("grub.cfg not found in expected locations")

    content = grub_cfg.read_text()
    if "autoinstall" not in content:
        grub_cfg.write_text(content.replace("---", AUTOINSTALL_PARAM + " ---"))

    loopback = extract_dir / "boot" / "grub" / "loopback.cfg"
    if loopback.exists():
        try:
            text = loopback.read_text()
            if "autoinstall" not in text:
                loopback.write_text(text.replace("---", AUTOINSTALL_PARAM + " ---"))
        except OSError as e:
            logger.warning("Could not patch %s: %s", loopback, e)
    return grub_cfg


def make_writable(root: Path) -> None:
    """xorriso keeps the read-only modes from the ISO."""
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path):
                os.chmod(path, os.stat(path).st_mode | stat.S_IWUSR)
    os.chmod(root, os.stat(root).st_mode | stat.S_IWUSR)


def boot_args(extract_dir: Path) -> list[str]:
    grub = extract_dir / "boot" / "grub"
    eltorito = grub / "i386-pc" / "eltorito.img"
    hybrid = grub / "i386-pc" / "boot_hybrid.img"
    efi = grub / "efi.img"

    args: list[str] = []
    if eltorito.exists():
        if hybrid.exists():
            args += ["-partition_offset", "16"]
        args += [
            "-b", "boot/grub/i386-pc/eltorito.img",
            "-c", "boot.catalog",
            "-no-emul-boot",
            "-boot-load-size", "4",
            "-boot-info-table",
        ]
        if hybrid.exists():
            args += ["--grub2-boot-info", "--grub2-mbr", str(hybrid)]
    if efi.exists():
        args += ["-eltorito-alt-boot", "-e", "boot/grub/efi.img", "-no-emul-boot"]
    return args


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            break
    return f"{value:.1f} {unit}"


class USBDeployer(Deployer):
    name = "Bootable USB (ISO)"
    target = DeploymentTarget.USB

    def __init__(
        self,
        settings: Optional[DeployConfig] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.settings = settings or DeployConfig()
        self.runner = runner or CommandRunner(timeout=1800)
        self.binary = self.settings.xorriso_binary
        self._partial_output: Optional[Path] = None

    def validate(self, opts: DeployOptions) -> None:
        usb = opts.usb
        if not usb.source_iso:
            raise DeployError("source ISO path is required")
        source = Path(usb.source_iso).expanduser()
        if not source.exists():
            raise DeployError(f"source ISO not found: {usb.source_iso}")
        if source.is_dir():
            raise DeployError(f"source ISO path is a directory, not a file: {usb.source_iso}")
        if usb.storage_layout and usb.storage_layout not in STORAGE_LAYOUTS:
            raise DeployError(
                f"unsupported storage layout: {usb.storage_layout} "
                f"(supported: {', '.join(STORAGE_LAYOUTS)})"
            )
        if not self.runner.available(self.binary):
            raise DeployError("xorriso is not installed; install with: sudo apt install xorriso")

    def output_path(self, opts: DeployOptions) -> Path:
        if opts.usb.output_path:
            path = Path(opts.usb.output_path).expanduser()
            return path if path.is_absolute() else Path(opts.project_root) / path
        return default_output_path(opts.project_root, opts.usb, opts.config.hostname)

    def deploy(self, opts: DeployOptions, progress: ProgressCallback) -> DeployResult:
        result = DeployResult(target=self.target)
        start = time.monotonic()
        self._partial_output = None

        def fail(message: str) -> DeployResult:
            logger.error("ISO build failed: %s", message)
            progress(ProgressEvent.error(message))
            result.error = DeployError(message)
            result.duration = time.monotonic() - start
            return result

        progress(ProgressEvent(Stage.VALIDATING, "Validating source ISO and tools...", 5))
        try:
            self.validate(opts)
        except DeployError as e:
            return fail(str(e))

        usb = opts.usb
        source = Path(usb.source_iso).expanduser()
        output = self.output_path(opts)
        usb.output_path = str(output)

        progress(ProgressEvent(Stage.CONFIG, "Generating autoinstall configuration...", 15))
        user_data = render_autoinstall(opts.config, usb)

        tmp_base = Path(opts.project_root) / ".tmp"
        try:
            tmp_base.mkdir(parents=True, exist_ok=True)
            work_dir = Path(tempfile.mkdtemp(prefix="iso-", dir=str(tmp_base)))
        except OSError as e:
            return fail(f"failed to create work directory: {e}")

        try:
            extract_dir = work_dir / "iso"
            extract_dir.mkdir()
            extract = [self.binary, "-osirrox", "on", "-indev", str(source), "-extract", "/", str(extract_dir)]
            progress(ProgressEvent.with_command(
                Stage.CONFIG, "Extracting ISO...", format_command(extract), 30,
            ))
            ok, out = self.runner.run(extract)
            if not ok:
                result.logs.append(out)
                return fail("xorriso extraction failed")
            try:
                make_writable(extract_dir)
            except OSError as e:
                return fail(f"failed to fix permissions: {e}")

            progress(ProgressEvent(Stage.CLOUD_INIT, "Injecting autoinstall configuration...", 55))
            try:
                generator.write_file(extract_dir / "nocloud" / "user-data", user_data)
                generator.write_file(extract_dir / "nocloud" / "meta-data", "")
                patch_boot_config(extract_dir)
            except (OSError, DeployError) as e:
                return fail(f"configuration injection failed: {e}")

            try:
                output.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return fail(f"failed to create output directory: {e}")
            repack = [
                self.binary, "-as", "mkisofs",
                "-r",
                "-V", volume_id(usb.ubuntu_version),
                "-J", "-joliet-long", "-l",
                "-iso-level", "3",
                *boot_args(extract_dir),
                "-o", str(output), str(extract_dir),
            ]
            progress(ProgressEvent.with_command(
                Stage.INSTALLING, "Repacking bootable ISO...", format_command(repack[:4]) + " ...", 75,
            ))
            self._partial_output = output
            ok, out = self.runner.run(repack)
            if not ok:
                result.logs.append(out)
                return fail("xorriso repacking failed")
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        progress(ProgressEvent(Stage.VERIFYING, "Verifying output ISO...", 95))
        if not output.exists():
            return fail(f"output ISO was not created: {output}")
        size = output.stat().st_size

        result.outputs.update({
            "iso_path": str(output),
            "source_iso": str(source),
            "storage_layout": usb.storage_layout or "lvm",
            "iso_size": format_size(size),
        })
        progress(ProgressEvent(Stage.COMPLETE, "Bootable ISO created!", 100))
        self._partial_output = None
        logger.info("Created autoinstall ISO %s (%d bytes)", output, size)
        result.success = True
        result.duration = time.monotonic() - start
        return result

    def cleanup(self, opts: DeployOptions) -> None:
        """Remove an ISO left behind by a failed repack."""
        path = self._partial_output
        self._partial_output = None
        if path is None or not path.exists():
            return
        try:
            path.unlink()
        except OSError as e:
            raise DeployError(f"failed to remove partial ISO {path}: {e}")
