"""Per-target option forms behind a single Target Options phase."""

from __future__ import annotations

from typing import Any

from cloudforge.deploy.multipass import default_vm_name
from cloudforge.models import DeploymentTarget
from cloudforge.phases.form import FormPhase
from cloudforge.wizard import options as opt
from cloudforge.wizard.fields import CHECK, SELECT, TEXT, Field
from cloudforge.wizard.handler import DYNAMIC_FIELDS, BasePhase, Cmd, PhaseContext

DEFAULT_LIBVIRT_URI = "qemu:///system"
DEFAULT_IMAGE_PATH = "/var/lib/libvirt/images/noble-server-cloudimg-amd64.img"
DEFAULT_SOURCE_ISO = "ubuntu-24.04-live-server-amd64.iso"


def _sizes() -> list[Field]:
    return [
        Field(SELECT, "cpus", "CPUs", tuple(opt.cpu_labels())),
        Field(SELECT, "memory", "Memory", tuple(opt.memory_labels())),
        Field(SELECT, "disk", "Disk", tuple(opt.disk_labels())),
    ]


def _prefixed(prefix: str, fields: list[Field]) -> list[Field]:
    return [Field(f.kind, prefix + f.name, f.label, f.options) for f in fields]


class MultipassForm(FormPhase):
    title = "Multipass Options"
    subtitle = "Local VM launched with cloud-init"

    def __init__(self):
        super().__init__("Multipass", [
            Field(TEXT, "mp_vm_name", "VM Name"),
            Field(SELECT, "mp_image", "Ubuntu Image", tuple(opt.image_labels())),
            *_prefixed("mp_", _sizes()),
            Field(CHECK, "mp_keep_on_failure", "Keep VM on failure"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        mp = w.data.multipass
        w.init_input("mp_vm_name", placeholder=default_vm_name(), char_limit=63, value=mp.vm_name)
        images = [image for _, image in opt.UBUNTU_IMAGES]
        w.set_select("mp_image", opt.index_of(images, mp.ubuntu_version, opt.DEFAULT_IMAGE_IDX))
        w.set_select("mp_cpus", opt.index_of(opt.CPU_OPTIONS, mp.cpus, opt.DEFAULT_CPU_IDX))
        w.set_select("mp_memory", opt.index_of(opt.MEMORY_OPTIONS, mp.memory_mb, opt.DEFAULT_MEMORY_IDX))
        w.set_select("mp_disk", opt.index_of(opt.DISK_OPTIONS, mp.disk_gb, opt.DEFAULT_DISK_IDX))
        w.set_check("mp_keep_on_failure", mp.keep_on_failure)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        mp = w.data.multipass
        mp.vm_name = w.input_value("mp_vm_name").strip() or w.text_inputs["mp_vm_name"].placeholder
        mp.ubuntu_version = opt.pick(opt.UBUNTU_IMAGES, w.get_select("mp_image"), opt.DEFAULT_IMAGE_IDX)[1]
        mp.cpus = opt.pick(opt.CPU_OPTIONS, w.get_select("mp_cpus"), opt.DEFAULT_CPU_IDX)
        mp.memory_mb = opt.pick(opt.MEMORY_OPTIONS, w.get_select("mp_memory"), opt.DEFAULT_MEMORY_IDX)
        mp.disk_gb = opt.pick(opt.DISK_OPTIONS, w.get_select("mp_disk"), opt.DEFAULT_DISK_IDX)
        mp.keep_on_failure = w.get_check("mp_keep_on_failure")


class TerraformForm(FormPhase):
    title = "Terraform/libvirt Options"
    subtitle = "VM created from a cloud image on a libvirt host"

    def __init__(self):
        super().__init__("Terraform", [
            Field(TEXT, "tf_vm_name", "VM Name"),
            *_prefixed("tf_", _sizes()),
            Field(TEXT, "tf_image", "Cloud Image"),
            Field(TEXT, "tf_libvirt_uri", "Libvirt URI"),
        ])

    @staticmethod
    def image_placeholder(ctx: PhaseContext) -> str:
        for image in ctx.cloud_images:
            if image.path:
                return image.path
        return DEFAULT_IMAGE_PATH

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        tf = w.data.terraform
        w.init_input("tf_vm_name", placeholder=default_vm_name(), char_limit=63, value=tf.vm_name)
        w.set_select("tf_cpus", opt.index_of(opt.CPU_OPTIONS, tf.cpus, opt.DEFAULT_CPU_IDX))
        w.set_select("tf_memory", opt.index_of(opt.MEMORY_OPTIONS, tf.memory_mb, opt.DEFAULT_MEMORY_IDX))
        w.set_select("tf_disk", opt.index_of(opt.DISK_OPTIONS, tf.disk_gb, opt.DEFAULT_DISK_IDX))
        w.init_input("tf_image", placeholder=self.image_placeholder(ctx), value=tf.ubuntu_image)
        uri = tf.libvirt_uri if tf.libvirt_uri != DEFAULT_LIBVIRT_URI else ""
        w.init_input("tf_libvirt_uri", placeholder=DEFAULT_LIBVIRT_URI, value=uri)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        tf = w.data.terraform
        tf.vm_name = w.input_value("tf_vm_name").strip() or w.text_inputs["tf_vm_name"].placeholder
        tf.cpus = opt.pick(opt.CPU_OPTIONS, w.get_select("tf_cpus"), opt.DEFAULT_CPU_IDX)
        tf.memory_mb = opt.pick(opt.MEMORY_OPTIONS, w.get_select("tf_memory"), opt.DEFAULT_MEMORY_IDX)
        tf.disk_gb = opt.pick(opt.DISK_OPTIONS, w.get_select("tf_disk"), opt.DEFAULT_DISK_IDX)
        tf.ubuntu_image = w.input_value("tf_image").strip() or self.image_placeholder(ctx)
        tf.libvirt_uri = w.input_value("tf_libvirt_uri").strip() or DEFAULT_LIBVIRT_URI


class USBForm(FormPhase):
    title = "Bootable USB Options"
    subtitle = "Autoinstall ISO for bare-metal installs"

    def __init__(self):
        super().__init__("USB", [
            Field(TEXT, "usb_source_iso", "Source ISO"),
            Field(TEXT, "usb_output_path", "Output Path"),
            Field(SELECT, "usb_storage", "Storage Layout", tuple(opt.storage_labels())),
            Field(TEXT, "usb_timezone", "Timezone"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        usb = w.data.usb
        w.init_input("usb_source_iso", placeholder=DEFAULT_SOURCE_ISO, value=usb.source_iso)
        w.init_input("usb_output_path", placeholder="output/<source>-<hostname>-autoinstall.iso",
                     value=usb.output_path)
        layouts = [layout for _, layout in opt.STORAGE_LAYOUTS]
        w.set_select("usb_storage", opt.index_of(layouts, usb.storage_layout, opt.DEFAULT_STORAGE_IDX))
        tz = usb.timezone if usb.timezone != "UTC" else ""
        w.init_input("usb_timezone", placeholder="UTC", char_limit=64, value=tz)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        usb = w.data.usb
        usb.source_iso = w.input_value("usb_source_iso").strip() or DEFAULT_SOURCE_ISO
        # Blank output path lets the deployer pick a timestamped name
        usb.output_path = w.input_value("usb_output_path").strip()
        usb.storage_layout = opt.pick(opt.STORAGE_LAYOUTS, w.get_select("usb_storage"),
                                      opt.DEFAULT_STORAGE_IDX)[1]
        usb.timezone = w.input_value("usb_timezone").strip() or "UTC"


class GenerateForm(FormPhase):
    title = "Generate Config Options"
    subtitle = "Write config files without creating a machine"

    def __init__(self):
        super().__init__("Generate", [
            Field(TEXT, "gen_output_dir", "Output Directory"),
            Field(CHECK, "gen_cloud_init", "Generate cloud-init.yaml"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        gen = w.data.generate
        value = gen.output_dir if gen.output_dir not in ("", ".") else ""
        w.init_input("gen_output_dir", placeholder=".", value=value)
        w.set_check("gen_cloud_init", gen.generate_cloud_init)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        gen = w.data.generate
        gen.output_dir = w.input_value("gen_output_dir").strip() or "."
        gen.generate_cloud_init = w.get_check("gen_cloud_init")


class TargetOptionsPhase(BasePhase):
    """Delegates to the form of the chosen target; Terraform when unset."""

    def __init__(self):
        super().__init__("Target Options", DYNAMIC_FIELDS)
        self.forms: dict[DeploymentTarget, FormPhase] = {
            DeploymentTarget.TERRAFORM: TerraformForm(),
            DeploymentTarget.MULTIPASS: MultipassForm(),
            DeploymentTarget.USB: USBForm(),
            DeploymentTarget.CONFIG_ONLY: GenerateForm(),
        }

    def form(self, ctx: PhaseContext) -> FormPhase:
        target = ctx.wizard.data.target or DeploymentTarget.TERRAFORM
        return self.forms.get(target, self.forms[DeploymentTarget.TERRAFORM])

    def init(self, ctx: PhaseContext) -> Cmd:
        return self.form(ctx).init(ctx)

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        return self.form(ctx).update(ctx, msg)

    def view(self, ctx: PhaseContext) -> str:
        return self.form(ctx).view(ctx)

    def save(self, ctx: PhaseContext) -> None:
        self.form(ctx).save(ctx)
