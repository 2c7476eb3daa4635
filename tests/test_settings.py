"""Tests for the YAML settings store, limits and profile names."""

import stat
from datetime import datetime, timedelta

import pytest
import yaml

from cloudforge.models import MultipassOptions
from cloudforge.settings import (
    MAX_PACKAGE_PRESETS,
    MAX_VM_CONFIGS,
    SETTINGS_VERSION,
    CloudImage,
    PackagePreset,
    Settings,
    SettingsError,
    VMConfig,
    WizardDataSnapshot,
    default_package_presets,
    is_valid_target,
    sanitize_config_name,
    validate_config_name,
)


class TestSettingsStore:
    """Load, save and atomic update."""

    def test_missing_file_gives_defaults(self, store):
        settings = store.load()
        assert settings.version == SETTINGS_VERSION
        assert settings.vm_configs == []

    def test_round_trip(self, store):
        created = datetime(2024, 3, 1, 12, 0)
        cfg = VMConfig(
            id="a", name="dev box", target="multipass", created_at=created,
            data=WizardDataSnapshot(
                username="dev", packages=["bat"],
                multipass_opts=MultipassOptions(vm_name="lab", cpus=4),
            ),
        )
        store.save(Settings(
            vm_configs=[cfg],
            cloud_images=[CloudImage(id="noble", path="/img/noble.img")],
            package_presets=[PackagePreset(id="mine", name="Mine", packages=["bat"])],
        ))

        loaded = store.load()
        got = loaded.find_vm_config("a")
        assert got.name == "dev box"
        assert got.created_at == created
        assert got.last_used_at is None
        assert got.data.multipass_opts == MultipassOptions(vm_name="lab", cpus=4)
        assert got.data.terraform_opts is None
        assert loaded.find_cloud_image("noble").path == "/img/noble.img"
        assert loaded.package_presets[0].packages == ["bat"]

    def test_file_is_private_and_omits_unset_opts(self, store):
        store.save(Settings(vm_configs=[VMConfig(id="a", name="a")]))
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
        raw = yaml.safe_load(store.path.read_text())
        assert "multipass_opts" not in raw["vm_configs"][0]["data"]

    def test_load_and_save(self, store):
        store.save(Settings(vm_configs=[VMConfig(id="a", name="a")]))
        store.load_and_save(lambda s: s.update_vm_config_last_used("a"))
        assert store.load().find_vm_config("a").last_used_at is not None

    def test_old_version_migrated(self, store):
        store.path.write_text(yaml.dump({"version": "1.0", "vm_configs": [{"id": "x", "name": "x"}]}))
        settings = store.load()
        assert settings.version == SETTINGS_VERSION
        assert settings.vm_configs[0].target == "terraform"

    def test_entries_without_id_skipped(self, store):
        store.path.write_text(yaml.dump({"vm_configs": [{"name": "no id"}, "junk"]}))
        assert store.load().vm_configs == []

    @pytest.mark.parametrize("content", ["key: [unclosed", "- just\n- a list\n"])
    def test_bad_file_raises(self, store, content):
        store.path.write_text(content)
        with pytest.raises(SettingsError):
            store.load()


class TestLimits:
    """Oldest profiles and user presets are evicted first."""

    def test_vm_configs_capped_by_recency(self):
        base = datetime(2024, 1, 1)
        settings = Settings(vm_configs=[
            VMConfig(id=str(i), name=str(i), created_at=base + timedelta(minutes=i))
            for i in range(MAX_VM_CONFIGS + 5)
        ])
        settings.enforce_limits()
        assert len(settings.vm_configs) == MAX_VM_CONFIGS
        assert settings.find_vm_config("0") is None
        assert settings.find_vm_config(str(MAX_VM_CONFIGS + 4)) is not None

    def test_builtin_presets_survive(self):
        base = datetime(2024, 1, 1)
        builtins = default_package_presets()
        user = [
            PackagePreset(id=f"u{i}", name=f"u{i}", created_at=base + timedelta(minutes=i))
            for i in range(MAX_PACKAGE_PRESETS)
        ]
        settings = Settings(package_presets=builtins + user)
        settings.enforce_limits()
        assert len(settings.package_presets) == MAX_PACKAGE_PRESETS
        assert all(p in settings.package_presets for p in builtins)
        assert not any(p.id == "u0" for p in settings.package_presets)

    def test_builtin_preset_not_removable(self):
        settings = Settings(package_presets=default_package_presets())
        assert settings.remove_package_preset("builtin-minimal") is False
        settings.add_package_preset(PackagePreset(id="mine", name="Mine"))
        assert settings.remove_package_preset("mine") is True

    def test_add_replaces_same_id(self):
        settings = Settings()
        settings.add_vm_config(VMConfig(id="a", name="old"))
        settings.add_vm_config(VMConfig(id="a", name="new"))
        assert [c.name for c in settings.vm_configs] == ["new"]
        assert settings.remove_vm_config("a")
        assert not settings.remove_vm_config("a")


class TestConfigNames:
    """Validation and sanitising of profile names."""

    @pytest.mark.parametrize("name", ["dev", "dev box", "my-vm_2", "A" * 50])
    def test_valid(self, name):
        validate_config_name(name)

    @pytest.mark.parametrize("name, message", [
        ("", "cannot be empty"),
        ("   ", "cannot be empty"),
        ("A" * 51, "cannot exceed"),
        ("../etc", "invalid characters"),
        ("a/b", "invalid characters"),
        ("-dash", "can only contain"),
        ("dev!", "can only contain"),
    ])
    def test_invalid(self, name, message):
        with pytest.raises(ValueError, match=message):
            validate_config_name(name)

    @pytest.mark.parametrize("raw, clean", [
        ("  dev box  ", "dev box"),
        ("dev    box", "dev box"),
        ("../dev/box", "devbox"),
        ("__dev!", "dev"),
        ("!!", ""),
    ])
    def test_sanitize(self, raw, clean):
        assert sanitize_config_name(raw) == clean

    def test_sanitize_truncates(self):
        assert len(sanitize_config_name("a" * 80)) == 50

    def test_valid_targets(self):
        assert is_valid_target("multipass")
        assert is_valid_target("CONFIG")
        assert not is_valid_target("vagrant")
