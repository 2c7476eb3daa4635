"""CloudForge - cloud-init VM provisioning TUI."""

__version__ = "0.4.0"
