"""Deployer that only writes configuration files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from cloudforge import generator
from cloudforge.deploy.base import DeployError, DeployOptions, Deployer, DeployResult
from cloudforge.deploy.progress import ProgressCallback, ProgressEvent, Stage
from cloudforge.models import DeploymentTarget
from cloudforge.packages import PackageRegistry

logger = logging.getLogger(__name__)


class ConfigOnlyDeployer(Deployer):
    name = "Config Generator"
    target = DeploymentTarget.CONFIG_ONLY

    def __init__(self, registry: Optional[PackageRegistry] = None):
        self.registry = registry

    def validate(self, opts: DeployOptions) -> None:
        if self.registry is None:
            raise DeployError("package registry not available - cannot generate summary")

    def deploy(self, opts: DeployOptions, progress: ProgressCallback) -> DeployResult:
        result = DeployResult(target=self.target)
        try:
            self.validate(opts)
        except DeployError as e:
            progress(ProgressEvent.error(str(e)))
            result.error = e
            return result

        cfg = opts.config
        out_dir = Path(opts.generate.output_dir or ".").expanduser()
        if not out_dir.is_absolute():
            out_dir = opts.project_root / out_dir

        progress(ProgressEvent(Stage.CONFIG, "Generating configuration files...", 10))
        try:
            progress(ProgressEvent(Stage.CONFIG, "Writing config.env...", 25))
            path = generator.write_config_env(cfg, out_dir)
            result.outputs["config.env"] = str(path)

            progress(ProgressEvent(Stage.CONFIG, "Writing cloud-init/secrets.env...", 40))
            path = generator.write_secrets_env(cfg, out_dir)
            result.outputs["secrets.env"] = str(path)

            progress(ProgressEvent(Stage.CONFIG, "Writing summary.md...", 55))
            path = generator.write_file(
                out_dir / "summary.md", generator.summary_markdown(cfg, self.registry),
            )
            result.outputs["summary.md"] = str(path)

            if opts.generate.generate_cloud_init:
                progress(ProgressEvent(Stage.CLOUD_INIT, "Writing cloud-init/cloud-init.yaml...", 75))
                path = generator.write_file(
                    out_dir / "cloud-init" / "cloud-init.yaml", generator.render_cloud_init(cfg),
                )
                result.outputs["cloud-init.yaml"] = str(path)
        except OSError as e:
            logger.error("Config generation failed: %s", e)
            progress(ProgressEvent.error("Failed to write configuration files", str(e)))
            result.error = DeployError(f"failed to write configuration files: {e}")
            return result

        progress(ProgressEvent(Stage.COMPLETE, "Configuration files generated successfully", 100))
        logger.info("Generated config files in %s", out_dir)
        result.success = True
        return result
