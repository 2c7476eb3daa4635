"""Tests for the Deploy and Complete phases with a stand-in deployer."""

from cloudforge.deploy.base import DeployResult, Deployer
from cloudforge.deploy.progress import ProgressEvent, Stage
from cloudforge.models import DeploymentTarget
from cloudforge.phases import new_registry
from cloudforge.phases.complete import next_steps
from cloudforge.phases.deploy import progress_bar
from cloudforge.wizard.controller import WizardController
from cloudforge.wizard.messages import DeployCompleteMessage, DeployProgressMessage, SpinnerTick
from cloudforge.wizard.phase import Phase

from conftest import press


class FakeDeployer(Deployer):
    name = "Fake"
    target = DeploymentTarget.CONFIG_ONLY

    def __init__(self, events=(), outputs=None, fail=None):
        self.events = list(events)
        self.outputs = outputs or {}
        self.fail = fail
        self.seen = None

    def validate(self, opts):
        pass

    def deploy(self, opts, progress):
        self.seen = opts
        for event in self.events:
            progress(event)
        if self.fail is not None:
            raise self.fail
        return DeployResult(target=self.target, success=True, outputs=dict(self.outputs))


def start_deploy(ctx, deployer):
    calls = []

    def factory(target, registry, settings):
        calls.append((target, registry, settings))
        return deployer

    ctx.deployer_factory = factory
    ctx.wizard.phase = Phase.DEPLOY
    c = WizardController(ctx, new_registry())
    spinner, run, wait = c.start()
    return c, calls, run, wait


def drain(c, wait):
    """Feed every queued progress event to the controller."""
    while True:
        msg = wait()
        if msg is None:
            return
        cmds = c.update(msg)
        wait = cmds[0]


class TestDeployPhase:
    """Background run, progress and completion."""

    def test_factory_receives_target_registry_and_settings(self, ctx, registry):
        ctx.wizard.data.target = DeploymentTarget.MULTIPASS
        _, calls, _, _ = start_deploy(ctx, FakeDeployer())
        assert calls == [(DeploymentTarget.MULTIPASS, registry, ctx.deploy_config)]
        assert ctx.wizard.deploying is True

    def test_progress_then_complete(self, ctx):
        ctx.wizard.data.hostname = "devbox"
        events = [
            ProgressEvent(Stage.CONFIG, "Writing config.env...", 40),
            ProgressEvent(Stage.WAITING, "Waiting...", -1),
        ]
        deployer = FakeDeployer(events, outputs={"config.env": "/tmp/x/config.env"})
        c, _, run, wait = start_deploy(ctx, deployer)

        done = run()
        assert isinstance(done, DeployCompleteMessage)
        drain(c, wait)

        state = ctx.wizard.deploy_state
        assert [e.message for e in state.events] == ["Writing config.env...", "Waiting..."]
        assert state.percent == 40
        assert deployer.seen.config.hostname == "devbox"

        c.update(press("enter"))
        assert c.phase == Phase.DEPLOY

        c.update(done)
        assert state.done
        assert state.percent == 100
        assert ctx.wizard.deploying is False
        assert "Finished" in c.view()

        c.update(press("enter"))
        assert c.phase == Phase.COMPLETE
        view = c.view()
        assert "Deployment Complete" in view
        assert "Review /tmp/x/config.env" in view

    def test_escape_does_not_leave_deploy(self, ctx):
        c, _, _, _ = start_deploy(ctx, FakeDeployer())
        c.update(press("escape"))
        assert c.phase == Phase.DEPLOY

    def test_spinner_stops_after_result(self, ctx):
        c, _, run, _ = start_deploy(ctx, FakeDeployer())
        assert c.update(SpinnerTick()) is not None
        assert ctx.wizard.deploy_state.frame == 1
        c.update(run())
        assert c.update(SpinnerTick()) is None

    def test_failure_shows_error_and_logs(self, ctx):
        c, _, run, _ = start_deploy(ctx, FakeDeployer(fail=RuntimeError("disk full")))
        done = run()
        assert done.result.success is False
        c.update(done)
        assert "Failed" in c.view()

        c.update(press("enter"))
        view = c.view()
        assert "Deployment Failed" in view
        assert "disk full" in view

    def test_percent_clamped(self, ctx):
        c, _, _, _ = start_deploy(ctx, FakeDeployer())
        c.update(DeployProgressMessage(ProgressEvent(Stage.INSTALLING, "x", 250)))
        assert ctx.wizard.deploy_state.percent == 100


class TestCompletePhase:
    """Restart and next steps."""

    def test_restart_resets_wizard(self, ctx, registry):
        c, _, run, _ = start_deploy(ctx, FakeDeployer())
        ctx.wizard.data.username = "dev"
        c.update(run())
        c.update(press("enter"))
        c.update(press("r"))
        assert c.phase == Phase.TARGET
        assert ctx.wizard.data.username == ""
        assert ctx.wizard.registry is registry

    def test_next_steps_per_target(self):
        usb = DeployResult(target=DeploymentTarget.USB, outputs={"iso_path": "/out/a.iso"})
        assert next_steps(usb)[0].startswith("sudo dd if=/out/a.iso")
        mp = DeployResult(target=DeploymentTarget.MULTIPASS,
                          outputs={"vm_name": "lab", "ssh_command": "ssh dev@10.0.0.5"})
        assert next_steps(mp) == ["multipass shell lab", "ssh dev@10.0.0.5"]
        tf = DeployResult(target=DeploymentTarget.TERRAFORM, outputs={"console_command": "virsh console lab"})
        assert next_steps(tf) == ["virsh console lab"]

    def test_progress_bar_bounds(self):
        assert progress_bar(0, width=10).count("█") == 0
        assert progress_bar(100, width=10).count("█") == 10
        assert "100%" in progress_bar(150, width=10)
