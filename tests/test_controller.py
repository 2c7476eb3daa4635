"""Tests for the wizard controller's navigation rules."""

from cloudforge.phases import new_registry
from cloudforge.wizard.controller import WizardController
from cloudforge.wizard.handler import BasePhase, PhaseContext
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.phase import Phase
from cloudforge.wizard.state import WizardState


class RecordingPhase(BasePhase):
    """Advances on enter and records every call."""

    def __init__(self, name="Recording", modal=False):
        super().__init__(name, 1)
        self.calls = []
        self.modal = modal

    def init(self, ctx):
        self.calls.append("init")
        return super().init(ctx)

    def update(self, ctx, msg):
        self.calls.append(("update", getattr(msg, "key", msg)))
        return getattr(msg, "key", None) == "enter", None

    def view(self, ctx):
        return f"view {self.name}"

    def save(self, ctx):
        self.calls.append("save")

    def is_modal(self, ctx):
        return self.modal


def controller_with(handlers, phase=Phase.TARGET):
    ctx = PhaseContext(wizard=WizardState())
    ctx.wizard.phase = phase
    return WizardController(ctx, handlers)


class TestAdvance:
    """Enter on a terminal field runs save, advance, init."""

    def test_save_then_advance_then_init(self):
        first, second = RecordingPhase("first"), RecordingPhase("second")
        c = controller_with({Phase.TARGET: first, Phase.TARGET_OPTIONS: second})
        c.start()
        c.update(KeyPress("enter"))
        assert first.calls == ["init", ("update", "enter"), "save"]
        assert second.calls == ["init"]
        assert c.phase == Phase.TARGET_OPTIONS

    def test_no_advance_without_confirm(self):
        first = RecordingPhase()
        c = controller_with({Phase.TARGET: first})
        c.update(KeyPress("down"))
        assert c.phase == Phase.TARGET
        assert "save" not in first.calls


class TestEscape:
    """Escape is intercepted before the handler."""

    def test_escape_goes_back_and_reinits(self):
        ssh, options = RecordingPhase("ssh"), RecordingPhase("options")
        c = controller_with({Phase.SSH: ssh, Phase.TARGET_OPTIONS: options}, Phase.SSH)
        c.ctx.wizard.focused_field = 2
        c.update(KeyPress("escape"))
        assert c.phase == Phase.TARGET_OPTIONS
        assert ssh.calls == []
        assert options.calls == ["init"]
        assert c.ctx.wizard.focused_field == 0

    def test_escape_at_wall_reaches_handler(self):
        deploy = RecordingPhase("deploy")
        c = controller_with({Phase.DEPLOY: deploy}, Phase.DEPLOY)
        c.update(KeyPress("escape"))
        assert c.phase == Phase.DEPLOY
        assert deploy.calls == [("update", "escape")]

    def test_modal_handler_receives_escape(self):
        packages = RecordingPhase("packages", modal=True)
        c = controller_with({Phase.PACKAGES: packages}, Phase.PACKAGES)
        c.update(KeyPress("escape"))
        assert c.phase == Phase.PACKAGES
        assert packages.calls == [("update", "escape")]


class TestJump:
    """Handlers may redirect through ctx.jump_to."""

    def test_jump_inits_target_phase(self):
        class Jumper(RecordingPhase):
            def update(self, ctx, msg):
                ctx.jump_to(Phase.REVIEW)
                return False, None

        review = RecordingPhase("review")
        c = controller_with({Phase.TARGET: Jumper(), Phase.REVIEW: review})
        c.update(KeyPress("l"))
        assert c.phase == Phase.REVIEW
        assert review.calls == ["init"]
        assert c.ctx.jump_target is None


class TestMissingHandler:
    """An unregistered phase is a no-op."""

    def test_update_and_view_do_not_crash(self):
        c = controller_with({}, Phase.GIT)
        assert c.start() is None
        assert c.update(KeyPress("enter")) is None
        assert c.phase == Phase.GIT
        assert "Git Config" in c.view()


class TestRegistry:
    """Every phase has a handler."""

    def test_all_phases_registered(self):
        handlers = new_registry()
        assert set(handlers) == set(Phase)

    def test_view_includes_message(self):
        c = controller_with(new_registry())
        c.start()
        c.ctx.message = "Loaded config: dev"
        assert "Loaded config: dev" in c.view()
