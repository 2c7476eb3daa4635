"""Tests for phase ordering, navigation and the field editing primitives."""

import pytest

from cloudforge.wizard.phase import NEXT, PREV, Phase, total_phases
from cloudforge.wizard.state import WizardState

from conftest import make_registry


class TestPhaseOrdering:
    """Forward and backward tables."""

    def test_ten_phases_in_order(self):
        assert total_phases() == 10
        assert list(Phase)[0] == Phase.TARGET
        assert list(Phase)[-1] == Phase.COMPLETE

    @pytest.mark.parametrize("phase", [p for p in Phase if p != Phase.COMPLETE])
    def test_advance_then_back_then_advance_is_stable(self, phase):
        state = WizardState()
        state.phase = phase
        state.advance()
        after = state.phase
        state.focused_field = 3
        if state.go_back():
            assert state.focused_field == 0
            state.advance()
            assert state.focused_field == 0
        assert state.phase == after

    def test_complete_advances_to_itself(self):
        assert NEXT[Phase.COMPLETE] == Phase.COMPLETE

    def test_prev_of_each_config_phase_is_the_one_before(self):
        for phase in (Phase.SSH, Phase.GIT, Phase.HOST, Phase.PACKAGES, Phase.OPTIONAL):
            assert PREV[phase] == Phase(phase - 1)

    def test_config_phases(self):
        assert Phase.SSH.is_config_phase
        assert Phase.OPTIONAL.is_config_phase
        assert not Phase.REVIEW.is_config_phase
        assert not Phase.TARGET.is_config_phase


class TestCanGoBack:
    """Target, Deploy and Complete are walls."""

    @pytest.mark.parametrize("phase", list(Phase))
    def test_can_go_back_iff_not_a_wall(self, phase):
        state = WizardState()
        state.phase = phase
        walls = {Phase.TARGET, Phase.DEPLOY, Phase.COMPLETE}
        assert state.can_go_back() == (phase not in walls)

    def test_go_back_at_wall_is_refused(self):
        state = WizardState()
        state.phase = Phase.DEPLOY
        assert state.go_back() is False
        assert state.phase == Phase.DEPLOY


class TestNavigateField:
    """Focus is clamped into [0, max_field]."""

    @pytest.mark.parametrize("delta", [-100, -3, -1, 0, 1, 2, 7, 100])
    @pytest.mark.parametrize("max_field", [0, 1, 4, 10])
    def test_result_in_bounds(self, delta, max_field):
        state = WizardState()
        state.focused_field = max_field // 2
        state.navigate_field(delta, max_field)
        assert 0 <= state.focused_field <= max_field

    def test_moves_by_delta_inside_bounds(self):
        state = WizardState()
        state.navigate_field(2, 5)
        assert state.focused_field == 2
        state.navigate_field(-1, 5)
        assert state.focused_field == 1


class TestCycleSelect:
    """Select indices wrap in both directions."""

    @pytest.mark.parametrize("count", [1, 2, 3, 5])
    @pytest.mark.parametrize("delta", [1, -1])
    def test_full_cycle_returns_to_start(self, count, delta):
        state = WizardState()
        state.set_select("cpus", count - 1)
        for _ in range(count):
            state.cycle_select("cpus", count, delta)
        assert state.get_select("cpus") == count - 1

    def test_wraps_low_to_high(self):
        state = WizardState()
        state.cycle_select("disk", 3, -1)
        assert state.get_select("disk") == 2

    def test_zero_options_is_noop(self):
        state = WizardState()
        state.set_select("disk", 1)
        state.cycle_select("disk", 0, 1)
        assert state.get_select("disk") == 1


class TestReset:
    """reset() clears the session but keeps the registry."""

    def test_reset_keeps_registry(self):
        registry = make_registry("bat")
        state = WizardState(registry)
        state.phase = Phase.REVIEW
        state.data.username = "dev"
        state.package_selected["bat"] = True
        state.init_input("hostname", value="box")
        state.reset()
        assert state.registry is registry
        assert state.phase == Phase.TARGET
        assert state.data.username == ""
        assert state.package_selected == {}
        assert state.text_inputs == {}

    def test_selected_packages_sorted(self):
        state = WizardState()
        state.package_selected = {"zsh": True, "bat": True, "make": False}
        assert state.selected_packages() == ["bat", "zsh"]
