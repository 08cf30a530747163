"""Tests for the zoom-loop model and export planning."""

import math

import pytest

from droste.core.geometry import DEFAULT_QUAD, Quad
from droste.loop import (
    Direction,
    LoopController,
    ZoomState,
    advance_zoom,
    compute_loop_scale,
    phase_for_zoom,
    plan_export,
)


class TestLoopScale:
    def test_half_size_quad(self):
        s = compute_loop_scale(DEFAULT_QUAD.to_pixels(800, 600), 800, 600)
        assert s == pytest.approx(2.0)

    def test_tiny_quad_area_floor(self):
        q = Quad.from_points([[0, 0], [0.5, 0], [0.5, 0.5], [0, 0.5]])
        assert compute_loop_scale(q, 100, 100) == pytest.approx(100.0)

    def test_controller(self):
        loop = LoopController()
        assert loop.update_loop_scale(DEFAULT_QUAD, 800, 600) == pytest.approx(2.0)
        assert loop.loop_scale == pytest.approx(2.0)


class TestPhase:
    def test_start(self):
        assert phase_for_zoom(1.0, 2.0) == 0.0

    def test_midway(self):
        assert phase_for_zoom(math.sqrt(2.0), 2.0) == pytest.approx(0.5)

    def test_wraps(self):
        assert phase_for_zoom(4.0 * math.sqrt(2.0), 2.0) == pytest.approx(0.5)

    def test_degenerate_scale(self):
        assert phase_for_zoom(1.5, 1.00001) == 0.0
        assert phase_for_zoom(1.5, 0.0) == 0.0


class TestAdvanceZoom:
    def test_multiplicative(self):
        state = ZoomState(zoom_level=1.0, loop_scale=2.0)
        phase = advance_zoom(state, 0.5, 1.0, Direction.IN)
        assert state.zoom_level == pytest.approx(1.5)
        assert phase == pytest.approx(math.log(1.5) / math.log(2.0))

    def test_constant_speed(self):
        state = ZoomState(zoom_level=1.0, loop_scale=2.0)
        advance_zoom(state, 0.5, 1.0, Direction.IN, constant_speed=True)
        assert state.zoom_level == pytest.approx(1.25)

    def test_wrap_in(self):
        state = ZoomState(zoom_level=1.9, loop_scale=2.0)
        advance_zoom(state, 0.1, 1.0, Direction.IN)
        assert state.zoom_level == pytest.approx(1.9 * 1.1 / 2.0)

    def test_wrap_out(self):
        state = ZoomState(zoom_level=1.05, loop_scale=2.0)
        advance_zoom(state, 0.1, 1.0, Direction.OUT)
        assert state.zoom_level == pytest.approx(1.05 / 1.1 * 2.0)

    def test_wrap_out_constant_speed(self):
        state = ZoomState(zoom_level=1.1, loop_scale=2.0)
        advance_zoom(state, 0.4, 1.0, Direction.OUT, constant_speed=True)
        assert state.zoom_level == pytest.approx(1.9)

    def test_stop_holds(self):
        state = ZoomState(zoom_level=1.3, loop_scale=2.0)
        advance_zoom(state, 1.0, 1.0, Direction.STOP)
        assert state.zoom_level == 1.3

    def test_non_positive_dt_holds(self):
        state = ZoomState(zoom_level=1.3, loop_scale=2.0)
        advance_zoom(state, 0.0, 1.0, Direction.IN)
        assert state.zoom_level == 1.3

    def test_no_loop_pins_zoom(self):
        state = ZoomState(zoom_level=1.3, loop_scale=1.0)
        assert advance_zoom(state, 0.1, 1.0, Direction.IN) == 0.0
        assert state.zoom_level == 1.0

    @pytest.mark.parametrize("constant_speed", [False, True])
    @pytest.mark.parametrize("direction", [Direction.IN, Direction.OUT])
    def test_stays_in_range(self, constant_speed, direction):
        state = ZoomState(zoom_level=1.0, loop_scale=2.0)
        for _ in range(500):
            phase = advance_zoom(state, 1 / 60, 5.0, direction, constant_speed)
            assert 1.0 <= state.zoom_level < 2.0
            assert 0.0 <= phase < 1.0

    def test_large_step_wraps_many_loops(self):
        state = ZoomState(zoom_level=1.0, loop_scale=2.0)
        advance_zoom(state, 10.0, 5.0, Direction.IN)
        assert 1.0 <= state.zoom_level < 2.0


class TestLoopController:
    def test_advance_and_reset(self):
        loop = LoopController(ZoomState(loop_scale=2.0))
        loop.advance(0.5, 1.0, Direction.IN)
        assert loop.zoom_level == pytest.approx(1.5)
        assert loop.phase() == pytest.approx(math.log(1.5) / math.log(2.0))
        loop.reset()
        assert loop.zoom_level == 1.0
        assert loop.phase() == 0.0


class TestPlanExport:
    def test_constant_speed_timing(self):
        plan = plan_export(2.0, 1.0, True, Direction.IN)
        assert plan.duration == pytest.approx(2.0)
        assert plan.fps == 30
        assert plan.total_frames == 60
        assert plan.delay_ms == 33
        assert len(plan.phases) == 60

    def test_constant_speed_phase_curve(self):
        plan = plan_export(2.0, 1.0, True, Direction.IN)
        assert plan.phases[0] == 0.0
        assert plan.phases[30] == pytest.approx(math.log(1.5) / math.log(2.0))

    def test_natural_flow(self):
        plan = plan_export(2.0, 1.0, False, Direction.IN)
        assert plan.duration == pytest.approx(math.log(2.0))
        assert plan.total_frames == 20
        assert plan.phases[10] == pytest.approx(0.5)

    def test_slowest_speed_capped(self):
        plan = plan_export(2.0, 0.1, True, Direction.IN)
        assert plan.duration == pytest.approx(10.0)
        assert plan.total_frames == 300

    def test_fastest_speed(self):
        plan = plan_export(2.0, 5.0, True, Direction.IN)
        assert plan.duration == pytest.approx(0.4)
        assert plan.total_frames == 12

    def test_minimum_frames(self):
        plan = plan_export(1.0, 5.0, False, Direction.IN)
        assert plan.duration == pytest.approx(0.2)
        assert plan.total_frames == 10

    @pytest.mark.parametrize("constant_speed", [False, True])
    def test_monotonic_in(self, constant_speed):
        phases = plan_export(3.0, 1.0, constant_speed, Direction.IN).phases
        assert all(b > a for a, b in zip(phases, phases[1:]))
        assert 0.0 <= phases[0] and phases[-1] < 1.0

    def test_out_is_reversed(self):
        forward = plan_export(2.0, 1.0, True, Direction.IN).phases
        backward = plan_export(2.0, 1.0, True, Direction.OUT).phases
        for f, b in zip(forward, backward):
            assert b == pytest.approx(1.0 - f)
        assert all(b < a for a, b in zip(backward, backward[1:]))

    def test_deterministic(self):
        assert plan_export(2.5, 0.7, True, Direction.IN) == plan_export(2.5, 0.7, True, Direction.IN)

    def test_non_positive_speed(self):
        assert plan_export(2.0, 0.0, True, Direction.IN).duration == pytest.approx(2.0)


class TestLoopScaleMonotonic:
    def test_shrinking_quad_grows_scale(self):
        scales = []
        for half in (0.45, 0.35, 0.25, 0.15, 0.05):
            q = Quad.from_points([
                [0.5 - half, 0.5 - half], [0.5 + half, 0.5 - half],
                [0.5 + half, 0.5 + half], [0.5 - half, 0.5 + half],
            ])
            scales.append(compute_loop_scale(q.to_pixels(800, 600), 800, 600))
        assert all(b > a for a, b in zip(scales, scales[1:]))


class TestEndToEndScenario:
    def test_800x600_half_quad(self, large_texture):
        from droste.config import DrosteConfig
        from droste.session import DrosteSession

        session = DrosteSession(
            large_texture,
            DrosteConfig(depth=10, zoom_speed=1.0, constant_speed=True),
        )
        assert session.loop.loop_scale == pytest.approx(2.0)

        plan = session.export_plan()
        assert plan.duration == pytest.approx(2.0)
        assert plan.total_frames == 60
        assert plan.delay_ms == 33
        assert plan.phases[30] == pytest.approx(0.585, abs=1e-3)
