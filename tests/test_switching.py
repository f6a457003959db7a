"""Tests for switching functions and event localization."""

import math

import numpy as np
import pytest

from odestep.dynamics import (
    Event,
    EventAction,
    EventLocalizationError,
    IntegratorError,
    MidpointIntegrator,
    ODESystem,
    SwitchingFunction,
    SwitchingFunctionsHandler,
    SwitchState,
    TrajectoryRecorder,
    solve,
)
from odestep.benchmarks import Bounce, BouncingProblem, run_reference_problem


def time_event(t_event, action=EventAction.STOP):
    return Event(lambda t, y: t - t_event, action=action)


class TestEvent:
    """Tests for the callable-based switching function."""

    def test_protocol(self):
        assert isinstance(Event(lambda t, y: t), SwitchingFunction)
        assert isinstance(Bounce(), SwitchingFunction)

    def test_records_occurrences(self):
        event = Event(lambda t, y: y[0], action=EventAction.CONTINUE)
        assert event.event_occurred(1.5, np.zeros(1)) is EventAction.CONTINUE
        assert event.occurrences == [1.5]

    def test_reset_requires_function(self):
        with pytest.raises(ValueError):
            Event(lambda t, y: y[0], action=EventAction.RESET_STATE)

    def test_reset_state(self):
        def flip(t, y):
            y[0] = -y[0]

        event = Event(lambda t, y: y[0], action=EventAction.RESET_STATE, reset=flip)
        y = np.array([2.0])
        event.reset_state(0.0, y)
        assert y[0] == -2.0


class TestSwitchState:
    """Tests for the per-function registration record."""

    @pytest.mark.parametrize("interval, convergence, iterations", [
        (0.0, 1e-6, 10),
        (1.0, 0.0, 10),
        (1.0, -1e-6, 10),
        (1.0, 1e-6, 0),
    ])
    def test_invalid_settings(self, interval, convergence, iterations):
        with pytest.raises(ValueError):
            SwitchState(time_event(1.0), interval, convergence, iterations)

    def test_reinitialize_samples_start(self):
        state = SwitchState(time_event(1.0), math.inf, 1e-8)
        state.reinitialize(0.0, np.zeros(1))
        assert state.g0 == -1.0
        assert not state.g0_positive

    def test_zero_counts_as_positive(self):
        state = SwitchState(time_event(0.0), math.inf, 1e-8)
        state.reinitialize(0.0, np.zeros(1))
        assert state.g0_positive

    def test_evaluate_step_locates_root(self):
        state = SwitchState(Event(lambda t, y: t * t - 2.0), math.inf, 1e-10)
        state.reinitialize(1.0, np.zeros(1))
        root = state.evaluate_step(2.0, lambda t: np.zeros(1))
        assert root == pytest.approx(math.sqrt(2.0), abs=2e-10)

    def test_evaluate_step_without_crossing(self):
        state = SwitchState(time_event(5.0), math.inf, 1e-10)
        state.reinitialize(0.0, np.zeros(1))
        assert state.evaluate_step(1.0, lambda t: np.zeros(1)) is None

    def test_zero_at_start_takes_sign_of_next_value(self):
        state = SwitchState(Event(lambda t, y: -t), math.inf, 1e-10)
        state.reinitialize(0.0, np.zeros(1))
        assert state.start_on_zero
        assert state.evaluate_step(1.0, lambda t: np.zeros(1)) is None

        state.step_accepted(1.0, np.zeros(1), triggered=False)
        assert not state.start_on_zero
        assert not state.g0_positive

    def test_check_interval_subdivides(self):
        calls = []

        def g(t, y):
            calls.append(t)
            return 1.0

        state = SwitchState(Event(g), 0.25, 1e-10)
        state.reinitialize(0.0, np.zeros(1))
        state.evaluate_step(1.0, lambda t: np.zeros(1))
        np.testing.assert_allclose(calls, [0.0, 0.25, 0.5, 0.75, 1.0])

    def test_handled_event_not_detected_again(self):
        state = SwitchState(time_event(1.0), math.inf, 1e-6)
        state.reinitialize(0.0, np.zeros(1))
        root = state.evaluate_step(2.0, lambda t: np.zeros(1))
        # accept a time slightly before the exact crossing
        t_event = root - 1e-7
        state.step_accepted(t_event, np.zeros(1), triggered=True)
        assert state.g0 < 0
        assert state.g0_positive
        assert state.evaluate_step(t_event + 1.0, lambda t: np.zeros(1)) is None

    def test_non_convergence_raises(self):
        state = SwitchState(
            Event(lambda t, y: math.exp(t) - 1.5), math.inf, 1e-14, max_iterations=1
        )
        state.reinitialize(0.0, np.zeros(1))
        with pytest.raises(EventLocalizationError) as excinfo:
            state.evaluate_step(1.0, lambda t: np.zeros(1))
        assert (excinfo.value.t_start, excinfo.value.t_end) == (0.0, 1.0)
        assert isinstance(excinfo.value, IntegratorError)


class TestSwitchingFunctionsHandler:
    """Tests for selection among several switching functions."""

    def test_earliest_crossing_wins(self):
        handler = SwitchingFunctionsHandler()
        handler.add(time_event(0.7), math.inf, 1e-10)
        handler.add(time_event(0.4), math.inf, 1e-10)
        handler.reinitialize_begin(0.0, np.zeros(1))

        occurrence = handler.evaluate_step(0.0, 1.0, lambda t: np.zeros(1))
        assert occurrence.index == 1
        assert occurrence.time == pytest.approx(0.4)

    def test_earliest_crossing_backward(self):
        handler = SwitchingFunctionsHandler()
        handler.add(time_event(0.7), math.inf, 1e-10)
        handler.add(time_event(0.4), math.inf, 1e-10)
        handler.reinitialize_begin(1.0, np.zeros(1))

        occurrence = handler.evaluate_step(1.0, 0.0, lambda t: np.zeros(1))
        assert occurrence.index == 0
        assert occurrence.time == pytest.approx(0.7)

    def test_step_accepted_returns_action(self):
        handler = SwitchingFunctionsHandler()
        handler.add(time_event(0.5, EventAction.CONTINUE), math.inf, 1e-10)
        handler.add(time_event(0.5, EventAction.STOP), math.inf, 1e-10)
        handler.reinitialize_begin(0.0, np.zeros(1))
        occurrence = handler.evaluate_step(0.0, 1.0, lambda t: np.zeros(1))

        assert occurrence.index == 0
        action = handler.step_accepted(occurrence.time, np.zeros(1), occurrence)
        assert action is EventAction.STOP
        assert handler.step_accepted(1.0, np.zeros(1)) is EventAction.CONTINUE

    def test_reset_state_only_after_request(self):
        handler = SwitchingFunctionsHandler()
        handler.add(time_event(0.5, EventAction.CONTINUE), math.inf, 1e-10)
        handler.reinitialize_begin(0.0, np.zeros(1))
        occurrence = handler.evaluate_step(0.0, 1.0, lambda t: np.zeros(1))
        handler.step_accepted(occurrence.time, np.zeros(1), occurrence)
        assert not handler.reset_state(occurrence.time, np.zeros(1))


class TestEventLocalization:
    """Integration tests for events inside the stepping loop."""

    def test_event_located_within_tolerance(self):
        """Crossing of y = 0.5 inside a single step, checked against the step formula."""
        step = 0.8
        convergence = 1.0e-6 * step
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(step)
        integ.set_step_handler(recorder)
        integ.add_switching_function(
            Event(lambda t, y: y[0] - 0.5), math.inf, convergence
        )
        y_out = np.zeros(1)
        t_event = integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 4.0, y_out)

        traj = recorder.trajectory(initial=(0.0, [1.0]))
        t_start = traj.times[-2]
        y_start = traj.states[-2][0]
        assert t_start == pytest.approx(0.8)

        # For y' = -y a midpoint sub-step of size s gives y (1 - s + s^2 / 2)
        s = 1.0 - math.sqrt(1.0 - 2.0 * (1.0 - 0.5 / y_start))
        assert t_event == pytest.approx(t_start + s, rel=0, abs=convergence)
        assert y_out[0] == pytest.approx(0.5, abs=1e-6)

    def test_closely_spaced_crossings_need_check_interval(self):
        def g(t, y):
            return (t - 0.32) * (t - 0.38)

        coarse = Event(g, action=EventAction.CONTINUE)
        integ = MidpointIntegrator(1.0)
        integ.add_switching_function(coarse, math.inf, 1e-9)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, np.zeros(1))
        assert coarse.occurrences == []

        fine = Event(g, action=EventAction.CONTINUE)
        integ = MidpointIntegrator(1.0)
        integ.add_switching_function(fine, 0.05, 1e-9)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, np.zeros(1))
        np.testing.assert_allclose(fine.occurrences, [0.32, 0.38], atol=1e-9)

    def test_truncated_steps_notify_handler(self):
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.5)
        integ.set_step_handler(recorder)
        integ.add_switching_function(
            time_event(0.7, EventAction.CONTINUE), math.inf, 1e-10
        )
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, np.zeros(1))

        np.testing.assert_allclose(
            recorder.trajectory().times, [0.5, 0.7, 1.2, 1.7, 2.0], atol=1e-10
        )

    def test_stop_event(self):
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.5)
        integ.set_step_handler(recorder)
        integ.add_switching_function(time_event(1.3), math.inf, 1e-10)
        y_out = np.zeros(1)
        t = integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, y_out)

        assert t == pytest.approx(1.3, abs=1e-10)
        assert recorder.finished
        assert recorder.trajectory().t_end == t
        np.testing.assert_array_equal(y_out, recorder.trajectory().final_state)

    def test_event_at_final_time(self):
        event = time_event(1.0, EventAction.CONTINUE)
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.25)
        integ.set_step_handler(recorder)
        integ.add_switching_function(event, math.inf, 1e-10)
        t = integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 1.0, np.zeros(1))

        assert t == 1.0
        assert len(event.occurrences) == 1
        assert recorder.finished

    def test_simultaneous_crossings_all_reported(self):
        """Every function crossing at the event time is triggered, in registration order."""
        stop = time_event(1.0, EventAction.STOP)
        marker = time_event(1.0, EventAction.CONTINUE)
        result = solve(
            ODESystem.exponential_decay(), [1.0], (0.0, 2.0),
            step_size=0.3, events=[stop, marker], convergence=1e-9
        )
        assert [index for index, _, _ in result.events] == [0, 1]
        assert result.trajectory.t_end == pytest.approx(1.0, abs=1e-9)
        assert result.termination_event_index == 0

        stop = time_event(1.0, EventAction.STOP)
        marker = time_event(1.0, EventAction.CONTINUE)
        result = solve(
            ODESystem.exponential_decay(), [1.0], (0.0, 2.0),
            step_size=0.3, events=[marker, stop], convergence=1e-9
        )
        assert [index for index, _, _ in result.events] == [0, 1]
        assert result.terminated_by_event
        assert result.termination_event_index == 1

    def test_crossing_within_tolerance_of_winner(self):
        first = time_event(1.0, EventAction.CONTINUE)
        second = time_event(1.0 - 5e-10, EventAction.CONTINUE)
        integ = MidpointIntegrator(0.3)
        integ.add_switching_function(first, math.inf, 1e-9)
        integ.add_switching_function(second, math.inf, 1e-9)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, np.zeros(1))

        assert first.occurrences == [pytest.approx(1.0, abs=1e-9)]
        assert second.occurrences == first.occurrences

    def test_tied_continue_does_not_drop_reset(self):
        def jump(t, y):
            y[0] = 10.0

        marker = time_event(1.0, EventAction.CONTINUE)
        reset = Event(lambda t, y: t - 1.0, action=EventAction.RESET_STATE, reset=jump)
        integ = MidpointIntegrator(0.05)
        integ.add_switching_function(marker, math.inf, 1e-9)
        integ.add_switching_function(reset, math.inf, 1e-9)
        y_out = np.zeros(1)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, y_out)

        assert len(marker.occurrences) == 1
        assert len(reset.occurrences) == 1
        assert y_out[0] == pytest.approx(10.0 * math.exp(-1.0), rel=1e-3)

    def test_zero_at_initial_time_is_not_an_event(self):
        event = Event(lambda t, y: -t, action=EventAction.CONTINUE)
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.25)
        integ.set_step_handler(recorder)
        integ.add_switching_function(event, math.inf, 1e-10)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 1.0, np.zeros(1))

        assert event.occurrences == []
        np.testing.assert_allclose(recorder.trajectory().times, [0.25, 0.5, 0.75, 1.0])

    def test_crossing_after_zero_start(self):
        event = Event(lambda t, y: t * (t - 0.5), action=EventAction.CONTINUE)
        integ = MidpointIntegrator(0.25)
        integ.add_switching_function(event, math.inf, 1e-10)
        integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 1.0, np.zeros(1))
        assert event.occurrences == [pytest.approx(0.5)]

    def test_later_registration_wins_when_earlier(self):
        late = time_event(1.2)
        early = time_event(1.0)
        integ = MidpointIntegrator(2.0)
        integ.add_switching_function(late, math.inf, 1e-9)
        integ.add_switching_function(early, math.inf, 1e-9)
        t = integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 4.0, np.zeros(1))

        assert t == pytest.approx(1.0, abs=1e-9)
        assert late.occurrences == []

    def test_cached_signs_reset_between_runs(self):
        event = time_event(0.5, EventAction.CONTINUE)
        integ = MidpointIntegrator(0.1)
        integ.add_switching_function(event, math.inf, 1e-10)
        system = ODESystem.exponential_decay()
        integ.integrate(system, 0.0, [1.0], 1.0, np.zeros(1))
        integ.integrate(system, 0.0, [1.0], 1.0, np.zeros(1))
        np.testing.assert_allclose(event.occurrences, [0.5, 0.5], atol=1e-10)

    def test_localization_failure_aborts_integration(self):
        integ = MidpointIntegrator(1.0)
        integ.add_switching_function(
            Event(lambda t, y: math.exp(t) - 1.5), math.inf, 1e-14, max_iterations=1
        )
        with pytest.raises(EventLocalizationError):
            integ.integrate(ODESystem.exponential_decay(), 0.0, [1.0], 2.0, np.zeros(1))


class TestBouncing:
    """State resets on the bouncing reference problem."""

    def test_bounces_and_stop(self):
        pb = BouncingProblem()
        bounce, stop = pb.switching_functions()
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.01)
        integ.set_step_handler(recorder)
        integ.add_switching_function(bounce, math.inf, 1e-8)
        integ.add_switching_function(stop, math.inf, 1e-8)
        y_out = np.zeros(2)
        t = integ.integrate(pb.system, pb.t0, pb.y0, pb.t1, y_out)

        assert t == pytest.approx(pb.stop_time, abs=1e-8)
        assert len(stop.occurrences) == 1
        np.testing.assert_allclose(y_out, pb.exact(t), atol=1e-3)

        traj = recorder.trajectory()
        assert np.all(traj.states[:, 0] > -1e-6)

    def test_bounce_times(self):
        pb = BouncingProblem()
        times = []

        class RecordingBounce(Bounce):
            def event_occurred(self, t, y):
                times.append(t)
                return super().event_occurred(t, y)

        integ = MidpointIntegrator(0.01)
        integ.add_switching_function(RecordingBounce(), math.inf, 1e-9)
        integ.add_switching_function(pb.switching_functions()[1], math.inf, 1e-9)
        integ.integrate(pb.system, pb.t0, pb.y0, pb.t1, np.zeros(2))

        assert len(pb.bounce_times()) == 4
        np.testing.assert_allclose(times, pb.bounce_times(), atol=1e-3)

    def test_small_errors(self):
        pb = BouncingProblem()
        handler = run_reference_problem(pb, MidpointIntegrator(0.001))
        assert handler.last_time == pytest.approx(pb.stop_time, abs=1e-8)
        assert handler.max_error < 1e-4

    def test_bounce_tied_with_marker(self):
        """A marker registered first on the same crossing does not swallow the bounce."""
        pb = BouncingProblem()
        bounce, stop = pb.switching_functions()
        marker = Event(lambda t, y: y[0], action=EventAction.CONTINUE)
        recorder = TrajectoryRecorder()
        integ = MidpointIntegrator(0.01)
        integ.set_step_handler(recorder)
        integ.add_switching_function(marker, math.inf, 1e-8)
        integ.add_switching_function(bounce, math.inf, 1e-8)
        integ.add_switching_function(stop, math.inf, 1e-8)
        t = integ.integrate(pb.system, pb.t0, pb.y0, pb.t1, np.zeros(2))

        assert t == pytest.approx(pb.stop_time, abs=1e-8)
        np.testing.assert_allclose(marker.occurrences, pb.bounce_times(), atol=1e-3)
        assert np.all(recorder.trajectory().states[:, 0] > -1e-6)
