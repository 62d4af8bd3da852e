import pytest

from fem_fsi.core.exceptions import ConfigurationError, CouplingAssertionError
from fem_fsi.core.time import TimeController, TimeState


class TestTimeController:
    def test_initial_state(self):
        time = TimeController(end_time=1.0, delta_t=0.1)
        assert time.current() == 0.0
        assert time.end() == 1.0
        assert time.get_delta_t() == 0.1
        assert time.get_timestep() == 0
        assert time.state is TimeState.RUNNING

    def test_no_drift(self):
        time = TimeController(end_time=1.0, delta_t=0.1)
        steps = 0
        while not time.is_finished:
            time.increment()
            steps += 1
        assert steps == 10
        assert time.current() == pytest.approx(1.0, abs=1e-12)
        assert time.current() <= time.end()

    def test_last_step_clipped_to_end(self):
        time = TimeController(end_time=0.25, delta_t=0.1)
        for _ in range(3):
            time.increment()
        assert time.current() == 0.25
        assert time.state is TimeState.FINISHED

    def test_increment_when_finished(self):
        time = TimeController(end_time=0.1, delta_t=0.1)
        time.increment()
        with pytest.raises(CouplingAssertionError):
            time.increment()

    def test_zero_end_time_is_finished(self):
        assert TimeController(end_time=0.0, delta_t=0.1).is_finished

    @pytest.mark.parametrize("end, dt", [(1.0, 0.0), (1.0, -0.1), (-1.0, 0.1)])
    def test_invalid_arguments(self, end, dt):
        with pytest.raises(ConfigurationError):
            TimeController(end_time=end, delta_t=dt)

    def test_output_interval(self):
        time = TimeController(end_time=0.5, delta_t=0.1, output_interval=0.2)
        flags = []
        while not time.is_finished:
            time.increment()
            flags.append(time.time_to_output())
        # Steps 2 and 4 complete an interval, the last step always outputs
        assert flags == [False, True, False, True, True]

    def test_disabled_intervals(self):
        time = TimeController(end_time=0.5, delta_t=0.1)
        time.increment()
        assert not time.time_to_output()
        assert not time.time_to_refine()
