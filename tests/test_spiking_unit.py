"""Tests for SpikingUnit: leak, firing, refractory handling and STDP."""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from lobe_config import NeuronConfig
from lobe_foundation import SpikeEvent, SpikingUnit, build_population, extract_keywords


def make_unit(**kwargs):
    defaults = dict(threshold=5.0, leak_rate=1.0, reset_potential=0.0, refractory_cycles=3)
    defaults.update(kwargs)
    return SpikingUnit(**defaults)


class TestLeakAndFire:
    """Leak toward reset and firing at threshold."""

    def test_converges_to_reset_without_input(self):
        """Without input the potential settles at the reset value."""
        unit = make_unit(membrane_potential=3.0)
        for _ in range(10):
            assert unit.step() is False
        assert unit.membrane_potential == pytest.approx(unit.reset_potential)

    def test_potential_never_below_reset(self):
        """Leak is floored at the reset potential."""
        unit = make_unit(reset_potential=-2.0, membrane_potential=-1.0, leak_rate=10.0)
        unit.step()
        assert unit.membrane_potential == pytest.approx(-2.0)

    def test_fires_at_threshold(self):
        """Reaching the threshold fires, resets and starts the refractory count."""
        unit = SpikingUnit.from_config(NeuronConfig())
        unit.apply_input(80.0)  # 80 - 75 leak = 5 == threshold
        assert unit.step(now=12.5) is True
        assert unit.membrane_potential == pytest.approx(0.0)
        assert unit.refractory_countdown == 3
        assert unit.last_spike_time == pytest.approx(12.5)

    def test_below_threshold_does_not_fire(self):
        """Just under threshold the unit keeps its potential."""
        unit = SpikingUnit.from_config(NeuronConfig())
        unit.apply_input(79.0)
        assert unit.step() is False
        assert unit.membrane_potential == pytest.approx(4.0)
        assert unit.last_spike_time is None

    def test_step_uses_wall_clock_by_default(self):
        unit = make_unit(leak_rate=0.0)
        unit.apply_input(10.0)
        assert unit.step()
        assert unit.last_spike_time is not None and unit.last_spike_time > 0


class TestRefractory:
    """Refractory period handling."""

    def test_refractory_ignores_spikes(self):
        """Spikes arriving during refractory are dropped."""
        unit = make_unit(leak_rate=0.0)
        unit.apply_input(10.0)
        assert unit.step()
        unit.receive_spike(SpikeEvent("pre", 0.0, value=1.0), weight=0.5)
        assert unit.membrane_potential == pytest.approx(0.0)

    def test_refractory_steps_count_down(self):
        unit = make_unit(leak_rate=0.0)
        unit.apply_input(10.0)
        unit.step()
        unit.apply_input(10.0)
        fired = [unit.step() for _ in range(3)]
        assert fired == [False, False, False]
        assert unit.refractory_countdown == 0
        # Input applied during refractory is still there afterwards
        assert unit.step() is True

    def test_spikes_ignored_for_exactly_refractory_cycles(self):
        """Spikes count again after exactly refractory_cycles steps."""
        unit = make_unit(leak_rate=0.0, threshold=100.0, refractory_cycles=3)
        unit.refractory_countdown = 3
        spike = SpikeEvent("pre", 0.0, value=1.0)
        for _ in range(3):
            unit.receive_spike(spike, weight=1.0)
            assert unit.membrane_potential == pytest.approx(0.0)
            unit.step()
        unit.receive_spike(spike, weight=1.0)
        assert unit.membrane_potential == pytest.approx(1.0)

    def test_leak_skipped_while_refractory(self):
        """No leak is applied while refractory."""
        unit = make_unit(leak_rate=1.0, refractory_countdown=2, membrane_potential=3.0)
        unit.step()
        assert unit.membrane_potential == pytest.approx(3.0)

    def test_receive_spike_integrates_weighted_value(self):
        unit = make_unit()
        unit.receive_spike(SpikeEvent("pre", 0.0, value=2.0), weight=0.25)
        assert unit.membrane_potential == pytest.approx(0.5)


class TestSTDP:
    """Spike-timing dependent plasticity."""

    # 0.015625 s is exact in binary, so dt truncates to 15 ms
    PRE_BEFORE = 1.0 - 0.015625
    PRE_AFTER = 1.0 + 0.015625

    def test_causal_pair_strengthens(self):
        """Pre before post strengthens by rate / dt."""
        unit = make_unit(learning_rate=0.001, last_spike_time=1.0, connections={"pre": 0.5})
        unit.learn([SpikeEvent("pre", self.PRE_BEFORE)])
        assert unit.connections["pre"] == pytest.approx(0.5 + 0.001 / 15)

    def test_acausal_pair_weakens(self):
        """Pre after post weakens by rate / dt."""
        unit = make_unit(learning_rate=0.001, last_spike_time=1.0, connections={"pre": 0.5})
        unit.learn([SpikeEvent("pre", self.PRE_AFTER)])
        assert unit.connections["pre"] == pytest.approx(0.5 - 0.001 / 15)

    def test_outside_window_unchanged(self):
        """Pairs 20 ms or more apart leave the weight alone."""
        unit = make_unit(last_spike_time=1.0, connections={"pre": 0.5})
        unit.learn([SpikeEvent("pre", 0.5), SpikeEvent("pre", 1.5)])
        assert unit.connections["pre"] == pytest.approx(0.5)

    def test_simultaneous_spike_unchanged(self):
        unit = make_unit(last_spike_time=1.0, connections={"pre": 0.5})
        unit.learn([SpikeEvent("pre", 1.0)])
        assert unit.connections["pre"] == pytest.approx(0.5)

    def test_never_fired_is_noop(self):
        """A unit that never fired does not learn."""
        unit = make_unit(connections={"pre": 0.5})
        unit.learn([SpikeEvent("pre", 0.99)])
        assert unit.connections["pre"] == pytest.approx(0.5)

    def test_unknown_presynaptic_ignored(self):
        unit = make_unit(last_spike_time=1.0, connections={"pre": 0.5})
        unit.learn([SpikeEvent("stranger", self.PRE_BEFORE)])
        assert unit.connections == {"pre": 0.5}

    def test_weights_clamped_high(self):
        """Weights never exceed 1."""
        unit = make_unit(learning_rate=1.0, last_spike_time=1.0, connections={"pre": 0.99})
        unit.learn([SpikeEvent("pre", self.PRE_BEFORE)])
        assert unit.connections["pre"] == pytest.approx(1.0)

    def test_weights_clamped_low(self):
        """Weights never drop below 0."""
        unit = make_unit(learning_rate=1.0, last_spike_time=1.0, connections={"pre": 0.01})
        unit.learn([SpikeEvent("pre", self.PRE_AFTER)])
        assert unit.connections["pre"] == pytest.approx(0.0)


class TestConstruction:
    """Building and wiring units."""

    def test_connect_weight_in_band(self):
        """Initial weights fall inside the configured band."""
        unit = make_unit()
        rng = np.random.default_rng(7)
        for i in range(50):
            w = unit.connect(f"t{i}", rng=rng, low=0.01, high=0.1)
            assert 0.01 <= w <= 0.1
        assert len(unit.connections) == 50

    def test_from_config_starts_at_reset(self):
        unit = SpikingUnit.from_config(NeuronConfig(reset_potential=-1.0))
        assert unit.membrane_potential == pytest.approx(-1.0)
        assert unit.connections == {}

    def test_apply_config_keeps_state(self):
        """apply_config changes parameters, not accumulated state."""
        unit = make_unit(membrane_potential=2.0, connections={"x": 0.3})
        unit.apply_config(NeuronConfig(threshold=9.0, leak_rate=0.5))
        assert unit.threshold == pytest.approx(9.0)
        assert unit.leak_rate == pytest.approx(0.5)
        assert unit.membrane_potential == pytest.approx(2.0)
        assert unit.connections == {"x": 0.3}

    def test_build_population_unique_ids(self):
        units = build_population(NeuronConfig(), 21)
        assert len(units) == 21
        assert all(uid == u.unit_id for uid, u in units.items())


class TestKeywords:
    """Keyword extraction from event text."""

    def test_strips_punctuation_and_stop_words(self):
        """Punctuation and stop words are removed."""
        assert extract_keywords("What is the Philosophy of peace?") == ["philosophy", "peace"]

    def test_drops_short_tokens(self):
        assert extract_keywords("AI is ok") == []

    def test_keeps_duplicates_in_order(self):
        assert extract_keywords("unity, unity; peace") == ["unity", "unity", "peace"]
