"""
Quantum Pocket: multi-cycle spike propagation with STDP under a shared lock.

A pocket is a randomly connected population of spiking units simulated for
``pocket.processing_cycles`` cycles per event.  Unlike a topic network it
propagates spikes along its connections and applies plasticity.

The unit map is owned collectively: any number of callers may hold the same
pocket, and every access to the map goes through ``self._lock``.  One
simulation cycle (stimulus, step, propagate, learn) runs entirely under the
lock, so another caller never observes a half-finished cycle.  A cycle whose
lock cannot be acquired within ``pocket.lock_timeout`` seconds is skipped.

Usage::

    from quantum_pocket import QuantumPocket
    pocket = QuantumPocket(cfg)
    snap = pocket.process("an incoming event")
    print(snap.pattern_detected, snap.anomaly_detected)
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from lobe_config import LobeConfig
from lobe_foundation import (
    EventLike,
    SpikeEvent,
    SpikingUnit,
    build_population,
    event_text,
)

logger = logging.getLogger("lobegraph.pocket")


@dataclass
class PocketSnapshot:
    """Classification of one multi-cycle run.

    Attributes:
        pocket_id: The producing pocket.
        anomaly_detected: Total fires fell below the low-activity bound.
        pattern_detected: Total fires exceeded the pattern bound.
        total_fires: Fires summed over all completed cycles.
        cycles_run: Cycles that completed under the lock.
        cycles_skipped: Cycles abandoned because the lock was unavailable.
    """

    pocket_id: str
    anomaly_detected: bool
    pattern_detected: bool
    total_fires: int = 0
    cycles_run: int = 0
    cycles_skipped: int = 0


def wire_population(
    units: Dict[str, SpikingUnit],
    rng: np.random.Generator,
    low: float,
    high: float,
) -> None:
    """Connect every unit to ``max(N // 10, 1)`` distinct random peers."""
    ids = list(units.keys())
    fan_out = max(len(ids) // 10, 1)
    for uid in ids:
        candidates = [t for t in ids if t != uid]
        if not candidates:
            continue
        k = min(fan_out, len(candidates))
        chosen = rng.choice(len(candidates), size=k, replace=False)
        for idx in chosen:
            units[uid].connect(candidates[int(idx)], rng=rng, low=low, high=high)


class QuantumPocket:
    """Randomly connected population simulated over many cycles.

    Args:
        config: Configuration snapshot source.
        pocket_id: Optional explicit id (auto-generated if None).
    """

    def __init__(self, config: LobeConfig, pocket_id: Optional[str] = None) -> None:
        self.pocket_id = pocket_id or str(uuid.uuid4())
        self.config = config.snapshot()
        self._lock = threading.Lock()
        self._rng = np.random.default_rng(self.config.pocket.seed)
        self._units: Dict[str, SpikingUnit] = build_population(
            self.config.neuron, self.config.hierarchy.pocket_neurons
        )
        wire_population(
            self._units,
            self._rng,
            self.config.neuron.weight_low,
            self.config.neuron.weight_high,
        )

    @classmethod
    def rebuild(cls, config: LobeConfig, pocket_id: str) -> "QuantumPocket":
        """Fresh population from ``config`` that keeps an existing identity."""
        return cls(config, pocket_id=pocket_id)

    def __repr__(self) -> str:
        return f"QuantumPocket(id={self.pocket_id!r}, units={self.population})"

    # ── Shared state access ────────────────────────────────────────────

    @property
    def population(self) -> int:
        with self._lock:
            return len(self._units)

    def units_snapshot(self) -> Dict[str, SpikingUnit]:
        """Deep copy of the unit map taken between cycles."""
        with self._lock:
            return copy.deepcopy(self._units)

    def reconfigure(self, config: LobeConfig) -> None:
        """Replace the snapshot and update live unit parameters."""
        with self._lock:
            self.config = config.snapshot()
            for unit in self._units.values():
                unit.apply_config(self.config.neuron)

    def telemetry(self) -> Dict[str, Any]:
        """Population and weight statistics."""
        with self._lock:
            weights = [w for u in self._units.values() for w in u.connections.values()]
            return {
                "pocket_id": self.pocket_id,
                "units": len(self._units),
                "connections": len(weights),
                "mean_weight": float(np.mean(weights)) if weights else 0.0,
                "std_weight": float(np.std(weights)) if weights else 0.0,
                "refractory_units": sum(1 for u in self._units.values() if u.is_refractory),
            }

    # ── Simulation ─────────────────────────────────────────────────────

    def process(self, event: EventLike) -> PocketSnapshot:
        """Run the configured number of cycles and classify the activity."""
        text = event_text(event)
        pcfg = self.config.pocket
        cycles = pcfg.processing_cycles
        stimulus = len(text) * pcfg.pocket_input_scale * self.config.neuron.activity_multiplier

        total_fires = 0
        cycles_run = 0
        cycles_skipped = 0
        # Refreshed under the lock; a rebuilt pocket always holds pocket_neurons units.
        population = self.config.hierarchy.pocket_neurons
        for cycle in range(cycles):
            if not self._lock.acquire(timeout=pcfg.lock_timeout):
                cycles_skipped += 1
                logger.warning(
                    "QP %s: lock unavailable, skipping cycle %d", self.pocket_id, cycle
                )
                continue
            try:
                population = len(self._units)
                total_fires += self._run_cycle(stimulus if cycle == 0 else None)
                cycles_run += 1
            finally:
                self._lock.release()

        logger.info(
            "QP %s: Total fires over %d cycles: %d", self.pocket_id, cycles, total_fires
        )
        return PocketSnapshot(
            pocket_id=self.pocket_id,
            pattern_detected=total_fires > int(population * cycles * pcfg.pattern_fraction),
            anomaly_detected=total_fires < int(population * pcfg.anomaly_fraction),
            total_fires=total_fires,
            cycles_run=cycles_run,
            cycles_skipped=cycles_skipped,
        )

    def _run_cycle(self, stimulus: Optional[float]) -> int:
        """One cycle; caller holds the lock.  Returns the number of fires."""
        spike_value = self.config.pocket.spike_value
        fired: Dict[str, SpikeEvent] = {}
        for uid, unit in self._units.items():
            if stimulus is not None:
                unit.apply_input(stimulus)
            if unit.step():
                fired[uid] = SpikeEvent(
                    presynaptic_unit_id=uid,
                    timestamp=unit.last_spike_time or time.time(),
                    value=spike_value,
                )

        if not fired:
            return 0

        batch: List[SpikeEvent] = list(fired.values())
        for uid, spike in fired.items():
            connections = dict(self._units[uid].connections)
            for target_id, weight in connections.items():
                target = self._units.get(target_id)
                if target is not None:
                    target.receive_spike(spike, weight)
            for target_id in connections:
                target = self._units.get(target_id)
                if target is not None:
                    target.learn(batch)
        return len(fired)
