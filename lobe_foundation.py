"""
LobeGraph Foundation - Spiking units, topic networks and domain networks.

Implements the lower three levels of the scoring hierarchy:

    SpikingUnit    leaky integrate-and-fire unit with a bounded STDP window
    TopicNetwork   flat population of units dedicated to one topic
    DomainNetwork  ordered group of topic networks producing a textual insight

Design principles:
    - Sparse by default: connections are a dict of target id -> weight
    - One simulated cycle per topic-network call, no plasticity there
    - Every component owns a configuration snapshot and can be reconfigured
      live without losing membrane potentials or weights
"""

from __future__ import annotations

import logging
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Union

import numpy as np

from lobe_config import LobeConfig, NeuronConfig

logger = logging.getLogger("lobegraph.foundation")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass
class SensoryEvent:
    """Text-like input travelling down the hierarchy.

    Attributes:
        event_id: Unique identifier.
        timestamp: Wall-clock arrival time (epoch seconds).
        source: Who produced the event (e.g. "Architect").
        data_type: Payload kind; only "Text" is scored.
        content: The text payload.
        metadata: Free-form application data.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    source: str = "Architect"
    data_type: str = "Text"
    content: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, content: str, source: str = "Architect") -> "SensoryEvent":
        return cls(source=source, data_type="Text", content=content)


EventLike = Union[SensoryEvent, str]


def event_text(event: EventLike) -> str:
    """Return the text payload of an event or a bare string."""
    if isinstance(event, SensoryEvent):
        return event.content
    return event


@dataclass
class SpikeEvent:
    """Spike emitted by a unit, consumed within the same cycle."""

    presynaptic_unit_id: str
    timestamp: float
    value: float = 1.0


# ---------------------------------------------------------------------------
# Keyword extraction
# ---------------------------------------------------------------------------

STOP_WORDS: Set[str] = {
    "a", "an", "the", "and", "or", "but", "is", "are", "was", "were", "be",
    "been", "being", "to", "of", "in", "on", "at", "for", "with", "as", "by",
    "from", "about", "what", "how", "who", "when", "where", "why", "can",
    "will", "my", "your", "his", "her", "its", "our", "their", "this", "that",
    "these", "those", "it", "he", "she", "we", "they", "i", "you", "me", "him",
    "us", "them", "which", "whom", "whose", "do", "don", "does", "doesn",
    "did", "didn", "has", "hasn", "have", "haven", "had", "hadn", "not", "no",
    "yes", "so", "than", "then", "just", "now", "only", "very", "too", "much",
    "more", "most", "less", "least", "many", "few", "some", "any", "all",
    "none", "every", "each", "both", "either", "neither", "own", "same",
    "such", "up", "down", "out", "off", "over", "under", "again", "further",
    "once", "here", "there", "other", "nor", "s", "t", "should",
}

_PUNCTUATION_TABLE = str.maketrans({c: " " for c in string.punctuation})


def extract_keywords(text: str) -> List[str]:
    """Lowercase, strip ASCII punctuation, drop stop words and short tokens.

    Order is preserved and duplicates are kept.
    """
    words = text.lower().translate(_PUNCTUATION_TABLE).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


# Topic label -> keywords that earn a topic network extra stimulus.
TOPIC_KEYWORDS: Dict[str, Set[str]] = {
    "Ethics & Philosophy": {
        "peace", "love", "truth", "justice", "ethics", "moral", "principle",
        "understanding", "wisdom", "foundation", "unity",
    },
    "Psychology & Consciousness": {
        "consciousness", "mind", "soul", "spirit", "awareness", "identity",
        "psychology", "cognition", "empathy",
    },
    "Technology & Engineering": {
        "ai", "robotics", "bio-hybrid", "quantum", "engineering", "system",
        "tech", "nanodocs", "gemma", "platform",
    },
    "Physics & Cosmology": {
        "cosmology", "universe", "quantum", "actuality", "heavens", "origin",
        "duality", "attraction", "retraction", "yeshua", "lucifer", "anunnaki",
    },
    "Economics & Finance": {
        "business", "finance", "investment", "economy", "market", "wealth",
        "royalty", "subsidiary",
    },
    "Art & Creativity": {
        "art", "music", "create", "design", "expression", "visual", "audio",
    },
    "History & Sociology": {
        "history", "society", "culture", "sociology", "oppression",
        "narrative", "ancient", "civilization",
    },
}


def topic_keywords_for(topic: str) -> Set[str]:
    """Keyword set for a topic label (empty for unknown topics)."""
    return set(TOPIC_KEYWORDS.get(topic, ()))


# ---------------------------------------------------------------------------
# Spiking Unit
# ---------------------------------------------------------------------------

STDP_WINDOW_MS = 20


@dataclass
class SpikingUnit:
    """Leaky integrate-and-fire unit.

    Attributes:
        unit_id: Unique identifier.
        membrane_potential: Accumulated input; never left below reset after leak.
        threshold: Firing threshold.
        leak_rate: Amount subtracted from the potential every non-refractory step.
        reset_potential: Floor of the potential and its value after a spike.
        refractory_countdown: Steps left before the unit integrates again.
        refractory_cycles: Countdown length started by a spike.
        connections: Outgoing synapses, target unit id -> weight in [0, 1].
        last_spike_time: Wall-clock time of the most recent spike (None if never).
        learning_rate: STDP step size.
    """

    unit_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    membrane_potential: float = 0.0
    threshold: float = 5.0
    leak_rate: float = 75.0
    reset_potential: float = 0.0
    refractory_countdown: int = 0
    refractory_cycles: int = 3
    connections: Dict[str, float] = field(default_factory=dict)
    last_spike_time: Optional[float] = None
    learning_rate: float = 0.001

    @classmethod
    def from_config(cls, neuron: NeuronConfig) -> "SpikingUnit":
        return cls(
            membrane_potential=neuron.reset_potential,
            threshold=neuron.threshold,
            leak_rate=neuron.leak_rate,
            reset_potential=neuron.reset_potential,
            refractory_cycles=neuron.refractory_cycles,
            learning_rate=neuron.learning_rate,
        )

    @property
    def is_refractory(self) -> bool:
        return self.refractory_countdown > 0

    def apply_config(self, neuron: NeuronConfig) -> None:
        """Overwrite LIF parameters; potential, countdown and weights are kept."""
        self.threshold = neuron.threshold
        self.leak_rate = neuron.leak_rate
        self.reset_potential = neuron.reset_potential
        self.refractory_cycles = neuron.refractory_cycles
        self.learning_rate = neuron.learning_rate

    def connect(
        self,
        target_id: str,
        rng: Optional[np.random.Generator] = None,
        low: float = 0.01,
        high: float = 0.1,
    ) -> float:
        """Create an outgoing connection with a small random weight."""
        rng = rng if rng is not None else np.random.default_rng()
        weight = float(rng.uniform(low, high))
        self.connections[target_id] = weight
        return weight

    def apply_input(self, delta: float) -> None:
        """Add external stimulus; may push the potential past threshold."""
        self.membrane_potential += delta

    def receive_spike(self, event: SpikeEvent, weight: float) -> None:
        """Integrate a presynaptic spike unless refractory."""
        if self.refractory_countdown > 0:
            return
        self.membrane_potential += event.value * weight

    def step(self, now: Optional[float] = None) -> bool:
        """Advance one cycle: leak, threshold check, refractory bookkeeping.

        Returns:
            True if the unit fired this cycle.
        """
        if self.refractory_countdown > 0:
            self.refractory_countdown -= 1
            return False
        self.membrane_potential -= self.leak_rate
        if self.membrane_potential < self.reset_potential:
            self.membrane_potential = self.reset_potential
        if self.membrane_potential >= self.threshold:
            logger.debug("Unit %s fired", self.unit_id)
            self.membrane_potential = self.reset_potential
            self.refractory_countdown = self.refractory_cycles
            self.last_spike_time = now if now is not None else time.time()
            return True
        return False

    def learn(self, recent_events: Iterable[SpikeEvent]) -> None:
        """Spike-timing-dependent plasticity over a +/-20 ms window.

        dt = last fire time - presynaptic spike time, in whole milliseconds
        (truncated toward zero):
            0 < dt < 20    w += learning_rate / max(dt, 0.1)     (causal)
            -20 < dt < 0   w -= learning_rate / max(|dt|, 0.1)   (acausal)
        Weights are re-clamped to [0, 1] for every matching event.
        """
        if self.last_spike_time is None:
            return
        for ev in recent_events:
            weight = self.connections.get(ev.presynaptic_unit_id)
            if weight is None:
                continue
            dt_ms = int((self.last_spike_time - ev.timestamp) * 1000.0)
            if 0 < dt_ms < STDP_WINDOW_MS:
                weight += self.learning_rate / max(float(dt_ms), 0.1)
            elif -STDP_WINDOW_MS < dt_ms < 0:
                weight -= self.learning_rate / max(float(abs(dt_ms)), 0.1)
            self.connections[ev.presynaptic_unit_id] = min(max(weight, 0.0), 1.0)


def build_population(neuron: NeuronConfig, count: int) -> Dict[str, SpikingUnit]:
    """Create ``count`` fresh units keyed by id."""
    units: Dict[str, SpikingUnit] = {}
    for _ in range(count):
        unit = SpikingUnit.from_config(neuron)
        units[unit.unit_id] = unit
    return units


# ---------------------------------------------------------------------------
# Topic Network
# ---------------------------------------------------------------------------

@dataclass
class TopicOutput:
    """Result of one topic-network call.

    Attributes:
        network_id: The producing topic network.
        anomaly_ratio: 1 - pattern_ratio (0.0 for an empty population).
        pattern_ratio: Fraction of units that fired.
        fired: Number of units that fired.
        population: Number of units stepped.
    """

    network_id: str
    anomaly_ratio: float
    pattern_ratio: float
    fired: int = 0
    population: int = 0


class TopicNetwork:
    """Flat population of spiking units dedicated to one topic.

    Args:
        config: Configuration snapshot source.
        topic: Topic label; selects the keyword set once, at construction.
        network_id: Optional explicit id (auto-generated if None).
        units: Optional pre-built population (used when restoring).
    """

    def __init__(
        self,
        config: LobeConfig,
        topic: str = "General",
        network_id: Optional[str] = None,
        units: Optional[Dict[str, SpikingUnit]] = None,
    ) -> None:
        self.network_id = network_id or str(uuid.uuid4())
        self.topic = topic
        self.config = config.snapshot()
        if units is None:
            units = build_population(self.config.neuron, self.config.hierarchy.topic_neurons)
        self.units: Dict[str, SpikingUnit] = units
        self.topic_keywords: Set[str] = topic_keywords_for(topic)

    def __repr__(self) -> str:
        return (
            f"TopicNetwork(id={self.network_id!r}, topic={self.topic!r}, "
            f"units={len(self.units)})"
        )

    def reconfigure(self, config: LobeConfig) -> None:
        self.config = config.snapshot()
        for unit in self.units.values():
            unit.apply_config(self.config.neuron)

    def stimulus_for(self, text: str) -> float:
        """Input strength: length-based base plus a bonus per topic keyword."""
        matched = sum(1 for kw in extract_keywords(text) if kw in self.topic_keywords)
        base = len(text) * self.config.thresholds.topic_input_scale * self.config.neuron.activity_multiplier
        return base + matched * self.config.thresholds.keyword_bonus

    def process(self, event: EventLike) -> TopicOutput:
        """Drive every unit through one cycle and report firing ratios."""
        text = event_text(event)
        stimulus = self.stimulus_for(text)
        logger.debug(
            "TopicNetwork %s (%s): stimulus %.3f", self.network_id, self.topic, stimulus
        )

        fired = 0
        for unit in self.units.values():
            unit.apply_input(stimulus)
            if unit.step():
                fired += 1

        total = len(self.units)
        if total > 0:
            pattern_ratio = min(max(fired / total, 0.0), 1.0)
            anomaly_ratio = 1.0 - pattern_ratio
        else:
            pattern_ratio = 0.0
            anomaly_ratio = 0.0

        return TopicOutput(
            network_id=self.network_id,
            anomaly_ratio=anomaly_ratio,
            pattern_ratio=pattern_ratio,
            fired=fired,
            population=total,
        )


# ---------------------------------------------------------------------------
# Domain Network
# ---------------------------------------------------------------------------

@dataclass
class DomainOutput:
    """Aggregated insight from one domain network.

    Attributes:
        domain_id: The producing domain network.
        insight: Insight text followed by the supporting count and per-topic summaries.
        supporting_count: Topic networks whose pattern ratio beat the consensus threshold.
        avg_anomaly_ratio: Mean anomaly ratio across topic networks.
        avg_pattern_ratio: Mean pattern ratio across topic networks.
    """

    domain_id: str
    insight: str
    supporting_count: int
    avg_anomaly_ratio: float = 0.0
    avg_pattern_ratio: float = 0.0


def domain_insight(avg_anomaly: float, avg_pattern: float, threshold: float) -> str:
    """Pick one of four mutually exclusive insight templates."""
    if avg_anomaly > threshold and avg_pattern < 0.2:
        return (
            f"High semantic anomaly detected (Ratio: {avg_anomaly:.2f}). Indicates "
            "potential novel pattern or deviation from established data structures "
            "relevant to this domain."
        )
    if avg_pattern > threshold and avg_anomaly < 0.3:
        return (
            f"Strong semantic coherence observed (Pattern Ratio: {avg_pattern:.2f}). "
            "Data aligns well with established patterns within this domain, "
            "indicating high relevance and understanding."
        )
    if avg_pattern > 0.5 and avg_anomaly > 0.5:
        return (
            f"Mixed semantic signal (Pattern: {avg_pattern:.2f}, Anomaly: "
            f"{avg_anomaly:.2f}). Contains elements of known patterns but also "
            "significant novel or conflicting data. Requires deeper KSL synthesis."
        )
    return (
        f"Moderate semantic relevance detected (Anomaly: {avg_anomaly:.2f}, "
        f"Pattern: {avg_pattern:.2f}). Further contextual analysis at KSL level "
        "is recommended."
    )


class DomainNetwork:
    """Ordered collection of topic networks for one semantic domain.

    Args:
        config: Configuration snapshot source.
        topic: Topic given to every contained topic network.
        domain_id: Optional explicit id (auto-generated if None).
        topics: Optional pre-built topic networks (used when restoring).
    """

    def __init__(
        self,
        config: LobeConfig,
        topic: str = "General",
        domain_id: Optional[str] = None,
        topics: Optional[List[TopicNetwork]] = None,
    ) -> None:
        self.domain_id = domain_id or str(uuid.uuid4())
        self.config = config.snapshot()
        if topics is None:
            topics = [
                TopicNetwork(self.config, topic=topic)
                for _ in range(self.config.hierarchy.topics_per_domain)
            ]
        self.topics: List[TopicNetwork] = topics

    def __repr__(self) -> str:
        return f"DomainNetwork(id={self.domain_id!r}, topics={len(self.topics)})"

    def reconfigure(self, config: LobeConfig) -> None:
        self.config = config.snapshot()
        for topic in self.topics:
            topic.reconfigure(self.config)

    def process(self, event: EventLike) -> DomainOutput:
        """Run every topic network in order and summarise their ratios."""
        total_anomaly = 0.0
        total_pattern = 0.0
        supporting = 0
        summaries: List[str] = []
        consensus = self.config.thresholds.consensus_threshold

        for topic in self.topics:
            result = topic.process(event)
            total_anomaly += result.anomaly_ratio
            total_pattern += result.pattern_ratio
            summaries.append(
                f"BNN {result.network_id}: Anomaly {result.anomaly_ratio:.2f}, "
                f"Pattern {result.pattern_ratio:.2f}"
            )
            if result.pattern_ratio > consensus:
                supporting += 1

        count = len(self.topics)
        avg_anomaly = total_anomaly / count if count else 0.0
        avg_pattern = total_pattern / count if count else 0.0
        logger.debug(
            "DomainNetwork %s: avg anomaly %.2f, avg pattern %.2f",
            self.domain_id,
            avg_anomaly,
            avg_pattern,
        )

        threshold = self.config.thresholds.domain_threshold
        if avg_anomaly > threshold and avg_pattern < 0.2:
            logger.warning("DomainNetwork %s detected significant anomaly pattern", self.domain_id)
        insight = domain_insight(avg_anomaly, avg_pattern, threshold)

        return DomainOutput(
            domain_id=self.domain_id,
            insight=(
                f"{insight}\nSupporting BNNs: {supporting}/{count}. "
                f"BNN Analysis: [{'; '.join(summaries)}]"
            ),
            supporting_count=supporting,
            avg_anomaly_ratio=avg_anomaly,
            avg_pattern_ratio=avg_pattern,
        )
