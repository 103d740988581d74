"""
LobeGraph Configuration: Centralized configuration for the scoring hierarchy.

Provides a single ``LobeConfig`` dataclass that holds every tuneable parameter
of the hierarchy (population sizes, LIF parameters, thresholds, quantum pocket
simulation, file locations, runtime loop and monitoring).  Configuration can be
loaded from a dict of overrides, a JSON file, or left at defaults.

Usage::

    from lobe_config import LobeConfig, load_lobe_config

    # Defaults
    cfg = load_lobe_config()

    # With overrides
    cfg = load_lobe_config({"neuron": {"threshold": 2.5}})

    # From JSON file
    cfg = load_lobe_config(config_path="~/.lobegraph/config.json")

Unlike the runtime, configuration loading is not forgiving: a file that is
named but missing or malformed raises ``ConfigError``.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from lobe_paths import get_data_dir

logger = logging.getLogger("lobegraph.config")

SECTIONS = (
    "hierarchy",
    "neuron",
    "thresholds",
    "pocket",
    "paths",
    "runtime",
    "monitoring",
)


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded or is invalid."""


# ── Section dataclasses ────────────────────────────────────────────────


@dataclass
class HierarchyConfig:
    """Population sizes at every level of the hierarchy."""

    lobe_count: int = 12
    domains_per_lobe: int = 36
    topics_per_domain: int = 18
    topic_neurons: int = 21
    pocket_count: int = 1
    pocket_neurons: int = 21


@dataclass
class NeuronConfig:
    """LIF parameters copied into every spiking unit."""

    threshold: float = 5.0
    leak_rate: float = 75.0
    reset_potential: float = 0.0
    refractory_cycles: int = 3
    learning_rate: float = 0.001
    activity_multiplier: float = 5.0
    weight_low: float = 0.01
    weight_high: float = 0.1


@dataclass
class ThresholdConfig:
    """Consensus and insight thresholds used by topic and domain networks."""

    domain_threshold: float = 0.75
    consensus_threshold: float = 0.65
    topic_input_scale: float = 0.01
    keyword_bonus: float = 0.1


@dataclass
class PocketConfig:
    """Multi-cycle simulation parameters for quantum pockets."""

    processing_cycles: int = 333
    pocket_input_scale: float = 0.1
    spike_value: float = 1.0
    pattern_fraction: float = 0.25
    anomaly_fraction: float = 0.5
    lock_timeout: float = 5.0
    seed: Optional[int] = None


@dataclass
class PathsConfig:
    """Knowledge base file locations and the persisted state file.

    An empty ``data_root`` resolves to ``<lobegraph home>/data``; an empty
    ``state_file`` to ``<lobegraph home>/state/lobes.msgpack``.
    """

    data_root: str = ""
    philosophies_file: str = "core_philosophies.json"
    profile_file: str = "user_profile.json"
    key_projects_file: str = "key_projects.json"
    cosmology_file: str = "cosmology_data.json"
    bio_hybrid_file: str = "bio_hybrid_data.json"
    state_file: str = ""

    def data_path(self, name: str) -> Path:
        root = Path(self.data_root).expanduser() if self.data_root else get_data_dir()
        return root / name


@dataclass
class RuntimeConfig:
    """Event loop behaviour."""

    tick_interval: float = 0.05
    max_ticks: int = 333
    queue_size: int = 128
    seed_on_fresh_start: bool = True


@dataclass
class MonitoringConfig:
    """Structured event log settings."""

    log_dir: str = "~/.lobegraph/logs/"
    max_log_size_mb: int = 10
    backup_count: int = 5
    enabled: bool = False


# ── Top-level config ───────────────────────────────────────────────────


@dataclass
class LobeConfig:
    """Top-level LobeGraph configuration.

    Groups all tunables into sections.  Use ``load_lobe_config()`` to create
    an instance with user overrides applied.  Components keep their own copy
    (see ``snapshot()``) so a later ``reconfigure`` replaces it wholesale.
    """

    hierarchy: HierarchyConfig = field(default_factory=HierarchyConfig)
    neuron: NeuronConfig = field(default_factory=NeuronConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    pocket: PocketConfig = field(default_factory=PocketConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def snapshot(self) -> "LobeConfig":
        """Independent copy for a component to own."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LobeConfig":
        """Rebuild from ``to_dict()`` output; missing keys keep defaults."""
        cfg = cls()
        _apply_sections(cfg, data or {}, source="dict")
        return cfg


# ── Factory ────────────────────────────────────────────────────────────


def _apply_overrides(obj: Any, overrides: Dict[str, Any], section: str) -> None:
    """Apply a dict of overrides to a dataclass instance (in-place)."""
    if not isinstance(overrides, dict):
        raise ConfigError(f"Section '{section}' must be an object")
    known = {f.name for f in fields(obj)}
    for key, value in overrides.items():
        if key in known:
            setattr(obj, key, value)
        else:
            logger.warning("Ignoring unknown config key %s.%s", section, key)


def _apply_sections(cfg: LobeConfig, data: Dict[str, Any], source: str) -> None:
    for key in data:
        if key not in SECTIONS:
            logger.warning("Ignoring unknown config section '%s' from %s", key, source)
    for section in SECTIONS:
        if section in data:
            _apply_overrides(getattr(cfg, section), data[section], section)


def _require_count(value: Any, name: str) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"{name} must be >= 0")


def validate_config(cfg: LobeConfig) -> None:
    """Reject values the hierarchy cannot run with."""
    counts = [
        ("hierarchy", name)
        for name in (
            "lobe_count",
            "domains_per_lobe",
            "topics_per_domain",
            "topic_neurons",
            "pocket_count",
            "pocket_neurons",
        )
    ]
    counts += [
        ("neuron", "refractory_cycles"),
        ("pocket", "processing_cycles"),
        ("runtime", "max_ticks"),
        ("runtime", "queue_size"),
    ]
    for section, name in counts:
        _require_count(getattr(getattr(cfg, section), name), f"{section}.{name}")
    if not 0.0 <= cfg.neuron.weight_low <= cfg.neuron.weight_high <= 1.0:
        raise ConfigError("neuron weight band must satisfy 0 <= low <= high <= 1")
    if cfg.pocket.lock_timeout < 0:
        raise ConfigError("pocket.lock_timeout must be >= 0")
    if cfg.runtime.tick_interval <= 0:
        raise ConfigError("runtime.tick_interval must be > 0")


def load_lobe_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[str] = None,
) -> LobeConfig:
    """Create a ``LobeConfig`` with defaults, optionally overridden.

    Override precedence (highest wins):
        1. ``overrides`` dict argument
        2. ``config_path`` JSON file
        3. Built-in defaults

    Args:
        overrides: Dict keyed by section name whose values are dicts of
            field→value pairs.
        config_path: Path to a JSON file with the same structure as
            ``overrides``.

    Returns:
        Fully populated, validated ``LobeConfig``.

    Raises:
        ConfigError: The file is missing or unreadable, or a value is invalid.
    """
    cfg = LobeConfig()

    # Layer 1: JSON file
    if config_path is not None:
        p = Path(config_path).expanduser()
        try:
            with open(p) as f:
                file_data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to load config from {p}: {exc}") from exc
        if not isinstance(file_data, dict):
            raise ConfigError(f"Config file {p} must contain a JSON object")
        _apply_sections(cfg, file_data, source=str(p))
        logger.info("Configuration loaded from %s", p)

    # Layer 2: dict overrides (win over file)
    if overrides is not None:
        _apply_sections(cfg, overrides, source="overrides")

    validate_config(cfg)
    return cfg
