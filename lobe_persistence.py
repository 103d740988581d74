"""
Lobe State Persistence: msgpack snapshots of the lobe hierarchy.

The snapshot holds everything learned or accumulated by the hierarchy: every
lobe's id, name and configuration, its domain networks, their topic networks
and every unit's full state.  Two things are deliberately left out:

    - the knowledge base, which is reloaded from its JSON files and attached
      with ``KnowledgeLobe.load_knowledge`` (``load_state(knowledge=...)``)
    - quantum pocket populations, which are rebuilt from their configuration
      under the saved pocket id

Layout::

    {
      "version": "0.1.0",
      "saved_at": <epoch seconds>,
      "lobes": [{"lobe_id", "name", "config",
                 "domains": [{"domain_id", "topics": [{"network_id",
                                                       "topic", "units"}]}]}],
      "pockets": [{"pocket_id", "config"}]
    }

Usage::

    from lobe_persistence import save_state, load_state
    save_state("~/.lobegraph/state/lobes.msgpack", lobes, pockets)
    lobes, pockets = load_state("~/.lobegraph/state/lobes.msgpack", knowledge=kb)
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import msgpack

from knowledge_base import KnowledgeBase
from knowledge_lobe import KnowledgeLobe
from lobe_config import LobeConfig
from lobe_foundation import DomainNetwork, SpikingUnit, TopicNetwork
from quantum_pocket import QuantumPocket

logger = logging.getLogger("lobegraph.persistence")

STATE_VERSION = "0.1.0"


class SnapshotError(ValueError):
    """Raised when a state file is corrupt or of an unsupported version."""


# ── Encoding ───────────────────────────────────────────────────────────


def _serialize_unit(unit: SpikingUnit) -> Dict[str, Any]:
    return {
        "unit_id": unit.unit_id,
        "membrane_potential": unit.membrane_potential,
        "threshold": unit.threshold,
        "leak_rate": unit.leak_rate,
        "reset_potential": unit.reset_potential,
        "refractory_countdown": unit.refractory_countdown,
        "refractory_cycles": unit.refractory_cycles,
        "connections": dict(unit.connections),
        "last_spike_time": unit.last_spike_time,
        "learning_rate": unit.learning_rate,
    }


def _serialize_topic(network: TopicNetwork) -> Dict[str, Any]:
    return {
        "network_id": network.network_id,
        "topic": network.topic,
        "units": [_serialize_unit(u) for u in network.units.values()],
    }


def _serialize_lobe(lobe: KnowledgeLobe) -> Dict[str, Any]:
    return {
        "lobe_id": lobe.lobe_id,
        "name": lobe.name,
        "config": lobe.config.to_dict(),
        "domains": [
            {
                "domain_id": d.domain_id,
                "topics": [_serialize_topic(t) for t in d.topics],
            }
            for d in lobe.domains
        ],
    }


def encode_state(
    lobes: Sequence[KnowledgeLobe],
    pockets: Sequence[QuantumPocket] = (),
) -> bytes:
    """Pack the hierarchy into msgpack bytes."""
    data = {
        "version": STATE_VERSION,
        "saved_at": time.time(),
        "lobes": [_serialize_lobe(l) for l in lobes],
        "pockets": [
            {"pocket_id": p.pocket_id, "config": p.config.to_dict()} for p in pockets
        ],
    }
    return msgpack.packb(data, use_bin_type=True)


# ── Decoding ───────────────────────────────────────────────────────────


def _deserialize_unit(data: Dict[str, Any]) -> SpikingUnit:
    return SpikingUnit(
        unit_id=data["unit_id"],
        membrane_potential=float(data["membrane_potential"]),
        threshold=float(data["threshold"]),
        leak_rate=float(data["leak_rate"]),
        reset_potential=float(data["reset_potential"]),
        refractory_countdown=int(data["refractory_countdown"]),
        refractory_cycles=int(data["refractory_cycles"]),
        connections={str(k): float(v) for k, v in data.get("connections", {}).items()},
        last_spike_time=data.get("last_spike_time"),
        learning_rate=float(data["learning_rate"]),
    )


def _deserialize_lobe(data: Dict[str, Any]) -> KnowledgeLobe:
    config = LobeConfig.from_dict(data.get("config", {}))
    domains: List[DomainNetwork] = []
    for d in data.get("domains", []):
        topics = []
        for t in d.get("topics", []):
            units = {}
            for u in t.get("units", []):
                unit = _deserialize_unit(u)
                units[unit.unit_id] = unit
            topics.append(
                TopicNetwork(config, topic=t["topic"], network_id=t["network_id"], units=units)
            )
        domains.append(DomainNetwork(config, domain_id=d["domain_id"], topics=topics))
    return KnowledgeLobe(data["name"], config, lobe_id=data["lobe_id"], domains=domains)


def decode_state(
    payload: bytes,
    knowledge: Optional[KnowledgeBase] = None,
) -> Tuple[List[KnowledgeLobe], List[QuantumPocket]]:
    """Rebuild lobes and pockets from msgpack bytes.

    Args:
        payload: Output of ``encode_state``.
        knowledge: Attached to every restored lobe when given; otherwise the
            lobes keep an empty knowledge base.

    Raises:
        SnapshotError: The payload is corrupt or has an unsupported version.
    """
    try:
        data = msgpack.unpackb(payload, raw=False)
    except (msgpack.exceptions.ExtraData, msgpack.exceptions.UnpackException, ValueError) as exc:
        raise SnapshotError(f"State payload is not valid msgpack: {exc}") from exc
    if not isinstance(data, dict):
        raise SnapshotError("State payload must be a map")
    version = data.get("version")
    if version != STATE_VERSION:
        raise SnapshotError(f"Unsupported state version: {version!r}")

    try:
        lobes = [_deserialize_lobe(l) for l in data.get("lobes", [])]
        pockets = [
            QuantumPocket.rebuild(LobeConfig.from_dict(p.get("config", {})), p["pocket_id"])
            for p in data.get("pockets", [])
        ]
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise SnapshotError(f"State payload is malformed: {exc}") from exc

    if knowledge is not None:
        for lobe in lobes:
            lobe.attach_knowledge(knowledge)
    return lobes, pockets


# ── Files ──────────────────────────────────────────────────────────────


def save_state(
    path: str,
    lobes: Sequence[KnowledgeLobe],
    pockets: Sequence[QuantumPocket] = (),
) -> Path:
    """Write the snapshot atomically (temp file + ``os.replace``)."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = encode_state(lobes, pockets)

    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=target.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp_name, target)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(
        "State saved: %d lobes, %d pockets to %s (%d bytes)",
        len(lobes),
        len(pockets),
        target,
        len(payload),
    )
    return target


def load_state(
    path: str,
    knowledge: Optional[KnowledgeBase] = None,
) -> Tuple[List[KnowledgeLobe], List[QuantumPocket]]:
    """Read a snapshot written by ``save_state``.

    Raises:
        FileNotFoundError: No state file at ``path``.
        SnapshotError: The file is corrupt or incompatible.
    """
    target = Path(path).expanduser()
    with open(target, "rb") as f:
        payload = f.read()
    lobes, pockets = decode_state(payload, knowledge=knowledge)
    logger.info("State restored: %d lobes, %d pockets from %s", len(lobes), len(pockets), target)
    return lobes, pockets
