"""
LobeGraph Runtime: the event loop that drives the lobe hierarchy.

On startup the runtime restores the hierarchy from the state file when one
exists (re-applying the current configuration and re-attaching the knowledge
base), or builds fresh lobes named from ``LOBE_CATALOGUE`` and seeds them
with the knowledge base.  It then consumes ``SensoryEvent`` objects from a
bounded queue on a daemon thread:

    - every text event is scored by every lobe, in order
    - each lobe with at least one supporting topic network speaks
    - quantum pockets run after the lobes and their snapshot is logged
    - each empty wait of ``tick_interval`` seconds is a tick; the loop ends
      after ``max_ticks`` ticks (0 means run until stopped)

The state is saved whenever the loop ends, however it ends.

Usage::

    from lobe_runtime import LobeRuntime
    runtime = LobeRuntime(cfg, knowledge=kb, state_path="~/.lobegraph/state/lobes.msgpack")
    runtime.start()
    runtime.submit("Synthesize a proposal for Project Help based on my profile.")
    ...
    runtime.stop()
    for msg in runtime.drain_outputs():
        print(msg.speaker, msg.text)
"""

from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from knowledge_base import KnowledgeBase, KnowledgeBaseError, load_knowledge_base
from knowledge_lobe import KnowledgeLobe
from lobe_config import ConfigError, LobeConfig, load_lobe_config
from lobe_foundation import EventLike, SensoryEvent
from lobe_monitoring import LobeEventLogger, health_context
from lobe_paths import get_state_path, write_conf
from lobe_persistence import SnapshotError, load_state, save_state
from quantum_pocket import QuantumPocket

logger = logging.getLogger("lobegraph.runtime")

LOBE_CATALOGUE = [
    "Ethics & Philosophy",
    "Mathematics & Logic",
    "Physics & Cosmology",
    "Biology & Life Sciences",
    "Chemistry & Materials",
    "History & Sociology",
    "Economics & Finance",
    "Art & Creativity",
    "Language & Communication",
    "Technology & Engineering",
    "Psychology & Consciousness",
    "Geopolitics & Governance",
]

PHILOSOPHY_LOBE = "Ethics & Philosophy"
PROFILE_LOBE = "Psychology & Consciousness"

_STOP = object()


@dataclass
class SpokenMessage:
    """Outward message produced by a lobe."""

    speaker: str
    text: str


def lobe_name_for(index: int) -> str:
    if index < len(LOBE_CATALOGUE):
        return LOBE_CATALOGUE[index]
    return f"Lobe {index + 1}"


class LobeRuntime:
    """Owns the lobes and pockets and runs the input loop.

    Args:
        config: Configuration for every component.
        knowledge: Knowledge base attached to every lobe (empty if None).
        state_path: Snapshot file to restore from and save to.  ``None``
            disables persistence.
        on_message: Optional callback invoked with every ``SpokenMessage``
            as it is produced.
        event_logger: Optional ``LobeEventLogger`` for structured events.
    """

    def __init__(
        self,
        config: LobeConfig,
        knowledge: Optional[KnowledgeBase] = None,
        state_path: Optional[str] = None,
        on_message: Optional[Callable[[SpokenMessage], None]] = None,
        event_logger: Optional[LobeEventLogger] = None,
    ) -> None:
        self.config = config.snapshot()
        self.knowledge = knowledge if knowledge is not None else KnowledgeBase.empty()
        self.state_path = Path(state_path).expanduser() if state_path else None
        self._on_message = on_message
        self._event_logger = event_logger

        self._queue: queue.Queue[Any] = queue.Queue(maxsize=self.config.runtime.queue_size)
        self._outputs: queue.Queue[SpokenMessage] = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._finished = False

        # Stats
        self._events_processed = 0
        self._events_skipped = 0
        self._ticks = 0

        self.restored = False
        self.lobes, self.pockets = self._bootstrap()
        logger.info(
            "Cognitive architecture is online. %d KSLs, %d quantum pockets active.",
            len(self.lobes),
            len(self.pockets),
        )

    # ── Startup ────────────────────────────────────────────────────────

    def _bootstrap(self) -> Tuple[List[KnowledgeLobe], List[QuantumPocket]]:
        if self.state_path is not None and self.state_path.exists():
            lobes, pockets = load_state(str(self.state_path), knowledge=self.knowledge)
            for lobe in lobes:
                lobe.reconfigure(self.config)
            for pocket in pockets:
                pocket.reconfigure(self.config)
            self.restored = True
        else:
            logger.info("No state file found. Initializing new lobes from scratch.")
            lobes = [
                KnowledgeLobe(lobe_name_for(i), self.config)
                for i in range(self.config.hierarchy.lobe_count)
            ]
            for lobe in lobes:
                lobe.attach_knowledge(self.knowledge)
            pockets = []
            if self.config.runtime.seed_on_fresh_start:
                self._seed(lobes)

        missing = self.config.hierarchy.pocket_count - len(pockets)
        for _ in range(max(missing, 0)):
            pockets.append(QuantumPocket(self.config))
        return lobes, pockets

    def _seed(self, lobes: List[KnowledgeLobe]) -> None:
        """Feed the knowledge base through the matching lobes once."""
        by_name: Dict[str, KnowledgeLobe] = {l.name: l for l in lobes}

        philosophy_lobe = by_name.get(PHILOSOPHY_LOBE)
        if philosophy_lobe is not None:
            for p in self.knowledge.philosophies:
                philosophy_lobe.process(
                    SensoryEvent(source="KB-Philosophy", content=f"{p.name}: {p.definition}")
                )
        logger.info("Seeded %d core philosophies.", len(self.knowledge.philosophies))

        profile = self.knowledge.profile
        profile_lobe = by_name.get(PROFILE_LOBE)
        if profile_lobe is not None and not profile.is_empty:
            profile_lobe.process(
                SensoryEvent(
                    source="KB-ArchitectProfile",
                    content=f"Analysis: Role='{profile.role}', Aspirations='{profile.aspirations}'",
                    metadata={"profile_name": profile.name},
                )
            )
            logger.info("Seeded user profile for: %s.", profile.name)

    # ── Public API ─────────────────────────────────────────────────────

    def submit(self, event: EventLike) -> bool:
        """Queue an event (or bare text) for the loop.

        Returns:
            False if the queue is full or the loop has already ended, in
            which case the event was dropped.
        """
        if isinstance(event, str):
            event = SensoryEvent.from_text(event)
        if self._finished:
            logger.warning("Loop has ended, dropping event %s", event.event_id)
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning("Input queue full, dropping event %s", event.event_id)
            return False
        return True

    def start(self) -> None:
        """Run the loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._finished = False
        self._thread = threading.Thread(target=self.run, daemon=True, name="lobegraph-runtime")
        self._thread.start()

    def stop(self, drain: bool = False, timeout: float = 30.0) -> None:
        """End the loop.

        Args:
            drain: Let queued events finish before the loop ends.
            timeout: Seconds to wait for the loop thread.
        """
        if drain:
            # Only a live loop consumes the sentinel.
            while self.is_alive:
                try:
                    self._queue.put(_STOP, timeout=self.config.runtime.tick_interval)
                    break
                except queue.Full:
                    continue
        else:
            self._stop_event.set()
            try:
                self._queue.put_nowait(_STOP)
            except queue.Full:
                logger.debug("Input queue full; stop flag alone ends the loop")
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def is_alive(self) -> bool:
        """True while the loop thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Blocking loop; saves state on exit."""
        rcfg = self.config.runtime
        self._running = True
        logger.info(
            "Entering main loop (tick %.3fs, max ticks %s)",
            rcfg.tick_interval,
            rcfg.max_ticks or "unbounded",
        )
        try:
            while not self._stop_event.is_set():
                try:
                    item = self._queue.get(timeout=rcfg.tick_interval)
                except queue.Empty:
                    self._ticks += 1
                    if rcfg.max_ticks and self._ticks >= rcfg.max_ticks:
                        logger.info("Reached configured tick limit (%d). Ending loop.", rcfg.max_ticks)
                        break
                    continue
                if item is _STOP:
                    logger.info("Stop requested. Ending loop.")
                    break
                self.handle_event(item)
        finally:
            self._running = False
            self._finished = True
            self.save()

    def handle_event(self, event: SensoryEvent) -> List[SpokenMessage]:
        """Score one event through every lobe, then every pocket."""
        if event.data_type != "Text":
            self._events_skipped += 1
            logger.info("Unsupported sensory input type %r received. Skipping.", event.data_type)
            return []

        messages: List[SpokenMessage] = []
        for lobe in self.lobes:
            out = lobe.process(event)
            if out.contributing_insights > 0:
                msg = SpokenMessage(
                    speaker=lobe.name,
                    text=f"From KSL '{lobe.name}': {out.conclusion}",
                )
                messages.append(msg)
                self._emit(msg)
            if self._event_logger is not None:
                self._event_logger.log_event(
                    "lobe_output",
                    {
                        "event_id": event.event_id,
                        "lobe": lobe.name,
                        "branch": out.branch,
                        "contributing_insights": out.contributing_insights,
                    },
                )

        for pocket in self.pockets:
            snap = pocket.process(event)
            logger.info(
                "QP %s: pattern=%s anomaly=%s fires=%d skipped=%d",
                snap.pocket_id,
                snap.pattern_detected,
                snap.anomaly_detected,
                snap.total_fires,
                snap.cycles_skipped,
            )
            if self._event_logger is not None:
                self._event_logger.log_event("pocket_snapshot", vars(snap))

        self._events_processed += 1
        return messages

    def drain_outputs(self) -> List[SpokenMessage]:
        """Return and clear every message produced so far."""
        out: List[SpokenMessage] = []
        while True:
            try:
                out.append(self._outputs.get_nowait())
            except queue.Empty:
                return out

    def save(self) -> Optional[Path]:
        if self.state_path is None:
            return None
        return save_state(str(self.state_path), self.lobes, self.pockets)

    def stats(self) -> Dict[str, Any]:
        return {
            "lobes": len(self.lobes),
            "domain_networks": sum(len(l.domains) for l in self.lobes),
            "topic_networks": sum(len(d.topics) for l in self.lobes for d in l.domains),
            "pockets": len(self.pockets),
            "events_processed": self._events_processed,
            "events_skipped": self._events_skipped,
            "ticks": self._ticks,
            "queue_depth": self._queue.qsize(),
            "is_running": self._running,
            "restored": self.restored,
        }

    # ── Internal ───────────────────────────────────────────────────────

    def _emit(self, msg: SpokenMessage) -> None:
        self._outputs.put(msg)
        if self._on_message is not None:
            self._on_message(msg)


# ── CLI ────────────────────────────────────────────────────────────────


def _print_message(msg: SpokenMessage) -> None:
    print(f"=== {msg.speaker} SPEAKS ===\n{msg.text}\n", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run the LobeGraph hierarchy over lines read from stdin"
    )
    parser.add_argument("--config", type=str, default=None, help="Path to a JSON config file")
    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="Snapshot file (default: paths.state_file or ~/.lobegraph/state/lobes.msgpack)",
    )
    parser.add_argument(
        "--home",
        type=str,
        default=None,
        help="Record PATH as the LobeGraph home in ~/.lobegraph.conf before starting",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.home:
        conf = write_conf(args.home)
        logger.info("LobeGraph home set to %s (%s)", args.home, conf)

    try:
        cfg = load_lobe_config(config_path=args.config)
        knowledge = load_knowledge_base(cfg.paths)
        state_path = args.state or cfg.paths.state_file or str(get_state_path())
        event_logger = LobeEventLogger(cfg) if cfg.monitoring.enabled else None
        runtime = LobeRuntime(
            cfg,
            knowledge=knowledge,
            state_path=state_path,
            on_message=_print_message,
            event_logger=event_logger,
        )
    except (ConfigError, KnowledgeBaseError, SnapshotError) as exc:
        logger.error("Startup failed: %s", exc)
        return 1

    runtime.start()
    try:
        for line in sys.stdin:
            if not runtime.is_alive:
                logger.warning("Main loop has ended; ignoring remaining input.")
                break
            text = line.strip()
            if text:
                runtime.submit(text)
        runtime.stop(drain=True)
    except KeyboardInterrupt:
        logger.info("Interrupted. Initiating graceful shutdown...")
        runtime.stop()
    finally:
        if event_logger is not None:
            event_logger.close()

    logger.info(health_context(runtime))
    return 0


if __name__ == "__main__":
    sys.exit(main())
