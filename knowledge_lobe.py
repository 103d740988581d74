"""
Knowledge Lobe: top of the scoring hierarchy.

A lobe owns an ordered list of domain networks and a knowledge base.  Each
event is scored by every domain network; the collected insights and the
event text are then handed to the synthesis cascade (see ``synthesis.py``)
which produces the lobe's conclusion.

The domain networks are persisted state.  The knowledge base is not: it is
attached with ``load_knowledge`` after construction or restore.

Every topic network under a lobe takes the lobe's name as its topic, so the
``TOPIC_KEYWORDS`` set for that name adds its keyword bonus to the stimulus.
A lobe named outside that table (including any "General" topic) gets no
bonus.  This departs from a single "General" topic for every network: lobes
whose subject matches the event are more likely to speak.

Usage::

    from knowledge_lobe import KnowledgeLobe
    lobe = KnowledgeLobe("Ethics & Philosophy", cfg)
    lobe.load_knowledge(kb.philosophies, kb.profile, kb.key_projects,
                        kb.cosmology, kb.bio_hybrid)
    out = lobe.process("What is the core philosophy of Unity?")
    print(out.conclusion)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from knowledge_base import (
    BioHybridData,
    CorePhilosophy,
    CosmologyData,
    KeyProject,
    KnowledgeBase,
    UserProfile,
)
from lobe_config import LobeConfig
from lobe_foundation import DomainNetwork, EventLike, event_text
from synthesis import synthesize

logger = logging.getLogger("lobegraph.lobe")


@dataclass
class LobeOutput:
    """Conclusion produced by one lobe for one event.

    Attributes:
        lobe_id: The producing lobe.
        lobe_name: Human-readable lobe name.
        conclusion: Synthesized text ending in an ``Analysis Trace:`` line.
        contributing_insights: Supporting topic networks summed over domains.
        branch: Cascade rule that produced the conclusion, or "generic".
    """

    lobe_id: str
    lobe_name: str
    conclusion: str
    contributing_insights: int
    branch: str = "generic"


class KnowledgeLobe:
    """Named collection of domain networks plus a knowledge base."""

    def __init__(
        self,
        name: str,
        config: LobeConfig,
        lobe_id: Optional[str] = None,
        domains: Optional[List[DomainNetwork]] = None,
    ) -> None:
        self.lobe_id = lobe_id or str(uuid.uuid4())
        self.name = name
        self.config = config.snapshot()
        if domains is None:
            domains = [
                DomainNetwork(self.config, topic=name)
                for _ in range(self.config.hierarchy.domains_per_lobe)
            ]
        self.domains: List[DomainNetwork] = domains
        self.knowledge: KnowledgeBase = KnowledgeBase.empty()

    def __repr__(self) -> str:
        return (
            f"KnowledgeLobe(id={self.lobe_id!r}, name={self.name!r}, "
            f"domains={len(self.domains)})"
        )

    def load_knowledge(
        self,
        philosophies: List[CorePhilosophy],
        profile: UserProfile,
        key_projects: List[KeyProject],
        cosmology: CosmologyData,
        bio_hybrid: BioHybridData,
    ) -> None:
        """Attach reference data used by the synthesis cascade."""
        self.knowledge = KnowledgeBase(
            philosophies=list(philosophies),
            profile=profile,
            key_projects=list(key_projects),
            cosmology=cosmology,
            bio_hybrid=bio_hybrid,
        )
        logger.info(
            "KSL '%s': knowledge loaded (%d philosophies, %d key projects)",
            self.name,
            len(self.knowledge.philosophies),
            len(self.knowledge.key_projects),
        )

    def attach_knowledge(self, knowledge: KnowledgeBase) -> None:
        """Shortcut for ``load_knowledge`` with a whole ``KnowledgeBase``."""
        self.load_knowledge(
            knowledge.philosophies,
            knowledge.profile,
            knowledge.key_projects,
            knowledge.cosmology,
            knowledge.bio_hybrid,
        )

    def reconfigure(self, config: LobeConfig) -> None:
        self.config = config.snapshot()
        for domain in self.domains:
            domain.reconfigure(self.config)

    def process(self, event: EventLike) -> LobeOutput:
        """Score the event through every domain, then synthesize a conclusion."""
        text = event_text(event)
        insights: List[str] = []
        supporting = 0
        for domain in self.domains:
            result = domain.process(event)
            supporting += result.supporting_count
            insights.append(result.insight)

        logger.info(
            "KSL '%s' received %d DSN insights, %d supporting BNNs",
            self.name,
            len(insights),
            supporting,
        )
        outcome = synthesize(self.name, text, self.knowledge, insights)
        return LobeOutput(
            lobe_id=self.lobe_id,
            lobe_name=self.name,
            conclusion=outcome.conclusion,
            contributing_insights=supporting,
            branch=outcome.branch,
        )
