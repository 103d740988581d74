"""Simple usage example for LobeGraph.

Builds a small lobe, attaches a tiny knowledge base, scores a few inputs and
runs a quantum pocket over the same text.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from knowledge_base import CorePhilosophy, KeyProject, KnowledgeBase, UserProfile
from knowledge_lobe import KnowledgeLobe
from lobe_config import load_lobe_config
from quantum_pocket import QuantumPocket


def main():
    # Small hierarchy so the demo runs instantly
    cfg = load_lobe_config({
        "hierarchy": {"domains_per_lobe": 3, "topics_per_domain": 4, "topic_neurons": 8},
        "neuron": {"threshold": 1.0, "leak_rate": 0.5},
        "pocket": {"processing_cycles": 20, "seed": 7},
    })

    kb = KnowledgeBase(
        philosophies=[
            CorePhilosophy(
                name="All is One and One is All",
                definition="Every being is part of one whole. Separation is an illusion.",
            )
        ],
        profile=UserProfile(
            name="Ada",
            core_mission="the Betterment of All",
            strategic_goals=["Grow Project Help"],
        ),
        key_projects=[
            KeyProject(
                name="Project Help",
                core_purpose="Connect volunteers with families in need",
                mission_alignment="Turning shared resources into shared progress",
            )
        ],
    )

    lobe = KnowledgeLobe("Ethics & Philosophy", cfg)
    lobe.attach_knowledge(kb)

    inputs = [
        "Synthesize a proposal for Project Help based on my profile.",
        "Is separation real, according to my philosophy?",
        "Weather report: light rain",
    ]
    for text in inputs:
        out = lobe.process(text)
        print(f"=== {text} ===")
        print(f"branch: {out.branch}, supporting networks: {out.contributing_insights}")
        print(out.conclusion)
        print()

    print("=== Quantum Pocket ===")
    pocket = QuantumPocket(cfg)
    snap = pocket.process(inputs[0])
    print(
        f"fires: {snap.total_fires}, pattern: {snap.pattern_detected}, "
        f"anomaly: {snap.anomaly_detected}"
    )
    print(pocket.telemetry())


if __name__ == "__main__":
    main()
