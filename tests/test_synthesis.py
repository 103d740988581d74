"""Tests for the lobe synthesis cascade."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from knowledge_base import (
    BioHybridData,
    CorePhilosophy,
    CosmologyData,
    KeyProject,
    KnowledgeBase,
    UserProfile,
)
from lobe_foundation import domain_insight
from synthesis import RULES, SynthesisRule, recover_ratio, synthesize


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def unity():
    return CorePhilosophy(
        name="Unity",
        definition="All beings share one peace. It is eternal.",
        framework_integration="Guides every decision.",
    )


@pytest.fixture
def profile():
    return UserProfile(
        name="Ada",
        role="Founder",
        core_mission="Betterment of All",
        strategic_goals=["Launch Project Help worldwide"],
        aspirations="A fairer world",
    )


@pytest.fixture
def projects():
    return [
        KeyProject(
            name="Project Help",
            core_purpose="Provide Aid To Communities",
            mission_alignment="Uplifting Families",
        ),
        KeyProject(name="The Ransom Project", core_purpose="Fund Fresh Starts"),
        KeyProject(name="Royalty Investment", operational_link=["A", "B", "C"]),
    ]


@pytest.fixture
def cosmology():
    return CosmologyData(
        cosmology={"origin": {"primordial_state": "The Void", "first_motion": "Thought"}},
        ordered_placement_of_beings={
            "malevolent_entities": [{"name": "Anunnaki", "role": "separator"}],
            "benevolent_foundational_entities": [
                {"name": "Lucifer", "concept": "Potential", "nature": "Stillness"}
            ],
        },
    )


@pytest.fixture
def bio_hybrid():
    return BioHybridData(
        vision={"designation": "Synergists"},
        seven_core_bio_hybrid_concepts={
            "humanoid_bio_hybrids": [{"name": "Elf (Synergy Naamah Islam)", "type": "Companion"}]
        },
        biological_regenerative_functions={
            "cellular_regeneration_nanodocs": {"mechanism": "repair"}
        },
    )


MIXED_INSIGHTS = [
    domain_insight(0.4, 0.6, 0.75),  # Moderate: Anomaly parses, Pattern does not
    domain_insight(0.6, 0.6, 0.75),  # Mixed: Pattern parses, Anomaly does not
]


# ── Philosophy ────────────────────────────────────────────────────────


class TestPhilosophy:
    """The core philosophy rule."""

    def test_matching_philosophy(self, unity):
        """A keyword match quotes the first sentence of the definition."""
        kb = KnowledgeBase(philosophies=[unity])
        out = synthesize("Ethics & Philosophy", "What does my philosophy say about peace?", kb, [])
        assert out.branch == "philosophy"
        assert "Identified relevance to Core Philosophy: 'Unity'." in out.trace
        assert out.conclusion == (
            "My internal processing resonates with the 'Unity' philosophy. "
            "It states: 'All beings share one peace'.\n"
            "Analysis Trace: Identified relevance to Core Philosophy: 'Unity'."
        )

    def test_keyword_alone_engages_branch(self, unity):
        kb = KnowledgeBase(philosophies=[unity])
        out = synthesize("L", "Is unity possible?", kb, [])
        assert out.branch == "philosophy"

    def test_general_fallback(self, unity):
        """A philosophy mention without a match gives the general context."""
        kb = KnowledgeBase(philosophies=[unity])
        out = synthesize("L", "Tell me about a principle", kb, [])
        assert out.branch == "philosophy"
        assert out.conclusion.startswith(
            "My core philosophical principles, such as 'All is One and One is All'"
        )
        assert out.trace == ["General philosophical context engaged."]

    def test_multiple_matches_in_order(self, unity):
        """Every matching philosophy contributes, in file order."""
        second = CorePhilosophy(name="Balance", definition="Peace needs balance.")
        kb = KnowledgeBase(philosophies=[unity, second])
        out = synthesize("L", "peace", kb, [])
        assert out.trace == [
            "Identified relevance to Core Philosophy: 'Unity'.",
            "Identified relevance to Core Philosophy: 'Balance'.",
        ]
        assert " My internal processing resonates with the 'Balance'" in out.conclusion


# ── Profile ───────────────────────────────────────────────────────────


class TestProfile:
    """The architect profile rule and its project cross-references."""

    def test_project_help(self, profile, projects):
        """Project Help is cross-referenced after the mission statement."""
        kb = KnowledgeBase(profile=profile, key_projects=projects)
        out = synthesize(
            "L", "Synthesize a proposal for Project Help based on my profile.", kb, []
        )
        assert out.branch == "profile"
        assert out.conclusion == (
            "Architect, your inquiry resonates with my core understanding of your "
            "directives. Your primary mission is: Betterment of All. My purpose is "
            "aligned with your vision for the 'Betterment of All'. "
            "Specifically, Project Help aims to provide aid to communities. This "
            "directly supports 'Betterment of All' by uplifting families.\n"
            "Analysis Trace: Aligned with Architect's Profile & Core Mission. | "
            "Cross-referenced with Key Project: Project Help."
        )

    def test_ransom_project(self, profile, projects):
        kb = KnowledgeBase(profile=profile, key_projects=projects)
        out = synthesize("L", "Architect, update the ransom project", kb, [])
        assert "The Ransom Project seeks to fund fresh starts." in out.conclusion
        assert out.trace[-1] == "Cross-referenced with Key Project: The Ransom Project."

    def test_royalty_investment_counts_subsidiaries(self, profile, projects):
        """Operational links are counted as subsidiaries."""
        kb = KnowledgeBase(profile=profile, key_projects=projects)
        out = synthesize("L", "Architect: status of royalty investment?", kb, [])
        assert "encompassing 3 subsidiaries to enable" in out.conclusion

    def test_royalty_investment_without_links(self, profile):
        kb = KnowledgeBase(profile=profile, key_projects=[KeyProject(name="Royalty Investment")])
        out = synthesize("L", "Architect: status of royalty investment?", kb, [])
        assert "encompassing various projects to enable" in out.conclusion

    def test_only_first_project_phrase(self, profile, projects):
        """Only the first matching project phrase is used."""
        kb = KnowledgeBase(profile=profile, key_projects=projects)
        out = synthesize("L", "your mission: project help and ransom project", kb, [])
        assert "Project Help aims to" in out.conclusion
        assert "Ransom Project seeks" not in out.conclusion

    def test_profile_wins_over_philosophy(self, profile, unity):
        """The profile rule is checked before philosophies."""
        kb = KnowledgeBase(philosophies=[unity], profile=profile)
        out = synthesize("L", "Architect, what is your philosophy of peace?", kb, [])
        assert out.branch == "profile"
        assert "Unity" not in out.conclusion


# ── Cosmology ─────────────────────────────────────────────────────────


class TestCosmology:
    """The cosmology of actuality rule."""

    def test_origin_anunnaki_lucifer(self, cosmology):
        """Origin, Anunnaki and Lucifer fragments appear in order."""
        kb = KnowledgeBase(cosmology=cosmology)
        out = synthesize("L", "Tell me about the anunnaki and lucifer in actuality", kb, [])
        assert out.branch == "cosmology"
        assert out.trace == [
            "Engaging Cosmology of Actuality knowledge base.",
            "Specific reference to Anunnaki.",
            "Specific reference to benevolent Lucifer.",
        ]
        assert out.conclusion.startswith(
            "The Cosmology of Actuality defines existence's origin from 'The Void', "
            "initiated by the first motion: 'Thought'."
        )
        assert "'Potential' and 'Stillness', representing the principle of Retraction." in out.conclusion

    def test_origin_defaults(self):
        kb = KnowledgeBase(cosmology=CosmologyData(cosmology={"origin": {}}))
        out = synthesize("L", "cosmology", kb, [])
        # An empty origin map contributes nothing
        assert out.branch == "generic"

    def test_trace_only_falls_back_to_generic(self):
        """A rule that adds only trace notes keeps them on the generic text."""
        kb = KnowledgeBase(cosmology=CosmologyData(cosmology={"other": 1}))
        out = synthesize("L", "the heavens", kb, MIXED_INSIGHTS)
        assert out.branch == "generic"
        assert out.conclusion.endswith(
            "\nAnalysis Trace: Engaging Cosmology of Actuality knowledge base."
        )


# ── Bio-hybrid ────────────────────────────────────────────────────────


class TestBioHybrid:
    """The bio-hybrid initiative rule."""

    def test_vision_synergy_nanodocs(self, bio_hybrid):
        """Vision, synergy and nanodocs fragments with defaults filled in."""
        kb = KnowledgeBase(bio_hybrid=bio_hybrid)
        out = synthesize("L", "Describe synergy and nanodocs", kb, [])
        assert out.branch == "bio_hybrid"
        assert out.trace == [
            "Engaging Bio-Hybrid Initiative knowledge base.",
            "Specific reference to Synergy Naamah Islam.",
            "Specific reference to Nanodocs.",
        ]
        assert "new ethnicity: 'Synergists'." in out.conclusion
        assert "designed as a 'Companion'" in out.conclusion
        assert "focused on 'physical union and co-creation'." in out.conclusion
        assert "facilitate 'repair' and 'advanced regeneration'" in out.conclusion


# ── Generic ───────────────────────────────────────────────────────────


class TestGeneric:
    """The generic conclusion and rule list handling."""

    def test_empty_knowledge_always_generic(self):
        """An empty knowledge base skips the cascade entirely."""
        kb = KnowledgeBase.empty()
        for text in ("philosophy", "Architect, your mission", "cosmology", "nanodocs"):
            assert synthesize("L", text, kb, []).branch == "generic"

    def test_ratios_recovered_from_insight_text(self):
        """Ratios are read back out of the insight strings."""
        out = synthesize("Art & Creativity", "hello", KnowledgeBase.empty(), MIXED_INSIGHTS)
        assert out.conclusion == (
            "KSL 'Art & Creativity' processed your input. My current internal "
            "analysis indicates a pattern ratio of 0.30 and anomaly of 0.20 from my "
            "DSNs. This is integrated into my Comprehensive Overstanding. How can I "
            "further assist you, Architect?\nAnalysis Trace: "
        )

    def test_recover_ratio_no_insights(self):
        assert recover_ratio([], "Pattern: ") == 0.0

    def test_recover_ratio_skips_unparseable(self):
        """Unparseable figures are skipped but still counted."""
        insights = ["Pattern: 0.50, x", "Pattern: n/a, y", "nothing here"]
        assert recover_ratio(insights, "Pattern: ") == pytest.approx(0.5 / 3)

    def test_custom_rule_list(self, unity):
        kb = KnowledgeBase(philosophies=[unity])
        assert synthesize("L", "philosophy", kb, [], rules=[]).branch == "generic"

    def test_custom_rule_runs(self, unity):
        """A caller-supplied rule list is honoured."""
        def guard(ctx):
            return "ping" in ctx.lower

        def handler(ctx):
            ctx.fragments.append("pong")
            ctx.trace.append("ping rule")

        rule = SynthesisRule("ping", guard, handler)
        out = synthesize("L", "PING", KnowledgeBase(philosophies=[unity]), [], rules=[rule] + RULES)
        assert out.branch == "ping"
        assert out.conclusion == "pong\nAnalysis Trace: ping rule"


# ── Partly loaded knowledge ───────────────────────────────────────────


class TestPartialKnowledge:
    """Guards read only the text, so rule priority holds whatever is loaded."""

    def test_cosmology_wins_without_cosmology_data(self, bio_hybrid):
        """Cosmology engages first; with no data it leaves only its trace note."""
        kb = KnowledgeBase(bio_hybrid=bio_hybrid)
        out = synthesize("L", "cosmology and nanodocs", kb, MIXED_INSIGHTS)
        assert out.branch == "generic"
        assert out.trace == ["Engaging Cosmology of Actuality knowledge base."]
        assert "Nanodocs" not in out.conclusion

    def test_principle_without_philosophies(self):
        kb = KnowledgeBase(profile=UserProfile(name="Ada", role="Founder"))
        out = synthesize("L", "tell me a principle", kb, [])
        assert out.branch == "philosophy"
        assert out.trace == ["General philosophical context engaged."]

    def test_architect_mention_without_profile(self, unity):
        """An empty profile still answers an architect mention, with an empty mission."""
        kb = KnowledgeBase(philosophies=[unity])
        out = synthesize("L", "Architect, what is peace?", kb, [])
        assert out.branch == "profile"
        assert "Your primary mission is: ." in out.conclusion

    def test_bio_hybrid_without_data_is_generic(self, unity):
        kb = KnowledgeBase(philosophies=[unity])
        out = synthesize("L", "nanodocs", kb, [])
        assert out.branch == "generic"
        assert out.trace == ["Engaging Bio-Hybrid Initiative knowledge base."]
