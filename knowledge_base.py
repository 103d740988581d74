"""
Knowledge base records consumed by the lobe synthesis cascade.

The knowledge base is static reference data (philosophies, the architect's
profile, key projects, cosmology and bio-hybrid records).  It is used only for
text matching, never for numeric scoring, and it is never written into the
persisted lobe state: a restored lobe must be hydrated again with
``KnowledgeLobe.load_knowledge``.

``load_knowledge_base(paths)`` reads the five JSON files named by a
``PathsConfig``.  Any missing or malformed file raises ``KnowledgeBaseError``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from lobe_config import PathsConfig

logger = logging.getLogger("lobegraph.knowledge")


class KnowledgeBaseError(ValueError):
    """Raised when a knowledge base file cannot be loaded."""


def _matches(value: Any, annotation: str) -> bool:
    """Check a decoded JSON value against a field annotation string."""
    if annotation.startswith("Optional["):
        if value is None:
            return True
        annotation = annotation[len("Optional["):-1]
    if annotation == "str":
        return isinstance(value, str)
    if annotation == "List[str]":
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if annotation.startswith("List["):
        return isinstance(value, list)
    if annotation == "Dict[str, str]":
        return isinstance(value, dict) and all(isinstance(v, str) for v in value.values())
    if annotation.startswith("Dict["):
        return isinstance(value, dict)
    return True


def _known_fields(cls: Any, data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the fields ``cls`` declares, rejecting values of the wrong type.

    Raises:
        KnowledgeBaseError: A known field holds null or a mistyped value.
    """
    out = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if not _matches(value, str(f.type)):
            raise KnowledgeBaseError(
                f"{cls.__name__}.{f.name} must be {f.type}, got {type(value).__name__}"
            )
        out[f.name] = value
    return out


@dataclass
class CorePhilosophy:
    name: str = ""
    definition: str = ""
    framework_integration: str = ""
    hint_for_axiom: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorePhilosophy":
        return cls(**_known_fields(cls, data))


@dataclass
class KeyProject:
    name: str = ""
    nature: str = ""
    core_purpose: str = ""
    mission_alignment: str = ""
    operational_link: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyProject":
        return cls(**_known_fields(cls, data))


@dataclass
class UserProfile:
    """The architect's profile; matched against event keywords."""

    name: str = ""
    role: str = ""
    core_mission: str = ""
    personal_principles: List[str] = field(default_factory=list)
    birth_info: Optional[Dict[str, str]] = None
    education: List[Any] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    favorite_colors: List[str] = field(default_factory=list)
    technology_ecosystem: Any = None
    aspirations: str = ""
    strategic_goals: List[str] = field(default_factory=list)
    ai_view: str = ""
    world_peace_mission: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(**_known_fields(cls, data))

    @property
    def is_empty(self) -> bool:
        return not (
            self.name
            or self.core_mission
            or self.personal_principles
            or self.interests
            or self.strategic_goals
        )


@dataclass
class CosmologyData:
    cosmology: Dict[str, Any] = field(default_factory=dict)
    ordered_placement_of_beings: Dict[str, Any] = field(default_factory=dict)
    ancient_wisdom_perceptual_matrix: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CosmologyData":
        return cls(**_known_fields(cls, data))

    @property
    def is_empty(self) -> bool:
        return not (self.cosmology or self.ordered_placement_of_beings)


@dataclass
class BioHybridData:
    vision: Dict[str, Any] = field(default_factory=dict)
    seven_core_bio_hybrid_concepts: Dict[str, Any] = field(default_factory=dict)
    physical_mechanical_systems: Dict[str, Any] = field(default_factory=dict)
    cognitive_sensory_systems: Dict[str, Any] = field(default_factory=dict)
    biological_regenerative_functions: Dict[str, Any] = field(default_factory=dict)
    ai_model_fine_tuning_directives: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BioHybridData":
        return cls(**_known_fields(cls, data))

    @property
    def is_empty(self) -> bool:
        return not (
            self.vision
            or self.seven_core_bio_hybrid_concepts
            or self.biological_regenerative_functions
        )


@dataclass
class KnowledgeBase:
    """The reloadable, never-persisted part of a knowledge lobe."""

    philosophies: List[CorePhilosophy] = field(default_factory=list)
    profile: UserProfile = field(default_factory=UserProfile)
    key_projects: List[KeyProject] = field(default_factory=list)
    cosmology: CosmologyData = field(default_factory=CosmologyData)
    bio_hybrid: BioHybridData = field(default_factory=BioHybridData)

    @classmethod
    def empty(cls) -> "KnowledgeBase":
        return cls()

    @property
    def is_empty(self) -> bool:
        return (
            not self.philosophies
            and self.profile.is_empty
            and not self.key_projects
            and self.cosmology.is_empty
            and self.bio_hybrid.is_empty
        )


# ── Loading ────────────────────────────────────────────────────────────


def _read_json(path: Path) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise KnowledgeBaseError(f"Failed to load knowledge file {path}: {exc}") from exc


def _expect(kind: type, data: Any, path: Path) -> Any:
    if not isinstance(data, kind):
        raise KnowledgeBaseError(
            f"Knowledge file {path} must contain a JSON {kind.__name__}"
        )
    return data


def _record(cls: Any, data: Any, path: Path) -> Any:
    data = _expect(dict, data, path)
    try:
        return cls.from_dict(data)
    except KnowledgeBaseError as exc:
        raise KnowledgeBaseError(f"Knowledge file {path}: {exc}") from exc


def load_knowledge_base(paths: PathsConfig) -> KnowledgeBase:
    """Read every knowledge file named in ``paths``.

    Raises:
        KnowledgeBaseError: A file is missing, unreadable or of the wrong shape.
    """
    p_phil = paths.data_path(paths.philosophies_file)
    p_profile = paths.data_path(paths.profile_file)
    p_projects = paths.data_path(paths.key_projects_file)
    p_cosmo = paths.data_path(paths.cosmology_file)
    p_bio = paths.data_path(paths.bio_hybrid_file)

    philosophies = [
        _record(CorePhilosophy, item, p_phil)
        for item in _expect(list, _read_json(p_phil), p_phil)
    ]
    profile = _record(UserProfile, _read_json(p_profile), p_profile)
    key_projects = [
        _record(KeyProject, item, p_projects)
        for item in _expect(list, _read_json(p_projects), p_projects)
    ]
    cosmology = _record(CosmologyData, _read_json(p_cosmo), p_cosmo)
    bio_hybrid = _record(BioHybridData, _read_json(p_bio), p_bio)

    logger.info(
        "Knowledge base loaded: %d philosophies, %d key projects, profile for %s",
        len(philosophies),
        len(key_projects),
        profile.name or "<unnamed>",
    )
    return KnowledgeBase(
        philosophies=philosophies,
        profile=profile,
        key_projects=key_projects,
        cosmology=cosmology,
        bio_hybrid=bio_hybrid,
    )
