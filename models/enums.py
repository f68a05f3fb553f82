"""Enumerations for narrative plans, chapters, study blocks and concept graphs."""

from enum import Enum


class NarrativeVoice(str, Enum):
    PURE_SCENES = "pure_scenes"
    DIARY_AND_SCENES = "diary_and_scenes"
    LETTERS_AND_SCENES = "letters_and_scenes"
    EXPERIMENTAL = "experimental"


class ChapterType(str, Enum):
    SCENE = "scene"
    DIARY = "diary"
    LETTER = "letter"
    MONOLOGUE = "monologue"
    NEWSPAPER = "newspaper"
    FOUND_DOCUMENT = "found_document"


class PointOfView(str, Enum):
    THIRD_PERSON = "3rd_person"
    FIRST_PERSON_PROTAGONIST = "1st_person_protagonist"
    FIRST_PERSON_OBSERVER = "1st_person_observer"
    SECOND_PERSON = "2nd_person"


class StudyBlockKind(str, Enum):
    """Canonical study blocks, in rendering order."""
    THESES = "study-theses"
    MOTIFS = "study-motifs"
    CHARACTERS = "study-characters"
    CONTEXTS = "study-contexts"
    QUESTIONS = "study-questions"
    TOP_SCENES = "study-topscenes"


class LinkMode(str, Enum):
    NONE = "none"
    HASH = "hash"
    MAP = "map"


class ConceptKind(str, Enum):
    """Role of a node in a topic's concept graph."""
    CORE = "core"
    BRIDGE = "bridge"
    APPLICATION = "application"


class EdgeType(str, Enum):
    """Concept graph relations. Only PREREQ and EXTENDS order the graph."""
    PREREQ = "prereq"
    EXTENDS = "extends"
    EXAMPLE = "example"
    CONTRAST = "contrast"


class PageKind(str, Enum):
    CONCEPT = "concept"
    SOURCE_MATERIAL = "source_material"


def coerce_enum(enum_cls, value, default):
    """Return ``enum_cls(value)`` or ``default`` when value is unknown."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default
