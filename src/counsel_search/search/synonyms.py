"""Synonym table for semantic query expansion.

Patients and physicians describe the same complaint with different words
("pain" vs "ache", "tummy" vs "stomach"). The table maps a canonical term to
related terms so a query that finds few literal hits can still reach the
conversations that talk about the same thing.

The mapping is intentionally one-directional: "migraine" relates to
"headache" but a query for "headache" should not pull every migraine thread.

Example:
    - "pain" expands to {"ache", "aching", "sore", "soreness", "hurt", "hurts", "discomfort"}
    - "fever" expands to {"temperature", "feverish", "pyrexia"}
"""
# ruff: noqa: ERA001  # Comments are intentional documentation, not commented-out code

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path

import orjson


logger = logging.getLogger(__name__)


# Default thesaurus for patient/physician conversations.
DEFAULT_SYNONYMS: dict[str, set[str]] = {
    # Pain
    "pain": {"ache", "aching", "sore", "soreness", "hurt", "hurts", "discomfort"},
    "ache": {"pain", "aching", "sore", "hurt"},
    "sore": {"pain", "ache", "soreness", "tender"},
    "hurt": {"pain", "hurts", "ache", "sore"},
    "hurts": {"pain", "hurt", "ache", "sore"},
    "headache": {"migraine", "head", "pain"},
    "migraine": {"headache"},
    # Back / joints
    "back": {"spine", "spinal", "lumbar", "lower"},
    "spine": {"back", "spinal", "vertebra"},
    "joint": {"joints", "arthritis", "knee", "hip", "shoulder"},
    "knee": {"joint", "knees"},
    # Digestive
    "stomach": {"abdomen", "abdominal", "belly", "tummy", "gut"},
    "tummy": {"stomach", "belly", "abdomen"},
    "belly": {"stomach", "abdomen", "tummy"},
    "nausea": {"nauseous", "nauseated", "queasy", "sick", "vomiting"},
    "vomiting": {"vomit", "throwing", "nausea"},
    "diarrhea": {"loose", "stool", "bowel"},
    "constipation": {"constipated", "bowel", "stool"},
    # Respiratory
    "cough": {"coughing", "phlegm", "mucus"},
    "breath": {"breathing", "breathless", "shortness", "wheezing"},
    "breathing": {"breath", "breathless", "shortness", "wheezing", "respiratory"},
    "cold": {"flu", "congestion", "runny", "sniffles"},
    "flu": {"influenza", "cold", "fever"},
    # Systemic
    "fever": {"temperature", "feverish", "pyrexia"},
    "temperature": {"fever", "feverish"},
    "tired": {"fatigue", "exhausted", "exhaustion", "weary", "sleepy"},
    "fatigue": {"tired", "exhausted", "exhaustion", "weakness"},
    "dizzy": {"dizziness", "lightheaded", "vertigo", "faint"},
    "dizziness": {"dizzy", "lightheaded", "vertigo"},
    "sleep": {"insomnia", "sleeping", "sleepless", "rest"},
    "insomnia": {"sleep", "sleepless", "sleeping"},
    # Skin
    "rash": {"hives", "itchy", "itching", "eczema", "redness"},
    "itchy": {"itching", "itch", "rash"},
    "swelling": {"swollen", "inflammation", "edema", "puffy"},
    "swollen": {"swelling", "inflamed", "puffy"},
    # Mental health
    "anxiety": {"anxious", "worried", "worry", "panic", "stress", "nervous"},
    "anxious": {"anxiety", "worried", "nervous", "panic"},
    "depression": {"depressed", "sad", "hopeless", "low", "mood"},
    "depressed": {"depression", "sad", "down", "hopeless"},
    "stress": {"stressed", "anxiety", "pressure", "overwhelmed"},
    # Cardio
    "heart": {"cardiac", "chest", "palpitations", "pulse"},
    "chest": {"heart", "cardiac", "breast"},
    "blood": {"bleeding", "pressure", "hypertension"},
    "pressure": {"hypertension", "blood"},
    # Care
    "medication": {"medicine", "meds", "drug", "drugs", "prescription", "pills", "dose"},
    "medicine": {"medication", "meds", "drug", "prescription", "pills"},
    "meds": {"medication", "medicine", "prescription", "pills"},
    "prescription": {"medication", "refill", "rx", "pharmacy"},
    "refill": {"prescription", "renew", "pharmacy"},
    "appointment": {"visit", "consultation", "checkup", "schedule", "booking"},
    "visit": {"appointment", "consultation", "checkup"},
    "doctor": {"physician", "provider", "clinician"},
    "physician": {"doctor", "provider", "clinician"},
    "test": {"tests", "lab", "labs", "results", "bloodwork", "screening"},
    "results": {"test", "lab", "labs", "report"},
    "surgery": {"operation", "procedure", "surgical"},
    "infection": {"infected", "bacterial", "viral", "antibiotics"},
    "allergy": {"allergic", "allergies", "reaction"},
    "weight": {"obesity", "diet", "bmi"},
    "diet": {"nutrition", "eating", "food", "weight"},
    "pregnant": {"pregnancy", "prenatal", "expecting"},
    "pregnancy": {"pregnant", "prenatal", "expecting"},
    "diabetes": {"diabetic", "sugar", "glucose", "insulin"},
    "sugar": {"glucose", "diabetes"},
}


class SynonymTable:
    """Read-only thesaurus lookups.

    Loaded once per process; lookups are case-insensitive and unknown terms
    return an empty set instead of raising.
    """

    def __init__(self, synonyms: Mapping[str, Iterable[str]] | None = None) -> None:
        source = synonyms if synonyms is not None else DEFAULT_SYNONYMS
        self._synonyms: dict[str, frozenset[str]] = {
            term.lower(): frozenset(related.lower() for related in values) for term, values in source.items()
        }

    def __len__(self) -> int:
        return len(self._synonyms)

    def __contains__(self, term: object) -> bool:
        return isinstance(term, str) and term.lower() in self._synonyms

    def lookup(self, term: str) -> frozenset[str]:
        """Return the related terms for ``term`` (never includes the term itself)."""

        normalized = term.lower()
        related = self._synonyms.get(normalized)
        if not related:
            return frozenset()
        return related - {normalized}

    @classmethod
    def from_file(cls, path: Path) -> SynonymTable:
        """Load a table from a JSON object of ``{"term": ["related", ...]}``."""

        payload = orjson.loads(path.read_bytes())
        if not isinstance(payload, dict):
            raise ValueError(f"Synonym file {path} must contain a JSON object")

        synonyms: dict[str, list[str]] = {}
        for term, values in payload.items():
            if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
                raise ValueError(f"Synonyms for '{term}' in {path} must be a list of strings")
            synonyms[str(term)] = values

        logger.info("Loaded %d synonym entries from %s", len(synonyms), path)
        return cls(synonyms)


def load_synonym_table(path: Path | None = None) -> SynonymTable:
    """Load the configured table, falling back to the built-in thesaurus."""

    if path is None:
        return SynonymTable()
    return SynonymTable.from_file(path)


def expand_query_terms(
    terms: Iterable[str],
    table: SynonymTable,
    *,
    exclude: Iterable[str] = (),
    min_length: int = 3,
) -> list[str]:
    """Union the synonyms of every term, in first-seen order.

    Args:
        terms: Query terms to expand.
        table: Thesaurus to consult.
        exclude: Terms already matched literally or by spelling correction.
        min_length: Expansion terms shorter than this are dropped.

    Returns:
        Expansion terms not present in ``exclude``.
    """
    excluded = {term.lower() for term in exclude}
    expanded: dict[str, None] = {}

    for term in terms:
        for related in sorted(table.lookup(term)):
            if related in excluded or len(related) < min_length:
                continue
            expanded.setdefault(related, None)

    return list(expanded)
