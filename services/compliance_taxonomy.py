"""
Compliance keyword taxonomy.

Single source of truth for keyword-based compliance detection. The field
mapper uses it for product flags and the classification service uses it
as the deterministic fallback when the LLM call fails.

Families are checked in order; the first family with a matching keyword
wins. Matching is a case-insensitive substring test.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from models.classification import (
    Classification,
    ClassificationSource,
    ComplianceCategory,
    RiskLevel,
)


@dataclass(frozen=True)
class ComplianceFamily:
    """A regulated product family and how to recognize it."""
    category: ComplianceCategory
    substance_type: str
    keywords: tuple[str, ...]
    risk_level: RiskLevel
    confidence: float
    required_compliance: tuple[str, ...] = ()
    # Keywords whose presence disqualifies the family
    excluded_by: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if any(word in text for word in self.excluded_by):
            return False
        return any(word in text for word in self.keywords)


@dataclass(frozen=True)
class ComplianceFlags:
    """Boolean flags stored on a product row."""
    nicotine: bool = False
    tobacco: bool = False
    age_restricted: bool = False


FAMILIES: tuple[ComplianceFamily, ...] = (
    ComplianceFamily(
        category=ComplianceCategory.THCA,
        substance_type="Delta-9 THC Precursor",
        keywords=("thca", "thc-a", "delta"),
        risk_level=RiskLevel.CRITICAL,
        confidence=0.8,
        required_compliance=("age_verification", "state_restrictions", "lab_testing"),
    ),
    ComplianceFamily(
        category=ComplianceCategory.KRATOM,
        substance_type="Mitragyna speciosa",
        keywords=("kratom", "mitragyna"),
        risk_level=RiskLevel.HIGH,
        confidence=0.8,
        required_compliance=("age_verification", "state_restrictions"),
    ),
    ComplianceFamily(
        category=ComplianceCategory.SEVEN_HYDROXY,
        substance_type="7-Hydroxymitragynine",
        keywords=("7-hydroxy", "7-oh", "hydroxymitragynine"),
        risk_level=RiskLevel.CRITICAL,
        confidence=0.8,
        required_compliance=("age_verification", "state_restrictions", "quantity_limits"),
    ),
    ComplianceFamily(
        category=ComplianceCategory.NICOTINE,
        substance_type="Tobacco/Nicotine Products",
        keywords=("nicotine", "tobacco", "vape", "e-liquid"),
        risk_level=RiskLevel.HIGH,
        confidence=0.7,
        required_compliance=("age_verification", "adult_signature"),
    ),
    ComplianceFamily(
        category=ComplianceCategory.CBD,
        substance_type="Cannabidiol Products",
        keywords=("cbd",),
        risk_level=RiskLevel.MEDIUM,
        confidence=0.6,
        required_compliance=("age_verification",),
        excluded_by=("thc",),
    ),
    ComplianceFamily(
        category=ComplianceCategory.HEMP,
        substance_type="Industrial Hemp Products",
        keywords=("hemp",),
        risk_level=RiskLevel.LOW,
        confidence=0.6,
    ),
)

STANDARD = ComplianceFamily(
    category=ComplianceCategory.STANDARD,
    substance_type="Smoking Accessories",
    keywords=(),
    risk_level=RiskLevel.LOW,
    confidence=0.9,
)

# Broader list used for the product nicotine flag: anything a tobacco
# storefront would carry, including hemp smokables and vape hardware.
NICOTINE_KEYWORDS = (
    "blunt", "diamond blunt", "p blend", "thcp", "delta", "hemp", "cbd",
    "thc", "cannabis", "vape", "cartridge", "disposable", "nicotine",
    "tobacco", "cigarette", "cigar",
)

TOBACCO_KEYWORDS = ("tobacco", "cigar", "cigarette", "blunt wrap", "leaf wrap")


def _normalize(parts: Iterable[Optional[str]]) -> str:
    return " ".join(p for p in parts if p).lower()


def classify_text(*parts: Optional[str]) -> ComplianceFamily:
    """
    Return the first family whose keywords occur in the text.

    Args:
        *parts: Name, description, category, tags (None is ignored)

    Returns:
        Matching family, or STANDARD when nothing matches
    """
    text = _normalize(parts)
    for family in FAMILIES:
        if family.matches(text):
            return family
    return STANDARD


def detect_flags(*parts: Optional[str]) -> ComplianceFlags:
    """Product compliance flags for the given text."""
    text = _normalize(parts)
    family = classify_text(text)

    nicotine = family.category == ComplianceCategory.NICOTINE or any(
        word in text for word in NICOTINE_KEYWORDS
    )
    tobacco = any(word in text for word in TOBACCO_KEYWORDS)
    age_restricted = nicotine or "age_verification" in family.required_compliance

    return ComplianceFlags(nicotine=nicotine, tobacco=tobacco, age_restricted=age_restricted)


def fallback_classification(name: Optional[str], description: Optional[str] = None) -> Classification:
    """
    Deterministic keyword classification.

    Never raises; products with no recognizable keyword come back as
    Standard / low risk.
    """
    family = classify_text(name, description)

    if family is STANDARD:
        reasoning = "No regulated substance keywords found"
    else:
        reasoning = f"Keyword match for {family.category.value}"

    return Classification(
        category=family.category,
        substance_type=family.substance_type,
        confidence=family.confidence,
        risk_level=family.risk_level,
        required_compliance=list(family.required_compliance),
        reasoning=reasoning,
        source=ClassificationSource.FALLBACK,
    )
