"""
Product matcher.

Pairs vendor records with local products when they share no reliable
key. Scoring rules, highest score wins:

1. Exact SKU (normalized)                      → 1.0
2. SKU containment, both longer than 3 chars   → 0.8
3. Name word-set Jaccard × name_weight, plus brand_boost if the
   extracted brands are equal

A match is returned only when its score is strictly above the floor.
Ties are broken by the smallest product id, so the result never depends
on pool order.
"""

from typing import Iterable, Optional
import structlog

from models.matching import MatchCandidate, MatchRecord, MatchType
from models.vendor import AirtableRecord
from services.field_mapper import extract_brand
from utils.text_utils import normalize_sku, normalize_text

logger = structlog.get_logger(__name__)

EXACT_SKU_SCORE = 1.0
PARTIAL_SKU_SCORE = 0.8
MIN_PARTIAL_SKU_LENGTH = 4


def jaccard_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Jaccard index of the normalized word sets of two strings.

    Returns:
        |A ∩ B| / |A ∪ B|, 0.0 when either side is empty
    """
    words_a = set(normalize_text(a).split())
    words_b = set(normalize_text(b).split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def _brand(record: MatchRecord) -> str:
    return normalize_text(record.brand or extract_brand(record.name))


class ProductMatcher:
    """
    Similarity matcher.

    Args:
        floor: Minimum score, exclusive
        name_weight: Multiplier applied to name similarity
        brand_boost: Added to the name score when brands agree
    """

    def __init__(self, floor: float = 0.7, name_weight: float = 0.7, brand_boost: float = 0.2):
        self.floor = floor
        self.name_weight = name_weight
        self.brand_boost = brand_boost

    def __repr__(self) -> str:
        return f"ProductMatcher(floor={self.floor}, name_weight={self.name_weight}, brand_boost={self.brand_boost})"

    def score(self, record: MatchRecord, product: MatchRecord) -> Optional[tuple[float, MatchType]]:
        """
        Best rule score for one pair, or None when nothing matches.
        """
        scores: list[tuple[float, MatchType]] = []

        sku_a = normalize_sku(record.sku)
        sku_b = normalize_sku(product.sku)
        if sku_a and sku_b:
            if sku_a == sku_b:
                return EXACT_SKU_SCORE, MatchType.EXACT_SKU
            if (
                len(sku_a) >= MIN_PARTIAL_SKU_LENGTH
                and len(sku_b) >= MIN_PARTIAL_SKU_LENGTH
                and (sku_a in sku_b or sku_b in sku_a)
            ):
                scores.append((PARTIAL_SKU_SCORE, MatchType.PARTIAL_SKU))

        similarity = jaccard_similarity(record.name, product.name)
        if similarity > 0:
            name_score = self.name_weight * similarity
            brand = _brand(record)
            if brand and brand == _brand(product):
                scores.append((name_score + self.brand_boost, MatchType.NAME_BRAND))
            else:
                scores.append((name_score, MatchType.NAME))

        if not scores:
            return None

        score, match_type = max(scores, key=lambda s: s[0])
        return round(score, 4), match_type

    def find_best_match(self, record: MatchRecord, pool: Iterable[MatchRecord]) -> Optional[MatchCandidate]:
        """
        Highest-scoring product above the floor, or None.

        Equal scores resolve to the lexicographically smallest product id.
        """
        best: Optional[MatchCandidate] = None

        for product in pool:
            scored = self.score(record, product)
            if scored is None:
                continue

            score, match_type = scored
            if score <= self.floor:
                continue

            if (
                best is None
                or score > best.score
                or (score == best.score and product.id < best.product.id)
            ):
                best = MatchCandidate(
                    record=record,
                    product=product,
                    score=min(score, 1.0),
                    match_type=match_type
                )

        return best

    def match_all(
        self,
        records: Iterable[MatchRecord],
        pool: Iterable[MatchRecord]
    ) -> tuple[list[MatchCandidate], list[MatchRecord]]:
        """
        Match every record against the pool.

        Returns:
            Tuple of (matches sorted by score descending, unmatched records)
        """
        pool = list(pool)
        matches: list[MatchCandidate] = []
        unmatched: list[MatchRecord] = []

        for record in records:
            match = self.find_best_match(record, pool)
            if match:
                matches.append(match)
            else:
                unmatched.append(record)

        matches.sort(key=lambda m: (-m.score, m.record.id))

        logger.info(
            "matching_complete",
            matcher=repr(self),
            matched=len(matches),
            unmatched=len(unmatched)
        )

        return matches, unmatched


DEFAULT_MATCHER = ProductMatcher()

# Looser variant for single-brand reconciliation runs
BRAND_MATCHER = ProductMatcher(floor=0.3, name_weight=0.6)


# ===================
# ADAPTERS
# ===================

def record_from_product(row: dict) -> MatchRecord:
    """Reduce a products row to a match record."""
    name = row.get("name")
    return MatchRecord(
        id=str(row["id"]),
        sku=row.get("sku"),
        name=name,
        brand=extract_brand(name) or extract_brand(row.get("description")),
        payload=row,
    )


def record_from_airtable(record: AirtableRecord) -> MatchRecord:
    """Reduce an Airtable record to a match record."""
    sku = record.first("SKU", "sku", "Product Code", "Code")
    name = record.first("Name", "Product Name", "Title")
    brand = record.first("Brand", "Manufacturer")
    return MatchRecord(
        id=record.id,
        sku=str(sku) if sku is not None else None,
        name=str(name) if name is not None else None,
        brand=str(brand) if brand else None,
        payload=record.fields,
    )
