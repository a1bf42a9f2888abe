"""
Unit tests for the product matcher.

Run: pytest tests/unit/test_matcher.py -v
"""

import pytest

from models.matching import MatchRecord, MatchType
from models.vendor import AirtableRecord
from services.matcher import (
    BRAND_MATCHER,
    DEFAULT_MATCHER,
    ProductMatcher,
    jaccard_similarity,
    record_from_airtable,
    record_from_product,
)


def _rec(id, sku=None, name=None, brand=None) -> MatchRecord:
    return MatchRecord(id=id, sku=sku, name=name, brand=brand)


class TestJaccardSimilarity:
    """Tests for jaccard_similarity()"""

    def test_partial_overlap(self):
        assert jaccard_similarity("a b c", "b c d") == 0.5

    def test_normalization_applies(self):
        assert jaccard_similarity("RooR Tech-Beaker", "roor techbeaker") == 1.0

    def test_empty_side_is_zero(self):
        assert jaccard_similarity("", "glass pipe") == 0.0
        assert jaccard_similarity(None, None) == 0.0


class TestScore:
    """Tests for ProductMatcher.score()"""

    def test_exact_sku_after_normalization(self):
        score = DEFAULT_MATCHER.score(_rec("r1", sku="rr-100"), _rec("p1", sku="RR100"))
        assert score == (1.0, MatchType.EXACT_SKU)

    def test_sku_containment(self):
        score = DEFAULT_MATCHER.score(_rec("r1", sku="RR100"), _rec("p1", sku="RR100-B"))
        assert score == (0.8, MatchType.PARTIAL_SKU)

    def test_short_skus_do_not_partially_match(self):
        assert DEFAULT_MATCHER.score(_rec("r1", sku="AB1"), _rec("p1", sku="AB12")) is None

    def test_name_with_matching_brand_gets_boost(self):
        score = DEFAULT_MATCHER.score(
            _rec("r1", name="RooR Tech Beaker 18"),
            _rec("p1", name="RooR Tech Beaker 18")
        )
        assert score == (0.9, MatchType.NAME_BRAND)

    def test_name_without_brand(self):
        score = DEFAULT_MATCHER.score(
            _rec("r1", name="Glass Water Pipe"),
            _rec("p1", name="Glass Water Pipe")
        )
        assert score == (0.7, MatchType.NAME)

    def test_highest_rule_wins(self):
        score = DEFAULT_MATCHER.score(
            _rec("r1", sku="RR100", name="RooR Tech Beaker"),
            _rec("p1", sku="RR100B", name="RooR Tech Beaker")
        )
        assert score == (0.9, MatchType.NAME_BRAND)

    def test_nothing_in_common(self):
        assert DEFAULT_MATCHER.score(_rec("r1", name="Hemp Wick"), _rec("p1", name="Glass Bowl")) is None


class TestFindBestMatch:
    """Tests for ProductMatcher.find_best_match()"""

    def test_floor_is_exclusive(self):
        record = _rec("r1", name="Glass Water Pipe")
        pool = [_rec("p1", name="Glass Water Pipe")]

        # 0.7 * 1.0 is not above the 0.7 floor
        assert DEFAULT_MATCHER.find_best_match(record, pool) is None

    def test_brand_matcher_accepts_looser_names(self):
        record = _rec("r1", name="Glass Water Pipe Large")
        pool = [_rec("p1", name="Glass Water Pipe")]

        match = BRAND_MATCHER.find_best_match(record, pool)

        assert match is not None
        assert match.product.id == "p1"
        assert match.score == 0.45

    def test_ties_resolve_to_smallest_product_id(self):
        record = _rec("r1", sku="VIP-1")
        pool_a = [_rec("p-b", sku="VIP1"), _rec("p-a", sku="vip-1")]
        pool_b = list(reversed(pool_a))

        assert DEFAULT_MATCHER.find_best_match(record, pool_a).product.id == "p-a"
        assert DEFAULT_MATCHER.find_best_match(record, pool_b).product.id == "p-a"

    def test_best_score_wins(self):
        record = _rec("r1", sku="RR100", name="RooR Beaker")
        pool = [_rec("p1", sku="RR100XL"), _rec("p2", sku="RR100")]

        match = DEFAULT_MATCHER.find_best_match(record, pool)

        assert match.product.id == "p2"
        assert match.match_type == MatchType.EXACT_SKU

    def test_custom_thresholds(self):
        matcher = ProductMatcher(floor=0.5, name_weight=1.0, brand_boost=0.0)
        match = matcher.find_best_match(_rec("r1", name="a b c"), [_rec("p1", name="a b c d")])
        assert match.score == 0.75


class TestMatchAll:
    """Tests for ProductMatcher.match_all()"""

    def test_splits_matched_and_unmatched(self):
        records = [
            _rec("r1", sku="AAA-1"),
            _rec("r2", sku="ZZZ-9"),
            _rec("r3", name="RooR Tech Beaker"),
        ]
        pool = [
            _rec("p1", sku="AAA1"),
            _rec("p2", name="RooR Tech Beaker"),
        ]

        matches, unmatched = DEFAULT_MATCHER.match_all(records, pool)

        assert [m.record.id for m in matches] == ["r1", "r3"]
        assert [m.score for m in matches] == [1.0, 0.9]
        assert [r.id for r in unmatched] == ["r2"]

    def test_empty_inputs(self):
        assert DEFAULT_MATCHER.match_all([], []) == ([], [])


class TestAdapters:
    """Tests for record_from_product / record_from_airtable."""

    def test_record_from_product(self):
        record = record_from_product({"id": 42, "sku": "VIP-1", "name": "Puffco Peak", "image_urls": None})

        assert record.id == "42"
        assert record.brand == "PUFFCO"
        assert record.payload["sku"] == "VIP-1"

    def test_record_from_airtable(self):
        airtable = AirtableRecord.model_validate({
            "id": "recA",
            "fields": {"Product Code": 991, "Title": "Hemp Wick", "Brand": "Bee Line"},
        })
        record = record_from_airtable(airtable)

        assert record.id == "recA"
        assert record.sku == "991"
        assert record.name == "Hemp Wick"
        assert record.brand == "Bee Line"

    @pytest.mark.parametrize("payload", [{"id": "recB", "fields": {}}])
    def test_record_from_empty_airtable(self, payload):
        record = record_from_airtable(AirtableRecord.model_validate(payload))
        assert record.sku is None
        assert record.name is None
