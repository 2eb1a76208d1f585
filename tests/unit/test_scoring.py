"""
Tests for address scoring used by contact suggestions.
"""

import pytest

from adapters.scoring import jaro_winkler, score_address, strip_diacritics, suggest_addresses


class TestStripDiacritics:

    def test_czech(self) -> None:
        assert strip_diacritics("Štěpánská Žižkov") == "Stepanska Zizkov"


class TestJaroWinkler:

    def test_classic_pair(self) -> None:
        assert jaro_winkler("martha", "marhta") == pytest.approx(0.9611, abs=1e-4)

    def test_identical_and_disjoint(self) -> None:
        assert jaro_winkler("abc", "abc") == 1.0
        assert jaro_winkler("abc", "xyz") == 0.0
        assert jaro_winkler("", "") == 1.0


class TestSuggest:

    def test_token_hits_outrank_similarity(self) -> None:
        assert score_address("vinohradska 12", "Vinohradská 12, Praha") > score_address(
            "vinohradska 12", "Vodičkova 30, Praha"
        )

    def test_top_three_rounded(self) -> None:
        addresses = [
            "Vinohradská 12, Praha",
            "Vinohradská 40, Praha",
            "Korunní 5, Praha",
            "Vinohradská 90, Praha",
            "",
        ]
        result = suggest_addresses("vinohradska", addresses)
        assert len(result) == 3
        assert all(r["realEstate"].startswith("Vinohradská") for r in result)
        assert all(r["score"] == round(r["score"], 2) for r in result)

    def test_blank_query(self) -> None:
        assert suggest_addresses("   ", ["Main St"]) == []
