"""Tests for outlet reputation lookup and source reconciliation."""

import pytest

from trendsbox.generator.models import SearchResult
from trendsbox.generator.outlets import (
    DEFAULT_RELIABILITY_SCORE,
    attribute,
    domain_label,
    find_outlet,
    reconcile_sources,
    reliability_score,
)


class TestReliabilityScore:

    def test_substring_match_against_known_outlet(self):
        assert reliability_score("Premium Times Nigeria") == 95

    def test_unknown_source_gets_default(self):
        assert reliability_score("Random Blog") == 70
        assert DEFAULT_RELIABILITY_SCORE == 70

    def test_case_insensitive(self):
        assert reliability_score("VANGUARD") == 85

    def test_name_contained_in_outlet(self):
        assert reliability_score("Sahara") == 80

    def test_empty_name_is_unknown(self):
        assert reliability_score("") == 70
        assert reliability_score("   ") == 70
        assert find_outlet("") is None

    def test_longest_match_wins(self):
        # "Punch" and "Premium Times" both occur; the longer outlet name is chosen
        assert find_outlet("Premium Times via Punch").name == "Premium Times"

    def test_the_punch_maps_to_punch(self):
        assert reliability_score("The Punch") == 88


class TestDomainLabel:

    @pytest.mark.parametrize("url,label", [
        ("https://punchng.com/story", "The Punch"),
        ("https://www.vanguardngr.com/2026/10/x", "Vanguard"),
        ("https://guardian.ng/news/y", "The Guardian NG"),
        ("https://www.thisdaylive.com/z", "ThisDay"),
        ("https://techcabal.com/a", "Techcabal"),
    ])
    def test_known_and_unknown_domains(self, url, label):
        assert domain_label(url) == label

    def test_unparseable_url(self):
        assert domain_label("not a url") == "Unknown"


class TestReconcileSources:

    def test_keeps_only_cited_results_in_search_order(self, search_results):
        sources = reconcile_sources(search_results, [2, 0])

        assert [s.url for s in sources] == [search_results[0].url, search_results[2].url]

    def test_falls_back_to_first_hit_when_nothing_cited(self, search_results):
        sources = reconcile_sources(search_results, [])

        assert len(sources) == 1
        assert sources[0].url == search_results[0].url

    def test_out_of_range_ids_are_ignored(self, search_results):
        sources = reconcile_sources(search_results, [7, -1])

        assert [s.url for s in sources] == [search_results[0].url]

    def test_no_results_means_no_sources(self):
        assert reconcile_sources([], [0, 1]) == []

    def test_attribution_fields(self, search_results):
        source = attribute(search_results[0])

        assert source.display_name == "Senate passes new telecom bill"
        assert source.origin_domain_label == "Premium Times"
        assert source.reliability_score == 95

    def test_attribution_without_title_uses_label(self):
        source = attribute(SearchResult(url="https://dailypost.ng/x"))

        assert source.display_name == "Daily Post"
        assert source.reliability_score == 70
