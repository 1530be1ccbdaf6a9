"""Tests for label selector and apiVersion helpers."""

import pytest

from releasegate.core.errors import InvalidSelectorError
from releasegate.gates.models import LabelSelector, LabelSelectorRequirement
from releasegate.store.selectors import matches_selector, parse_group_version, selector_to_string


class TestParseGroupVersion:
    """Tests for apiVersion parsing."""

    def test_grouped(self):
        assert parse_group_version("apps/v1") == ("apps", "v1")

    def test_core_group(self):
        assert parse_group_version("v1") == ("", "v1")

    @pytest.mark.parametrize("api_version", ["", "a/b/c", "/v1", "apps/", " apps/v1"])
    def test_malformed(self, api_version):
        with pytest.raises(InvalidSelectorError):
            parse_group_version(api_version)


class TestSelectorToString:
    """Tests for structured selector translation."""

    def test_match_labels_sorted(self):
        selector = LabelSelector(match_labels={"tier": "web", "app": "shop"})

        assert selector_to_string(selector) == "app=shop,tier=web"

    def test_all_operators(self):
        selector = LabelSelector(
            match_labels={"app": "shop"},
            match_expressions=[
                LabelSelectorRequirement(key="env", operator="In", values=["prod", "canary"]),
                LabelSelectorRequirement(key="zone", operator="NotIn", values=["b"]),
                LabelSelectorRequirement(key="team", operator="Exists"),
                LabelSelectorRequirement(key="legacy", operator="DoesNotExist"),
            ],
        )

        assert selector_to_string(selector) == (
            "app=shop,env in (canary,prod),zone notin (b),team,!legacy"
        )

    def test_in_without_values(self):
        selector = LabelSelector(match_expressions=[LabelSelectorRequirement(key="env", operator="In")])

        with pytest.raises(InvalidSelectorError, match="non-empty"):
            selector_to_string(selector)

    def test_exists_with_values(self):
        selector = LabelSelector(
            match_expressions=[LabelSelectorRequirement(key="env", operator="Exists", values=["x"])]
        )

        with pytest.raises(InvalidSelectorError, match="must be empty"):
            selector_to_string(selector)

    @pytest.mark.parametrize(
        "labels",
        [
            {"app": "web,canary"},
            {"app": "web canary"},
            {"app": "(web)"},
            {"app": "!web"},
            {"app": "-web"},
            {"app": "x" * 64},
            {"bad key": "web"},
            {"Example.COM/app": "web"},
            {"example.com/": "web"},
            {"/app": "web"},
            {"a/b/c": "web"},
        ],
    )
    def test_invalid_match_labels(self, labels):
        with pytest.raises(InvalidSelectorError, match="invalid label"):
            selector_to_string(LabelSelector(match_labels=labels))

    def test_valid_label_grammar(self):
        selector = LabelSelector(
            match_labels={"app.kubernetes.io/name": "shop_v1.2", "empty": ""},
            match_expressions=[LabelSelectorRequirement(key="example.com/tier", operator="In", values=["a-1"])],
        )

        assert selector_to_string(selector) == "app.kubernetes.io/name=shop_v1.2,empty=,example.com/tier in (a-1)"

    def test_invalid_expression_value(self):
        selector = LabelSelector(
            match_expressions=[LabelSelectorRequirement(key="env", operator="In", values=["prod,canary"])]
        )

        with pytest.raises(InvalidSelectorError, match="invalid label value"):
            selector_to_string(selector)

    def test_invalid_expression_key(self):
        selector = LabelSelector(match_expressions=[LabelSelectorRequirement(key="env!", operator="Exists")])

        with pytest.raises(InvalidSelectorError, match="invalid label key"):
            selector_to_string(selector)

    def test_unknown_operator(self):
        selector = LabelSelector(
            match_expressions=[LabelSelectorRequirement(key="env", operator="Matches", values=["x"])]
        )

        with pytest.raises(InvalidSelectorError, match="not a valid label selector operator"):
            selector_to_string(selector)


class TestMatchesSelector:
    """Tests for local selector evaluation used by the in-memory store."""

    def test_empty_selector_matches_everything(self):
        assert matches_selector({}, "")
        assert matches_selector({"app": "shop"}, "")

    def test_equality(self):
        assert matches_selector({"app": "shop"}, "app=shop")
        assert not matches_selector({"app": "cart"}, "app=shop")
        assert not matches_selector({}, "app=shop")

    def test_inequality(self):
        assert matches_selector({"app": "cart"}, "app!=shop")
        assert matches_selector({}, "app!=shop")

    def test_set_operators(self):
        labels = {"env": "prod"}

        assert matches_selector(labels, "env in (canary,prod)")
        assert not matches_selector(labels, "env notin (canary,prod)")
        assert matches_selector({}, "env notin (prod)")

    def test_existence(self):
        assert matches_selector({"team": "a"}, "team")
        assert not matches_selector({}, "team")
        assert matches_selector({}, "!legacy")
        assert not matches_selector({"legacy": "yes"}, "!legacy")

    def test_round_trip_through_string_form(self):
        selector = LabelSelector(
            match_labels={"app": "shop"},
            match_expressions=[LabelSelectorRequirement(key="env", operator="In", values=["prod", "canary"])],
        )
        predicate = selector_to_string(selector)

        assert matches_selector({"app": "shop", "env": "canary"}, predicate)
        assert not matches_selector({"app": "shop", "env": "dev"}, predicate)

    def test_unparseable_requirement(self):
        with pytest.raises(InvalidSelectorError):
            matches_selector({}, "env in prod")
