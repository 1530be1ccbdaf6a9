"""Tests for the validator engine."""

import pytest

from releasegate.core.errors import FieldNotResolvableError
from releasegate.gates.fields import read_field, render_value
from releasegate.gates.models import AtLeast, JsonPointer, MatchCondition
from releasegate.gates.validators import ValidatorEngine, compute_threshold


@pytest.fixture
def engine():
    return ValidatorEngine()


class TestThreshold:
    """Tests for atLeast threshold computation."""

    def test_count(self):
        assert compute_threshold(AtLeast(count=3), 10) == 3

    def test_percent_is_floored(self):
        assert compute_threshold(AtLeast(percent=50), 5) == 2

    def test_max_of_count_and_percent(self):
        assert compute_threshold(AtLeast(count=2, percent=50), 10) == 5
        assert compute_threshold(AtLeast(count=7, percent=50), 10) == 7

    def test_unset(self):
        assert compute_threshold(AtLeast(), 10) == -1
        assert compute_threshold(AtLeast(count=0, percent=0), 10) == -1


class TestValidatorEngine:
    """Tests for ValidatorEngine.evaluate."""

    def test_empty_validators_means_at_least_one_object(self, engine, make_object):
        outcome = engine.evaluate([make_object("a")], [])

        assert outcome.satisfied
        assert outcome.threshold == 1

    def test_empty_validators_no_objects(self, engine):
        outcome = engine.evaluate([], [])

        assert not outcome.satisfied
        assert outcome.messages[:3] == [
            "0 objects found",
            "0 objects match target validators",
            "0/1 valid objects",
        ]

    def test_default_threshold_is_all_objects(self, engine, make_object):
        objects = [
            make_object("a", conditions={"Available": "True"}),
            make_object("b", conditions={"Available": "True"}),
            make_object("c", conditions={"Available": "False"}),
        ]

        outcome = engine.evaluate(objects, [MatchCondition(type="Available", status="True")])

        assert not outcome.satisfied
        assert outcome.matching == 2
        assert outcome.threshold == 3
        assert outcome.messages[:3] == [
            "3 objects found",
            "2 objects match target validators",
            "2/3 valid objects",
        ]
        assert outcome.messages[3] == "default/c -> condition Available is wrong (expected True, got False)"

    def test_explicit_quorum(self, engine, make_object):
        objects = [
            make_object("a", conditions={"Available": "True"}),
            make_object("b", conditions={"Available": "True"}),
            make_object("c", conditions={"Available": "False"}),
        ]
        validators = [AtLeast(count=2), MatchCondition(type="Available", status="True")]

        outcome = engine.evaluate(objects, validators)

        assert outcome.satisfied
        assert outcome.messages[2] == "2/2 valid objects"

    def test_percent_quorum(self, engine, make_object):
        objects = [make_object(f"pod-{i}", conditions={"Ready": "True" if i < 2 else "False"}) for i in range(4)]
        validators = [AtLeast(percent=50), MatchCondition(type="Ready", status="True")]

        outcome = engine.evaluate(objects, validators)

        assert outcome.satisfied
        assert outcome.threshold == 2

    def test_largest_at_least_wins(self, engine, make_object):
        objects = [make_object(f"pod-{i}") for i in range(4)]

        outcome = engine.evaluate(objects, [AtLeast(count=1), AtLeast(count=5)])

        assert outcome.threshold == 5
        assert not outcome.satisfied

    def test_object_without_conditions(self, engine, make_object):
        outcome = engine.evaluate([make_object("a")], [MatchCondition(type="Available", status="True")])

        assert not outcome.satisfied
        assert "default/a -> object has no conditions" in outcome.messages

    def test_missing_condition_type(self, engine, make_object):
        objects = [make_object("a", conditions={"Progressing": "True"})]

        outcome = engine.evaluate(objects, [MatchCondition(type="Available", status="True")])

        assert not outcome.satisfied
        assert "default/a -> condition Available is missing" in outcome.messages

    def test_match_condition_without_status_expects_true(self, engine, make_object):
        objects = [make_object("a", conditions={"Available": "True"})]

        outcome = engine.evaluate(objects, [MatchCondition(type="Available")])

        assert outcome.satisfied

    def test_validators_are_conjunctive_per_object(self, engine, make_object):
        objects = [
            make_object("a", conditions={"Available": "True"}, spec={"replicas": 3}),
            make_object("b", conditions={"Available": "True"}, spec={"replicas": 1}),
        ]
        validators = [
            MatchCondition(type="Available", status="True"),
            JsonPointer(pointer="/spec/replicas", value="3"),
        ]

        outcome = engine.evaluate(objects, validators)

        assert outcome.matching == 1
        assert not outcome.satisfied

    def test_diagnostics_follow_validator_order(self, engine, make_object):
        objects = [make_object("a", conditions={"Available": "False"}, spec={"paused": True})]
        validators = [
            JsonPointer(pointer="/spec/paused", value="false"),
            MatchCondition(type="Available", status="True"),
        ]

        outcome = engine.evaluate(objects, validators)

        assert outcome.messages[3].startswith("default/a -> field /spec/paused is wrong")
        assert outcome.messages[4].startswith("default/a -> condition Available is wrong")

    def test_uses_injected_readers(self, make_object):
        engine = ValidatorEngine(condition_reader=lambda obj: [], field_reader=lambda obj, p: "x")

        outcome = engine.evaluate([make_object("a")], [JsonPointer(pointer="/anything", value="x")])

        assert outcome.satisfied


class TestJsonPointerValidator:
    """Tests for jsonPointer comparisons."""

    def test_string_field_round_trip(self, engine, make_object):
        obj = make_object("a")
        obj["metadata"]["annotations"] = {"release": "v1.2.3"}

        outcome = engine.evaluate([obj], [JsonPointer(pointer="/metadata/annotations/release", value="v1.2.3")])

        assert outcome.satisfied

    def test_escaped_pointer_segments(self, engine, make_object):
        obj = make_object("a")
        obj["metadata"]["annotations"] = {"example.com/owner": "team-a"}

        outcome = engine.evaluate(
            [obj], [JsonPointer(pointer="/metadata/annotations/example.com~1owner", value="team-a")]
        )

        assert outcome.satisfied

    def test_non_string_values_compare_as_json(self, engine, make_object):
        obj = make_object("a", spec={"replicas": 3, "paused": False, "selector": None})

        validators = [
            JsonPointer(pointer="/spec/replicas", value="3"),
            JsonPointer(pointer="/spec/paused", value="false"),
            JsonPointer(pointer="/spec/selector", value="null"),
        ]

        assert engine.evaluate([obj], validators).satisfied

    def test_mismatch_names_pointer_and_values(self, engine, make_object):
        obj = make_object("a", spec={"replicas": 1})

        outcome = engine.evaluate([obj], [JsonPointer(pointer="/spec/replicas", value="3")])

        assert not outcome.satisfied
        assert outcome.messages[3] == "default/a -> field /spec/replicas is wrong (expected '3', got '1')"

    def test_unresolvable_pointer(self, engine, make_object):
        obj = make_object("a")

        outcome = engine.evaluate([obj], [JsonPointer(pointer="/spec/replicas", value="3")])

        assert not outcome.satisfied
        assert outcome.messages[3].startswith("default/a -> field /spec/replicas cannot be resolved")


class TestFields:
    """Tests for field access helpers."""

    def test_read_field_list_index(self):
        assert read_field({"items": ["a", "b"]}, "/items/1") == "b"

    def test_read_field_missing(self):
        with pytest.raises(FieldNotResolvableError):
            read_field({"spec": {}}, "/spec/replicas")

    def test_read_field_end_of_list(self):
        with pytest.raises(FieldNotResolvableError):
            read_field({"items": ["a"]}, "/items/-")

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("text", "text"),
            (3, "3"),
            (1.5, "1.5"),
            (True, "true"),
            (None, "null"),
            ({"b": 1, "a": [1, 2]}, '{"a":[1,2],"b":1}'),
        ],
    )
    def test_render_value(self, value, expected):
        assert render_value(value) == expected
