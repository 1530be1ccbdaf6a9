"""Tests for status condition helpers."""

from datetime import datetime, timedelta, timezone

from releasegate.gates.conditions import (
    Condition,
    find_status_condition,
    object_name,
    read_conditions,
    set_status_condition,
)

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


class TestReadConditions:
    def test_reads_conditions(self, make_object):
        obj = make_object("api", conditions={"Available": "True", "Progressing": "False"})

        conditions = read_conditions(obj)

        assert [(c.type, c.status) for c in conditions] == [("Available", "True"), ("Progressing", "False")]

    def test_missing_status(self):
        assert read_conditions({"metadata": {"name": "a"}}) == []
        assert read_conditions({"status": {"conditions": "nope"}}) == []

    def test_skips_malformed_entries(self):
        obj = {"status": {"conditions": ["text", {"status": "True"}, {"type": "Ready", "status": "True"}]}}

        assert [c.type for c in read_conditions(obj)] == ["Ready"]


class TestSetStatusCondition:
    def test_inserts_new_condition(self):
        conditions = []

        changed = set_status_condition(conditions, Condition(type="Opened", status="True"), now=T0)

        assert changed
        assert conditions[0].last_transition_time == T0

    def test_keyed_by_type(self):
        conditions = [Condition(type="Opened", status="False", last_transition_time=T0)]

        set_status_condition(conditions, Condition(type="Opened", status="True"), now=T0 + timedelta(minutes=1))

        assert len(conditions) == 1
        assert conditions[0].status == "True"
        assert conditions[0].last_transition_time == T0 + timedelta(minutes=1)

    def test_transition_time_only_moves_on_status_change(self):
        conditions = [Condition(type="Opened", status="True", reason="A", last_transition_time=T0)]

        changed = set_status_condition(
            conditions,
            Condition(type="Opened", status="True", reason="B", message="updated"),
            now=T0 + timedelta(minutes=5),
        )

        assert changed
        assert conditions[0].reason == "B"
        assert conditions[0].last_transition_time == T0

    def test_unchanged(self):
        conditions = [Condition(type="Opened", status="True", last_transition_time=T0)]

        assert not set_status_condition(conditions, Condition(type="Opened", status="True"), now=T0)


class TestHelpers:
    def test_find_status_condition(self):
        conditions = [Condition(type="A", status="True"), Condition(type="B", status="False")]

        assert find_status_condition(conditions, "B").status == "False"
        assert find_status_condition(conditions, "C") is None

    def test_condition_to_dict(self):
        data = Condition(type="Opened", status="True", reason="R", last_transition_time=T0).to_dict()

        assert data["lastTransitionTime"] == "2024-05-01T10:00:00Z"
        assert "observedGeneration" not in data
        assert Condition.from_dict(data).last_transition_time == T0

    def test_object_name(self, make_object):
        assert object_name(make_object("api", namespace="shop")) == "shop/api"
