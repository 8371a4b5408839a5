"""Tests for the WorkingSet guard."""

import pytest

from operator_kernel.guard.working_set import (
    VersionBlobEmptyError,
    WorkingSet,
    get_working_set,
    instance_already_being_updated,
    instance_to_drain,
    instance_to_reimage,
    instance_to_update,
    is_wip,
    next_instance,
    with_instance_to_drain,
    with_instance_to_update,
)
from operator_kernel.models.compute import ScaleSetInstance


def _make_instance(
    instance_id: str,
    state: str = "Succeeded",
    latest: bool = True,
) -> ScaleSetInstance:
    return ScaleSetInstance(
        instance_id=instance_id,
        provisioning_state=state,
        latest_model_applied=latest,
    )


def _name_of(instance_id: str) -> str:
    return f"c1-master-{instance_id}"


class TestNilTolerance:
    def test_none_is_idle(self):
        assert is_wip(None) is False

    def test_none_accessors(self):
        assert instance_to_update(None) is None
        assert instance_to_drain(None) is None
        assert instance_to_reimage(None) is None
        assert instance_already_being_updated(None) is None

    def test_empty_working_set_is_idle(self):
        assert is_wip(WorkingSet()) is False


class TestBuilders:
    def test_builder_sets_exactly_one_marker(self):
        instance = _make_instance("0")
        ws = with_instance_to_update(None, instance)
        assert is_wip(ws)
        assert instance_to_update(ws) == instance
        assert instance_to_drain(ws) is None

    def test_builder_does_not_mutate_argument(self):
        first = with_instance_to_update(None, _make_instance("0"))
        second = with_instance_to_drain(first, _make_instance("1"))
        assert instance_to_update(first).instance_id == "0"
        assert instance_to_update(second) is None
        assert instance_to_drain(second).instance_id == "1"

    def test_builder_replaces_existing_marker(self):
        existing = with_instance_to_drain(None, _make_instance("0"))
        ws = with_instance_to_update(existing, _make_instance("1"))
        assert ws == WorkingSet(instance_to_update=_make_instance("1"))


class TestGetWorkingSet:
    def test_in_progress_wins(self):
        instances = [
            _make_instance("0", latest=False),
            _make_instance("1", state="Updating"),
        ]
        ws = get_working_set(instances, set(), {}, "2.0.0", _name_of)
        assert instance_already_being_updated(ws).instance_id == "1"
        assert instance_to_update(ws) is None

    def test_update_before_reimage(self):
        instances = [_make_instance("0"), _make_instance("1", latest=False)]
        versions = {_name_of("0"): "1.0.0", _name_of("1"): "1.0.0"}
        ws = get_working_set(instances, set(), versions, "2.0.0", _name_of)
        assert instance_to_update(ws).instance_id == "1"

    def test_outdated_instance_is_drained_first(self):
        instances = [_make_instance("0"), _make_instance("1")]
        versions = {_name_of("0"): "2.0.0", _name_of("1"): "1.0.0"}
        ws = get_working_set(instances, set(), versions, "2.0.0", _name_of)
        assert instance_to_drain(ws).instance_id == "1"

    def test_drained_instance_is_reimaged(self):
        instances = [_make_instance("0")]
        versions = {_name_of("0"): "1.0.0"}
        ws = get_working_set(instances, {_name_of("0")}, versions, "2.0.0", _name_of)
        assert instance_to_reimage(ws).instance_id == "0"
        assert instance_to_drain(ws) is None

    def test_untracked_instances_are_skipped(self):
        instances = [_make_instance("0")]
        ws = get_working_set(instances, set(), {}, "2.0.0", _name_of)
        assert ws is None

    def test_up_to_date_fleet_is_idle(self):
        instances = [_make_instance("0"), _make_instance("1")]
        versions = {_name_of("0"): "2.0.0", _name_of("1"): "2.0.0"}
        assert get_working_set(instances, set(), versions, "2.0.0", _name_of) is None

    def test_missing_versions_raise(self):
        with pytest.raises(VersionBlobEmptyError):
            get_working_set([_make_instance("0")], set(), None, "2.0.0", _name_of)

    def test_missing_versions_do_not_hide_in_progress(self):
        ws = get_working_set([_make_instance("0", state="Creating")], set(), None, "2.0.0", _name_of)
        assert instance_already_being_updated(ws).instance_id == "0"


class TestNextInstance:
    def test_missing_versions_mean_idle(self):
        assert next_instance([_make_instance("0")], set(), None, "2.0.0", _name_of) is None

    def test_returns_working_set(self):
        ws = next_instance([_make_instance("0", latest=False)], set(), {}, "2.0.0", _name_of)
        assert instance_to_update(ws).instance_id == "0"
