from dataclasses import dataclass

import pytest

from eventlogger.encrypt.classification import (
    REDACTED_DATA,
    DataClassification,
    FilterOperation,
    TagInfo,
    default_filter_operations,
)
from eventlogger.encrypt.pointer import PointerNotFoundError
from eventlogger.encrypt.testkit import TEST_MAP_FIELD, TaggedTestMap
from eventlogger.encrypt.tracked import PointerTag, Taggable, TrackedMap, TrackedMaps
from eventlogger.encrypt.values import ValueFilter
from eventlogger.event import InvalidParameterError


@dataclass
class _Person:
    name: str


class _NameRedactingFilter(ValueFilter):
    def filter_fields(self, obj, overrides, maps, options=None, ignore_taggable=False):
        obj.name = self.filter_value(
            obj.name,
            TagInfo(DataClassification.UNKNOWN, FilterOperation.UNKNOWN),
            options,
        )


def _overrides():
    overrides = default_filter_operations()
    for cls, op in overrides.items():
        if op in (FilterOperation.ENCRYPT, FilterOperation.HMAC_SHA256):
            overrides[cls] = FilterOperation.REDACT
    return overrides


def _tracked(mapping):
    maps = TrackedMaps()
    maps.tracked[id(mapping)] = TrackedMap(value=mapping)
    return maps


def test_new_tracked_maps_no_args():
    assert TrackedMaps().tracked == {}


def test_new_tracked_maps_bad_map_value():
    with pytest.raises(InvalidParameterError, match="str is not a valid parameter type"):
        TrackedMaps(TrackedMap(value=""))


def test_new_tracked_maps_nil_map():
    with pytest.raises(InvalidParameterError, match="missing map"):
        TrackedMaps(None)


def test_new_tracked_maps_nil_map_value():
    with pytest.raises(InvalidParameterError, match="map value is missing"):
        TrackedMaps(TrackedMap())


def test_new_tracked_maps_valid():
    mapping = {"eve": "alice"}
    maps = TrackedMaps(TrackedMap(value=mapping, filtered=True))
    assert maps.tracked == {id(mapping): TrackedMap(value=mapping, filtered=True)}


def test_unfiltered_simple():
    m1 = {"bob": "eve"}
    m2 = {"eve": "alice"}
    maps = TrackedMaps(TrackedMap(value=m1, filtered=True), TrackedMap(value=m2))
    assert maps.unfiltered() == [TrackedMap(value=m2, filtered=False)]


@pytest.mark.parametrize(
    "tracked_map, message",
    [
        (None, "missing map"),
        (TrackedMap(), "map value is missing"),
        (TrackedMap(value=""), "str is not a valid parameter type"),
    ],
)
def test_track_map_errors(tracked_map, message):
    with pytest.raises(InvalidParameterError, match=message):
        TrackedMaps().track_map(tracked_map)


def test_track_map_valid_and_duplicate_keeps_first():
    mapping = {"eve": "alice"}
    maps = TrackedMaps()
    maps.track_map(TrackedMap(value=mapping))
    maps.track_map(TrackedMap(value=mapping, filtered=True))
    assert maps.tracked == {id(mapping): TrackedMap(value=mapping)}
    assert maps.get_tracked(mapping) == TrackedMap(value=mapping)


def test_get_tracked_missing():
    assert TrackedMaps().get_tracked({"a": "b"}) is None


def test_mark_field_filtered():
    tracked_map = TrackedMap(value={})
    tracked_map.mark_field_filtered("a")
    tracked_map.mark_field_filtered("b")
    assert tracked_map.filtered_fields == {"a", "b"}


def test_pointer_tag_fields():
    tag = PointerTag("/foo", DataClassification.UNKNOWN)
    assert tag.pointer == "/foo"
    assert tag.classification == DataClassification.UNKNOWN
    assert tag.filter is None


def test_track_taggable_missing_pointer():
    with pytest.raises(InvalidParameterError, match="missing pointer"):
        TrackedMaps().track_taggable(TaggedTestMap(), "")


def test_track_taggable_missing_taggable():
    with pytest.raises(InvalidParameterError, match="missing taggable"):
        TrackedMaps().track_taggable(None, "/" + TEST_MAP_FIELD)


def test_track_taggable_bad_path():
    with pytest.raises(InvalidParameterError, match="invalid taggable pointer"):
        TrackedMaps().track_taggable(TaggedTestMap(), "missing-initial-path-delimiter")


def test_track_taggable_pointer_path_invalid():
    with pytest.raises(PointerNotFoundError, match="/unknownMap at part 0: couldn't find key"):
        TrackedMaps().track_taggable(TaggedTestMap(), "/unknownMap/" + TEST_MAP_FIELD)


def test_track_taggable_valid_already_tracked():
    test_map = TaggedTestMap({TEST_MAP_FIELD: "alice", TEST_MAP_FIELD + "2": "bob"})
    maps = TrackedMaps()
    maps.tracked[id(test_map)] = TrackedMap(value=test_map, filtered_fields=set())
    maps.track_taggable(test_map, "/" + TEST_MAP_FIELD)
    assert maps.tracked == {
        id(test_map): TrackedMap(value=test_map, filtered_fields={TEST_MAP_FIELD})
    }


def test_track_taggable_tracks_new_map():
    test_map = TaggedTestMap({TEST_MAP_FIELD: "alice"})
    maps = TrackedMaps()
    maps.track_taggable(test_map, "/" + TEST_MAP_FIELD)
    assert maps.get_tracked(test_map).filtered_fields == {TEST_MAP_FIELD}


def test_track_taggable_nested_map():
    inner = {TEST_MAP_FIELD: "alice"}
    outer = TaggedTestMap({"inner": inner})
    maps = TrackedMaps()
    maps.track_taggable(outer, "/inner/" + TEST_MAP_FIELD)
    assert maps.get_tracked(outer) is None
    assert maps.get_tracked(inner).filtered_fields == {TEST_MAP_FIELD}


def test_tagged_test_map_is_taggable():
    test_map = TaggedTestMap({TEST_MAP_FIELD: "alice"})
    assert isinstance(test_map, Taggable)
    assert not isinstance({}, Taggable)
    maps = TrackedMaps()
    for tag in test_map.tags():
        maps.track_taggable(test_map, tag.pointer)
    assert maps.get_tracked(test_map).filtered_fields == {TEST_MAP_FIELD, "public-foo"}


def test_process_unfiltered_missing_filter():
    with pytest.raises(InvalidParameterError, match="missing filter node"):
        TrackedMaps().process_unfiltered(None, _overrides())


def test_process_unfiltered_not_a_map():
    maps = _tracked(["string-slice"])
    with pytest.raises(InvalidParameterError, match=r"unfiltered value \(list\) is a not a map"):
        maps.process_unfiltered(ValueFilter(), _overrides())


def test_process_unfiltered_nil_field():
    mapping = {TEST_MAP_FIELD: None}
    _tracked(mapping).process_unfiltered(ValueFilter(), _overrides())
    assert mapping == {TEST_MAP_FIELD: None}


def test_process_unfiltered_no_tracked_maps():
    maps = TrackedMaps()
    maps.process_unfiltered(ValueFilter(), _overrides())
    assert maps.unfiltered() == []


@pytest.mark.parametrize(
    "value, expected",
    [
        ("alice", REDACTED_DATA),
        (b"alice", REDACTED_DATA.encode()),
        (["alice"], [REDACTED_DATA]),
        ([b"alice"], [REDACTED_DATA.encode()]),
        ({TEST_MAP_FIELD: "alice"}, {TEST_MAP_FIELD: REDACTED_DATA}),
        ([{TEST_MAP_FIELD: "alice"}], [{TEST_MAP_FIELD: REDACTED_DATA}]),
        (22, 22),
    ],
)
def test_process_unfiltered_values(value, expected):
    mapping = {TEST_MAP_FIELD: value}
    maps = _tracked(mapping)
    maps.process_unfiltered(ValueFilter(), _overrides())
    assert mapping == {TEST_MAP_FIELD: expected}
    assert maps.unfiltered() == []


def test_process_unfiltered_marks_filtered_and_clears_fields():
    mapping = {"foo": "alice", "bar": "bob"}
    maps = TrackedMaps()
    maps.tracked[id(mapping)] = TrackedMap(value=mapping, filtered_fields={"foo"})
    maps.process_unfiltered(ValueFilter(), _overrides())
    assert mapping == {"foo": "alice", "bar": REDACTED_DATA}
    tracked_map = maps.get_tracked(mapping)
    assert tracked_map.filtered is True
    assert tracked_map.filtered_fields is None


def test_process_unfiltered_struct_value():
    mapping = {TEST_MAP_FIELD: _Person(name="alice")}
    _tracked(mapping).process_unfiltered(_NameRedactingFilter(), _overrides())
    assert mapping[TEST_MAP_FIELD] == _Person(name=REDACTED_DATA)


def test_process_unfiltered_slice_of_structs():
    mapping = {TEST_MAP_FIELD: [_Person(name="alice")]}
    _tracked(mapping).process_unfiltered(_NameRedactingFilter(), _overrides())
    assert mapping[TEST_MAP_FIELD] == [_Person(name=REDACTED_DATA)]


def test_process_unfiltered_struct_requires_field_filter():
    mapping = {TEST_MAP_FIELD: _Person(name="alice")}
    with pytest.raises(InvalidParameterError, match="cannot filter fields of _Person"):
        _tracked(mapping).process_unfiltered(ValueFilter(), _overrides())


def test_process_unfiltered_skips_already_filtered_maps():
    mapping = {TEST_MAP_FIELD: "alice"}
    maps = TrackedMaps(TrackedMap(value=mapping, filtered=True))
    maps.process_unfiltered(ValueFilter(), _overrides())
    assert mapping == {TEST_MAP_FIELD: "alice"}