"""Tests for payload parsing into SeriesFrame, live values and feed lists."""

import json
import math

import pytest

import feedlogic as fl
from feedlogic import canon, ingest, validate


def _samples(df):
    return list(zip(df.index.tolist(), df[canon.VALUE_COL].tolist()))


def test_pairs_are_sorted_and_garbage_dropped(pairs_payload):
    out = ingest.parse_payload(pairs_payload)
    validate.assert_series(out)
    assert _samples(out) == [(1000, 1.0), (3000, 3.0), (4000, 4.0)]


def test_object_map_drops_non_numeric_values():
    out = ingest.parse_payload({"1000": "5.5", "2000": "bad"})
    assert _samples(out) == [(1000, 5.5)]


def test_data_envelope_unwrapped():
    out = ingest.parse_payload({"data": [[2, 20], [1, 10]]})
    assert _samples(out) == [(1, 10.0), (2, 20.0)]


def test_millisecond_timestamps_normalised_to_seconds():
    out = ingest.parse_payload([[1_700_000_000_500, 1.0], [1_700_000_060_000, 2.0]])
    assert out.index.tolist() == [1_700_000_000, 1_700_000_060]


def test_json_text_and_bytes_payloads():
    body = json.dumps([[1, 1.5], [2, 2.5]])
    assert _samples(ingest.parse_payload(body)) == [(1, 1.5), (2, 2.5)]
    assert _samples(ingest.parse_payload(body.encode())) == [(1, 1.5), (2, 2.5)]


def test_record_dicts_accepted():
    out = ingest.parse_payload(
        [{"timestamp": 5, "value": "1.25"}, {"time": 6, "v": 2}, {"other": 1}]
    )
    assert _samples(out) == [(5, 1.25), (6, 2.0)]


@pytest.mark.parametrize(
    "payload",
    [None, 42, "not json", "", [], {}, [[1]], [["a", "b"]], {"data": None}, [1, 2, 3]],
)
def test_malformed_payloads_give_empty_series(payload):
    out = ingest.parse_payload(payload)
    assert out.empty
    assert out.index.name == canon.INDEX_NAME
    validate.assert_series(out)


def test_non_finite_and_boolean_values_excluded():
    out = ingest.parse_payload(
        [[1, math.nan], [2, math.inf], [3, True], [4, "-inf"], [5, "NaN"], [6, 0]]
    )
    assert _samples(out) == [(6, 0.0)]


def test_duplicate_timestamps_keep_arrival_order():
    out = ingest.parse_payload([[2, 1.0], [1, 9.0], [2, 2.0]])
    assert _samples(out) == [(1, 9.0), (2, 1.0), (2, 2.0)]


def test_result_is_series_frame():
    out = ingest.parse_payload([[1, 1]])
    assert isinstance(out, fl.SeriesFrame)
    assert isinstance(out.iloc[:1], fl.SeriesFrame)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (12.3456, 12.35),
        ("7", 7.0),
        ('"3.5"', 3.5),
        ({"value": 2}, 2.0),
        ("bad", None),
        (None, None),
        (math.nan, None),
        (True, None),
    ],
)
def test_parse_value(raw, expected):
    assert ingest.parse_value(raw) == expected


def test_parse_feeds_skips_entries_without_id():
    feeds = ingest.parse_feeds(
        [
            {"id": 7, "name": "Power", "tag": "house", "value": "230.4"},
            {"name": "orphan"},
            {"id": " ", "name": "blank"},
            "junk",
            {"id": "8"},
        ]
    )
    assert [f.id for f in feeds] == ["7", "8"]
    assert feeds[0].name == "Power"
    assert feeds[0].value == 230.4
    assert feeds[1].value is None


def test_parse_feeds_malformed():
    assert ingest.parse_feeds("nope") == []
    assert ingest.parse_feeds({"data": [{"id": 1}]})[0].id == "1"
