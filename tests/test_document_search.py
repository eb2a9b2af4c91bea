from __future__ import annotations

from typing import Any

from channel_pulse.services.document_search import (
    STOP,
    collect_video_ids,
    find_continuation_token,
    walk_document,
)


def test_continuation_prefers_first_branch_in_depth_first_order() -> None:
    document = {
        "header": {
            "feedFilterChipBarRenderer": {
                "contents": [
                    {
                        "chipCloudChipRenderer": {
                            "navigationEndpoint": {
                                "continuationCommand": {"token": "header-token"}
                            }
                        }
                    }
                ]
            }
        },
        "contents": [
            {
                "continuationItemRenderer": {
                    "continuationEndpoint": {"continuationCommand": {"token": "body-token"}}
                }
            }
        ],
    }

    assert find_continuation_token(document) == "header-token"

    reordered = {"contents": document["contents"], "header": document["header"]}
    assert find_continuation_token(reordered) == "body-token"


def test_continuation_matches_token_with_sibling_endpoint_marker() -> None:
    document = {
        "items": [
            {"token": "orphan-token"},
            {"nextContinuationData": {"token": "paired-token", "continuationEndpoint": {"x": 1}}},
        ]
    }

    assert find_continuation_token(document) == "paired-token"


def test_continuation_missing_returns_none() -> None:
    assert find_continuation_token({"contents": [1, "two", None, {"token": ""}]}) is None
    assert find_continuation_token("scalar") is None


def test_video_id_extractor_requires_exact_length() -> None:
    assert collect_video_ids({"videoId": "short"}, [], limit=10) == []
    assert collect_video_ids({"videoId": "abcdefghijkl"}, [], limit=10) == []
    assert collect_video_ids({"videoId": "abcdefghijk"}, [], limit=10) == ["abcdefghijk"]


def test_video_id_extractor_ignores_non_string_values() -> None:
    document = {"videoId": 12345678901, "nested": [{"videoId": ["abcdefghijk"]}]}

    assert collect_video_ids(document, [], limit=10) == []


def test_video_id_extractor_deduplicates_in_discovery_order() -> None:
    document = {
        "a": {"videoId": "AAAAAAAAAAA"},
        "b": [{"videoId": "BBBBBBBBBBB"}, {"videoId": "AAAAAAAAAAA"}],
        "c": {"inner": {"videoId": "CCCCCCCCCCC"}},
    }
    accumulator = ["CCCCCCCCCCC"]

    result = collect_video_ids(document, accumulator, limit=10)

    assert result is accumulator
    assert result == ["CCCCCCCCCCC", "AAAAAAAAAAA", "BBBBBBBBBBB"]


def test_video_id_extractor_stops_at_limit() -> None:
    document = {"items": [{"videoId": f"video{index:06d}"} for index in range(20)]}

    assert collect_video_ids(document, [], limit=3) == [
        "video000000",
        "video000001",
        "video000002",
    ]


def test_walk_document_handles_very_deep_nesting() -> None:
    document: dict[str, Any] = {"videoId": "deepdeepdee"}
    for _ in range(5_000):
        document = {"child": [document, 7, "text", None]}

    assert collect_video_ids(document, [], limit=1) == ["deepdeepdee"]


def test_walk_document_visits_parent_before_children_left_to_right() -> None:
    document = {"name": "root", "kids": [{"name": "a", "kids": [{"name": "a1"}]}, {"name": "b"}]}
    visited: list[str] = []

    def _visit(node: dict[str, Any]) -> object:
        visited.append(node["name"])
        return STOP if node["name"] == "a1" else None

    assert walk_document(document, _visit) is True
    assert visited == ["root", "a", "a1"]
