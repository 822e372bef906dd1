"""Tests for path-addressed compression of GraphQL-style responses."""

import copy
import json

import pytest

from terse_json.core import compress
from terse_json.envelope import MalformedEnvelopeError, is_path_payload
from terse_json.graphql import (
    PathCompressOptions,
    compress_graphql_response,
    find_compressible_arrays,
    get_at_path,
    parse_path,
    process_graphql_response,
    set_at_path,
)
from terse_json.view import TerseView


def _response():
    return {
        "data": {
            "users": [
                {"id": 1, "name": "Alice", "emailAddress": "alice@example.com"},
                {"id": 2, "name": "Bob", "emailAddress": "bob@example.com"},
            ],
            "teams": [
                {"name": "Core", "memberCount": 4},
                {"name": "Infra", "memberCount": 2},
            ],
            "viewer": {"login": "alice"},
        },
        "errors": [{"message": "partial result", "path": ["viewer", "avatar"]}],
        "extensions": {"cost": 7},
    }


def _nested_response():
    return {
        "data": {
            "users": [
                {
                    "userName": "alice",
                    "orders": [
                        {"productName": "Widget", "quantity": 5},
                        {"productName": "Gadget", "quantity": 1},
                    ],
                },
                {
                    "userName": "bob",
                    "orders": [
                        {"productName": "Sprocket", "quantity": 2},
                        {"productName": "Widget", "quantity": 3},
                    ],
                },
            ]
        }
    }


def test_parse_and_walk_paths():
    assert parse_path("data.users[0].orders") == ["data", "users", 0, "orders"]
    response = _nested_response()
    assert get_at_path(response, "data.users[1].userName") == "bob"
    assert get_at_path(response, "data.users[5].userName") is None
    assert get_at_path(response, "data.missing.deeper") is None


def test_set_at_path():
    response = _nested_response()
    set_at_path(response, "data.users[0].userName", "carol")
    assert response["data"]["users"][0]["userName"] == "carol"
    with pytest.raises(KeyError):
        set_at_path(response, "data.missing.value", 1)
    with pytest.raises(ValueError):
        set_at_path(response, "", 1)


def test_find_compressible_arrays_reports_paths():
    found = find_compressible_arrays(_response()["data"])
    assert [path for path, _ in found] == ["data.users", "data.teams"]

    nested = [path for path, _ in find_compressible_arrays(_nested_response()["data"])]
    assert nested == ["data.users", "data.users[0].orders", "data.users[1].orders"]


def test_find_compressible_arrays_honors_length_and_exclusions():
    data = _response()["data"]
    assert find_compressible_arrays(data, min_array_length=3) == []
    found = find_compressible_arrays(data, exclude_paths={"data.teams"})
    assert [path for path, _ in found] == ["data.users"]


def test_compress_shares_one_table_across_arrays():
    result = compress_graphql_response(_response())
    assert is_path_payload(result)
    meta = result["meta"]
    assert meta["version"] == 1
    assert meta["paths"] == ["data.users", "data.teams"]

    alias = {name: short for short, name in meta["table"].items()}["name"]
    assert result["data"]["users"][0][alias] == "Alice"
    assert result["data"]["teams"][1][alias] == "Infra"
    assert "id" not in meta["table"].values()
    assert result["data"]["viewer"] == {"login": "alice"}


def test_single_array_table_matches_rest_compression():
    response = {"data": {"users": _response()["data"]["users"]}}
    result = compress_graphql_response(response)
    assert result["meta"]["table"] == compress(response["data"]["users"])["table"]


def test_errors_and_extensions_are_preserved():
    result = compress_graphql_response(_response())
    assert result["errors"] == [{"message": "partial result", "path": ["viewer", "avatar"]}]
    assert result["extensions"] == {"cost": 7}


def test_compress_does_not_mutate_response():
    response = _nested_response()
    snapshot = copy.deepcopy(response)
    compress_graphql_response(response)
    assert response == snapshot


def test_unchanged_when_nothing_qualifies():
    response = {"data": {"viewer": {"login": "alice"}, "tags": ["a", "b"]}}
    assert compress_graphql_response(response) is response

    empty = {"data": None, "errors": [{"message": "boom"}]}
    assert compress_graphql_response(empty) is empty

    short = _response()
    assert compress_graphql_response(short, PathCompressOptions(min_array_length=5)) is short

    assert compress_graphql_response([1, 2]) == [1, 2]


def test_should_compress_and_exclude_paths_filter_arrays():
    only_users = PathCompressOptions(should_compress=lambda array, path: path == "data.users")
    result = compress_graphql_response(_response(), only_users)
    assert result["meta"]["paths"] == ["data.users"]
    assert result["data"]["teams"] == _response()["data"]["teams"]

    excluded = compress_graphql_response(_response(), PathCompressOptions(exclude_paths=["data.users"]))
    assert excluded["meta"]["paths"] == ["data.teams"]
    assert excluded["data"]["users"] == _response()["data"]["users"]


def test_process_with_views():
    result = process_graphql_response(compress_graphql_response(_response()))
    users = result["data"]["users"]
    assert all(isinstance(user, TerseView) for user in users)
    assert users[0].name == "Alice"
    assert users[1]["emailAddress"] == "bob@example.com"
    assert result["data"]["teams"][0].memberCount == 4
    assert "meta" not in result
    assert result["extensions"] == {"cost": 7}


def test_process_with_eager_expansion():
    original = _response()
    result = process_graphql_response(compress_graphql_response(original), use_view=False)
    assert result == original
    assert type(result["data"]["users"][0]) is dict


def test_process_handles_nested_paths_once():
    original = _nested_response()
    compressed = json.loads(json.dumps(compress_graphql_response(original)))
    assert "data.users[0].orders" in compressed["meta"]["paths"]

    lazy = process_graphql_response(compressed)
    orders = lazy["data"]["users"][0].orders
    assert isinstance(orders[0], TerseView)
    assert orders[0].productName == "Widget"
    assert lazy["data"]["users"][1].orders[1].quantity == 3
    assert json.loads(json.dumps(lazy, default=lambda view: view.to_dict())) == original

    assert process_graphql_response(compressed, use_view=False) == original


def test_shallow_mode_keeps_nested_arrays_compressed():
    original = _nested_response()
    result = compress_graphql_response(original, PathCompressOptions(nested_handling="shallow"))
    meta = result["meta"]
    assert "data.users[0].orders" in meta["paths"]

    alias = {name: short for short, name in meta["table"].items()}
    orders = result["data"]["users"][0][alias["orders"]]
    assert orders[0][alias["productName"]] == "Widget"
    assert "productName" not in orders[0]

    lazy = process_graphql_response(result)
    assert lazy["data"]["users"][0].orders[0].productName == "Widget"
    assert lazy["data"]["users"][1].orders[0].quantity == 2
    assert process_graphql_response(result, use_view=False) == original


def test_depth_limited_mode_round_trips_nested_arrays():
    original = _nested_response()
    result = compress_graphql_response(original, PathCompressOptions(nested_handling=1))
    assert process_graphql_response(result, use_view=False) == original
    assert json.loads(json.dumps(process_graphql_response(result), default=lambda view: view.to_dict())) == original


def test_process_passes_through_plain_responses():
    response = {"data": {"users": [{"name": "Alice"}]}}
    assert process_graphql_response(response) is response
    assert process_graphql_response(None) is None


def test_process_rejects_bad_meta():
    compressed = compress_graphql_response(_response())
    compressed["meta"]["version"] = 99
    with pytest.raises(MalformedEnvelopeError):
        process_graphql_response(compressed)

    compressed["meta"]["version"] = 1
    compressed["meta"]["table"] = ["a"]
    with pytest.raises(MalformedEnvelopeError):
        process_graphql_response(compressed)
