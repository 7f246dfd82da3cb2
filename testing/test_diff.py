import json

import pytest

from change_tracker.src.diff import (
    ADDED,
    DELETED,
    MODIFIED,
    ChangeRecord,
    DiffOptions,
    content_hash,
    diff,
    has_structural_change,
    is_hash_token,
)
from change_tracker.src.errors import DecodeError


def _collection(items, name="Demo API"):
    return {"collection": {"info": {"name": name, "_postman_id": "abc"}, "item": items}}


USERS = {"name": "Get users", "request": {"method": "GET", "url": "https://api.example.com/users"}}
ORDERS = {"name": "Get orders", "request": {"method": "GET", "url": "https://api.example.com/orders"}}


def _summary(changes):
    return [(change.change_type, change.path) for change in changes]


def test_identical_documents_produce_no_changes():
    doc = _collection([USERS, ORDERS])
    assert diff(doc, json.loads(json.dumps(doc))) == []


def test_accepts_serialized_snapshots():
    changes = diff('{"a": 1}', b'{"a": 2}')
    assert _summary(changes) == [(MODIFIED, "a")]
    assert changes[0].modification == "2"


def test_pure_insertion_reports_single_added_record():
    old = {"collection": {"info": {"name": "x"}}}
    new = {"collection": {"info": {"name": "x", "description": "d"}}}
    changes = diff(old, new)
    assert _summary(changes) == [(ADDED, "collection.info.description")]
    assert changes[0].modification == '"d"'


def test_removal_is_mirror_of_insertion():
    old = {"collection": {"info": {"name": "x"}}}
    new = {"collection": {"info": {"name": "x", "description": "d"}}}
    forward = diff(old, new)
    backward = diff(new, old)
    assert [c.path for c in forward] == [c.path for c in backward]
    assert backward[0].change_type == DELETED
    assert backward[0].modification == forward[0].modification


def test_structural_change_suppresses_modifications():
    changes = diff({"a": 1, "b": 1}, {"a": 2, "c": 1})
    assert sorted(_summary(changes)) == [(ADDED, "c"), (DELETED, "b")]


def test_reordered_items_are_not_changes():
    assert diff(_collection([USERS, ORDERS]), _collection([ORDERS, USERS])) == []


def test_reordered_keyless_items_are_not_changes():
    old = {"collection": {"item": [{"x": 1}, {"x": 2}]}}
    new = {"collection": {"item": [{"x": 2}, {"x": 1}]}}
    assert diff(old, new) == []


def test_renamed_item_is_a_name_modification():
    renamed = dict(USERS, name="List users")
    changes = diff(_collection([USERS]), _collection([renamed]))
    assert _summary(changes) == [(MODIFIED, "collection.item[0].name")]
    assert changes[0].modification == '"List users"'


def test_rename_matched_by_top_level_url():
    old = {"item": [{"name": "Get User", "url": "/u/{id}"}]}
    new = {"item": [{"name": "Get User V2", "url": "/u/{id}"}]}
    changes = diff(old, new)
    assert _summary(changes) == [(MODIFIED, "item[0].name")]


def test_deletion_suppresses_sibling_value_change():
    changes = diff({"a": 1, "b": 2}, {"a": 2})
    assert _summary(changes) == [(DELETED, "b")]
    assert changes[0].modification == "2"


def test_deleted_item_is_reported_once_with_old_value():
    changes = diff(_collection([USERS, ORDERS]), _collection([ORDERS]))
    assert _summary(changes) == [(DELETED, "collection.item[0]")]
    assert json.loads(changes[0].modification) == USERS


def test_positional_array_growth():
    changes = diff({"tags": ["a"]}, {"tags": ["a", "b"]})
    assert _summary(changes) == [(ADDED, "tags[1]")]


def test_type_mismatch_is_modification():
    assert _summary(diff({"a": 1}, {"a": "1"})) == [(MODIFIED, "a")]
    assert _summary(diff({"a": True}, {"a": 1})) == [(MODIFIED, "a")]


def test_special_keys_are_quoted():
    changes = diff({"a.b": 1}, {"a.b": 2})
    assert _summary(changes) == [(MODIFIED, '["a.b"]')]


def test_large_values_are_hashed():
    options = DiffOptions(hash_threshold=10)
    changes = diff({"a": "x" * 50}, {"a": "y" * 50}, options)
    assert len(changes) == 1
    assert is_hash_token(changes[0].modification)
    assert len(changes[0].modification) == len("sha256:") + 64


def test_max_changes_caps_output():
    changes = diff({"a": 1, "b": 1, "c": 1}, {"a": 2, "b": 2, "c": 2}, DiffOptions(max_changes=2))
    assert len(changes) == 2


def test_max_depth_reports_subtree_as_modified():
    changes = diff({"a": {"b": 1}}, {"a": {"b": 2}}, DiffOptions(max_depth=1))
    assert _summary(changes) == [(MODIFIED, "a")]
    assert json.loads(changes[0].modification) == {"b": 2}


def test_oversized_containers_compared_opaquely():
    changes = diff({"a": [1, 2, 3, 4]}, {"a": [1, 2, 3, 5]}, DiffOptions(opaque_threshold=3))
    assert _summary(changes) == [(MODIFIED, "a")]


def test_ignored_paths_do_not_trigger_structural_mode():
    old = {"collection": {"info": {"_postman_id": "1", "name": "a"}}}
    new = {"collection": {"info": {"name": "b"}}}
    options = DiffOptions(ignore_paths=["**._postman_id"])
    assert not has_structural_change(old, new, options)
    assert _summary(diff(old, new, options)) == [(MODIFIED, "collection.info.name")]


def test_invalid_json_raises_decode_error():
    with pytest.raises(DecodeError):
        diff("{bad", "{}")


def test_content_hash_ignores_volatile_fields():
    assert content_hash({"a": 1, "_postman_id": "x"}) == content_hash({"a": 1, "_postman_id": "y"})
    assert content_hash({"a": 1}) != content_hash({"a": 2})


def test_change_record_dict_round_trip():
    changes = diff({"a": 1}, {"a": 2})
    restored = ChangeRecord.from_dict(changes[0].to_dict())
    assert restored == changes[0]
    assert changes[0].to_dict()["created_at"].endswith("Z")


def test_non_string_request_method_does_not_break_diff():
    doc = {"collection": {"item": [{"name": "a", "request": {"method": 1, "url": "/x"}}]}}
    assert diff(doc, json.loads(json.dumps(doc))) == []


def test_ignored_extra_indices_are_not_structural():
    old = {"tags": ["a"], "c": 1}
    new = {"tags": ["a", "b"], "c": 2}
    options = DiffOptions(ignore_paths=["tags[1]"])
    assert not has_structural_change(old, new, options)
    assert _summary(diff(old, new, options)) == [(MODIFIED, "c")]


def test_replaced_item_at_same_index_keeps_first_record():
    old = _collection([USERS, ORDERS])
    invoices = {"name": "Get invoices", "request": {"method": "GET", "url": "https://api.example.com/invoices"}}
    changes = diff(old, _collection([USERS, invoices]))
    assert _summary(changes) == [(DELETED, "collection.item[1]")]
    assert json.loads(changes[0].modification) == ORDERS
