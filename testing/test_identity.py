from change_tracker.src.identity import is_identity_array, item_key, keyed_items


def test_item_arrays_carry_identity():
    assert is_identity_array("collection.item")
    assert is_identity_array("collection.item[0].item")
    assert not is_identity_array("collection.variable")
    assert not is_identity_array("")


def test_item_key_prefers_request_locator():
    element = {
        "name": "Get users",
        "request": {"method": "get", "url": {"raw": "{{base}}/users"}},
    }
    assert item_key(element) == "request:GET {{base}}/users"
    assert item_key({"name": "Get", "request": "https://x/users"}) == "request:https://x/users"


def test_item_key_falls_back_to_name():
    assert item_key({"name": "Folder", "item": []}) == "name:Folder"
    assert item_key({"value": 1}) == ""
    assert item_key("plain") == ""


def test_keyed_items_suffixes_duplicates():
    keyed, keyless = keyed_items([{"name": "a"}, {"name": "a"}, {"value": 1}])
    assert keyed["name:a"][0] == 0
    assert keyed["name:a#2"][0] == 1
    assert keyless == [2]


def test_item_key_ignores_non_string_method():
    element = {"name": "a", "request": {"method": 1, "url": "/x"}}
    assert item_key(element) == "request:/x"
    assert item_key({"request": {"method": ["GET"], "url": {"raw": "/y"}}}) == "request:/y"
