from change_tracker.src.diff import MODIFIED, ChangeRecord
from change_tracker.src.enrich import (
    decode_modification,
    endpoint_name,
    enrich,
    human_path,
    resource_type,
)


SNAPSHOT = {"collection": {"item": [{"name": "Users", "item": [{"name": "Create user"}]}]}}


def test_human_path_labels_known_segments():
    segments = ["collection", "item", "[0]", "request", "url"]
    assert human_path(segments) == "Collection → Items → #0 → Request → URL"
    assert human_path(["collection", "variable", "[1]"]) == "Collection → variable → [1]"


def test_resource_type_precedence():
    assert resource_type("collection.item[0].request.url") == "request"
    assert resource_type("collection.item[0].response[0].body") == "response"
    assert resource_type("collection.info.name") == "info"
    assert resource_type("collection.item[2]") == "endpoint"
    assert resource_type("collection.variable[0]") == "collection"


def test_endpoint_name_from_snapshot():
    assert endpoint_name("collection.item[0].request.url", snapshot=SNAPSHOT) == "Users"
    assert endpoint_name("collection.item[0].item[0].request", snapshot=SNAPSHOT) == "Create user"


def test_endpoint_name_from_name_modification():
    assert endpoint_name("collection.item[4].name", '"Orders"') == "Orders"


def test_endpoint_name_fallbacks():
    assert endpoint_name("collection.item[3].request") == "Endpoint 3"
    assert endpoint_name("collection.info.name") == ""


def test_decode_modification_keeps_hash_tokens():
    assert decode_modification('{"a": 1}') == {"a": 1}
    assert decode_modification("sha256:abc") == "sha256:abc"
    assert decode_modification(None) is None


def test_enrich_populates_all_fields():
    record = ChangeRecord(change_type=MODIFIED, path="collection.item[0].request.url", modification='"x"')
    enriched = enrich(record, SNAPSHOT)
    assert enriched.path_segments == ["collection", "item", "[0]", "request", "url"]
    assert enriched.endpoint_name == "Users"
    assert enriched.resource_type == "request"
    payload = enriched.to_dict()
    assert payload["human_path"] == "Collection → Items → #0 → Request → URL"
    assert payload["path"] == record.path
