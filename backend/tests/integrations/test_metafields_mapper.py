import json
from datetime import datetime

from asset_sync.integrations.shopify.metafields import (
    NAMESPACE, BoundAsset, build_metafields_input, encode_metafield_values,
    from_destination_metadata, to_destination_metadata,
)
from conftest import make_asset


def test_to_destination_metadata_maps_all_fields():
    asset = make_asset("A1", version=3, tags=["shopify-sync", "hero"])
    bound = to_destination_metadata(
        asset, permalink="https://dam.example/media/A1", synced_at=datetime(2024, 5, 1, 12, 30, 0),
    )
    assert bound == BoundAsset(
        asset_id="A1",
        permalink="https://dam.example/media/A1",
        tags=["shopify-sync", "hero"],
        version=3,
        synced_at="2024-05-01T12:30:00Z",
    )


def test_missing_optional_fields_become_absent():
    asset = make_asset("A2", version=None, tags=[])
    bound = to_destination_metadata(asset)
    assert bound.permalink is None
    assert bound.version is None
    assert bound.tags == []

    values = encode_metafield_values(bound)
    assert "permalink" not in values
    assert "version" not in values
    assert values["tags"] == "[]"


def test_round_trip_through_metafield_nodes_keeps_tag_order():
    asset = make_asset("A3", version=7, tags=["b", "a", "shopify-sync"])
    bound = to_destination_metadata(asset, permalink="https://dam.example/media/A3")
    nodes = [
        {"key": m["key"], "value": m["value"], "namespace": m["namespace"]}
        for m in build_metafields_input("gid://shopify/MediaImage/1", bound)
    ]
    decoded = from_destination_metadata({"edges": [{"node": n} for n in nodes]})
    assert decoded == bound
    assert decoded.tags == ["b", "a", "shopify-sync"]


def test_empty_tag_list_is_distinct_from_absent():
    with_empty = from_destination_metadata({"asset_id": "A4", "tags": "[]"})
    without = from_destination_metadata({"asset_id": "A4"})
    assert with_empty.tags == []
    assert without.tags is None


def test_no_asset_id_means_unbound():
    assert from_destination_metadata({"tags": json.dumps(["x"]), "version": "2"}) is None
    assert from_destination_metadata([]) is None
    assert from_destination_metadata(None) is None
    assert from_destination_metadata({"asset_id": "   "}) is None


def test_malformed_tags_and_version_do_not_raise():
    decoded = from_destination_metadata({"asset_id": "A5", "tags": "hero, banner", "version": "not-a-number"})
    assert decoded.tags == ["hero", "banner"]
    assert decoded.version is None

    decoded = from_destination_metadata({"asset_id": "A5", "tags": '{"x": 1}', "version": "4.0"})
    assert decoded.tags is None
    assert decoded.version == 4


def test_build_metafields_input_is_typed_and_namespaced():
    bound = BoundAsset(asset_id="A6", permalink="https://dam.example/media/A6", tags=["t"], version=2,
                       synced_at="2024-01-01T00:00:00Z")
    rows = {m["key"]: m for m in build_metafields_input("gid://shopify/GenericFile/9", bound)}
    assert set(rows) == {"asset_id", "permalink", "tags", "version", "synced_at"}
    assert all(m["namespace"] == NAMESPACE for m in rows.values())
    assert all(m["ownerId"] == "gid://shopify/GenericFile/9" for m in rows.values())
    assert rows["version"]["type"] == "number_integer"
    assert rows["version"]["value"] == "2"
    assert rows["tags"]["type"] == "list.single_line_text_field"
