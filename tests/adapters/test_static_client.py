"""Tests for the file-backed graph client."""

import pytest

from _support.project import (
    ASSET_GRAPH_ID,
    LIME_KILN_ID,
    OLD_MILL_ID,
    REGISTRY_GRAPH_ID,
    context_for,
    heritage_asset_graph,
    link_assets,
)
from heritage_spine.adapters.static_client import StaticGraphClient, StaticModel, display_value
from heritage_spine.core.errors import LookupFailureError
from heritage_spine.core.protocols import GraphClient, ModelHandle, ResourceHandle


# ── Helpers ──────────────────────────────────────────────────────────────


async def loaded_client(context, include_private=False):
    client = StaticGraphClient.for_run(context)
    model = await client.get(ASSET_GRAPH_ID, include_private)
    return client, model


async def drain(client, model_id):
    return [resource async for resource in client.load_all(model_id)]


def tile(tile_id, nodegroup_id, data=None, parent=None):
    return {"tileid": tile_id, "nodegroup_id": nodegroup_id, "parenttile_id": parent, "data": data or {}}


# ── Tests ────────────────────────────────────────────────────────────────


class TestDisplayValue:
    def test_localized_string(self):
        assert display_value({"en": {"value": "Mill", "direction": "ltr"}}) == "Mill"
        assert display_value({"ga": {"value": "Muileann"}}, "en") == "Muileann"

    def test_other_values_unchanged(self):
        assert display_value({"type": "Point"}) == {"type": "Point"}
        assert display_value(3) == 3


class TestStaticModel:
    def make_model(self, permitted=None, default_allow=False):
        model = StaticModel(client=None, graph=heritage_asset_graph(), include_private=default_allow)
        if permitted is not None:
            model.set_permitted_nodegroups(permitted)
        return model

    def test_satisfies_protocol(self):
        assert isinstance(self.make_model(), ModelHandle)

    def test_prune_tiles_by_alias(self):
        model = self.make_model({"names": True, "private_notes": False})
        kept = model.prune_tiles([tile("t1", "ng-names"), tile("t2", "ng-notes"), tile("t3", "ng-loc")])
        assert [t["tileid"] for t in kept] == ["t1"]

    def test_children_of_pruned_tiles_are_pruned(self):
        model = self.make_model({"geometry": True, "location_data": False})
        kept = model.prune_tiles([tile("loc", "ng-loc"), tile("geom", "ng-geom", parent="loc")])
        assert kept == []

    def test_predicates_are_evaluated_per_tile(self):
        model = self.make_model({"names": lambda t: t["data"].get("n-name-use") == "Primary"})
        kept = model.prune_tiles(
            [tile("a", "ng-names", {"n-name-use": "Primary"}), tile("b", "ng-names", {"n-name-use": "Alternative"})]
        )
        assert [t["tileid"] for t in kept] == ["a"]

    def test_default_allow(self):
        model = self.make_model()
        model.set_default_allow_all_nodegroups(True)
        assert len(model.prune_tiles([tile("t", "ng-notes")])) == 1

    def test_tree_nests_groups_and_lists_cardinality_n(self):
        model = self.make_model(default_allow=True)
        tree = model.tree(
            [
                tile("n1", "ng-names", {"n-name": {"en": {"value": "Mill"}}}),
                tile("n2", "ng-names", {"n-name": "Old Mill"}),
                tile("loc", "ng-loc"),
                tile("geom", "ng-geom", {"n-coords": [1, 2]}, parent="loc"),
            ],
            "en",
        )
        assert tree["names"] == [{"name": "Mill"}, {"name": "Old Mill"}]
        assert tree["location_data"] == {"geometry": {"geospatial_coordinates": [1, 2]}}

    def test_unknown_datatype_values_pass_through(self):
        graph = heritage_asset_graph()
        next(n for n in graph["nodes"] if n["nodeid"] == "n-name")["datatype"] = "bilingual-name"
        names = [tile("n1", "ng-names", {"n-name": {"en": {"value": "Mill"}}})]

        raw = StaticModel(StaticGraphClient({}, lambda graph_id: []), graph, include_private=True)
        assert raw.tree(names, "en")["names"] == [{"name": {"en": {"value": "Mill"}}}]

        client = StaticGraphClient({}, lambda graph_id: [], custom_datatypes={"bilingual-name": "string"})
        mapped = StaticModel(client, graph, include_private=True)
        assert mapped.tree(names, "en")["names"] == [{"name": "Mill"}]

    def test_orphan_nested_tile_sits_under_ancestors(self):
        model = self.make_model(default_allow=True)
        tree = model.tree([tile("geom", "ng-geom", {"n-coords": [1, 2]})], "en")
        assert tree == {"location_data": {"geometry": {"geospatial_coordinates": [1, 2]}}}


class TestStaticGraphClient:
    @pytest.mark.asyncio
    async def test_satisfies_protocol(self, project_context):
        assert isinstance(StaticGraphClient.for_run(project_context), GraphClient)

    @pytest.mark.asyncio
    async def test_models_by_id_or_class_name(self, project_context):
        client = StaticGraphClient.for_run(project_context)
        by_name = await client.get("HeritageAsset", False)
        by_id = await client.get(ASSET_GRAPH_ID, False)
        assert by_name is by_id

    @pytest.mark.asyncio
    async def test_unknown_model(self, project_context):
        client = StaticGraphClient.for_run(project_context)
        with pytest.raises(LookupFailureError):
            await client.load_graph("Nothing", False)

    @pytest.mark.asyncio
    async def test_load_all_filters_by_graph(self, project_context):
        client = StaticGraphClient.for_run(project_context)
        assets = await drain(client, ASSET_GRAPH_ID)
        registries = await drain(client, REGISTRY_GRAPH_ID)
        assert [r.id for r in assets] == [OLD_MILL_ID, LIME_KILN_ID]
        assert len(registries) == 1

    @pytest.mark.asyncio
    async def test_find_needs_materialized_resource(self, project_context):
        client, model = await loaded_client(project_context)
        with pytest.raises(LookupFailureError):
            await model.find(OLD_MILL_ID)
        await drain(client, ASSET_GRAPH_ID)
        resource = await model.find(OLD_MILL_ID)
        assert isinstance(resource, ResourceHandle)
        assert await resource.get_name() == "Old Mill"

    @pytest.mark.asyncio
    async def test_find_rejects_wrong_graph(self, project_context):
        client = StaticGraphClient.for_run(project_context)
        await drain(client, REGISTRY_GRAPH_ID)
        registry_model = await client.get(REGISTRY_GRAPH_ID, False)
        await drain(client, ASSET_GRAPH_ID)
        with pytest.raises(LookupFailureError, match="belongs to graph"):
            await registry_model.find(OLD_MILL_ID)

    @pytest.mark.asyncio
    async def test_resource_views(self, project_context):
        client, model = await loaded_client(project_context)
        model.set_permitted_nodegroups({"names": True, "location_data": True, "geometry": True})
        await drain(client, ASSET_GRAPH_ID)
        resource = await model.find(OLD_MILL_ID)

        assert await resource.try_get("names.0.name") == "Old Mill"
        geometry = await resource.try_get("location_data.geometry.geospatial_coordinates")
        assert geometry["type"] == "FeatureCollection"
        assert await resource.try_get("private_notes") is None
        static = await resource.to_static()
        assert {t["nodegroup_id"] for t in static["tiles"]} == {"ng-names", "ng-loc", "ng-geom"}
        assert (await resource.for_json())["names"][0]["name_use_type"] == "Primary"

    @pytest.mark.asyncio
    async def test_custom_datatypes_come_from_prebuild(self, project_context):
        project_context.project.prebuild.custom_datatypes = {"bilingual-name": "string"}
        client = StaticGraphClient.for_run(project_context)
        model = await client.get(ASSET_GRAPH_ID, False)
        assert model.datatype_of({"datatype": "bilingual-name"}) == "string"
        assert model.datatype_of({"datatype": "number"}) == "number"


class TestRelatedResources:
    @pytest.mark.asyncio
    async def test_linked_resources_are_wrapped(self, project_dir):
        link_assets(project_dir)
        client, model = await loaded_client(context_for(project_dir))
        model.set_permitted_nodegroups({"names": True, "related_assets": True})
        await drain(client, ASSET_GRAPH_ID)
        kiln = await model.find(LIME_KILN_ID)

        related = await kiln.related()
        assert [r.id for r in related] == [OLD_MILL_ID]
        assert await related[0].get_name() == "Old Mill"
        assert await (await model.find(OLD_MILL_ID)).related() == []

    @pytest.mark.asyncio
    async def test_links_in_hidden_groups_are_ignored(self, project_dir):
        link_assets(project_dir)
        client, model = await loaded_client(context_for(project_dir))
        model.set_permitted_nodegroups({"names": True, "related_assets": False})
        await drain(client, ASSET_GRAPH_ID)
        kiln = await model.find(LIME_KILN_ID)
        assert await kiln.related() == []
