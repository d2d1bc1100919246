"""End-to-end tests for the pre-index phase."""

import json

import pytest

from _support.project import (
    ASSETS_FILE,
    LIME_KILN_ID,
    OLD_MILL_ID,
    REGISTRY_ID,
    asset_resource,
    business_data,
    context_for,
    link_assets,
    polygon_collection,
    write_json,
)
from heritage_spine.core.config import PrebuildSource
from heritage_spine.core.errors import InvalidInputError, PathTraversalError
from heritage_spine.publishing.accessors import TreeView
from heritage_spine.publishing.extract import ExtractionDriver, preindex_names, run_preindex
from heritage_spine.publishing.models import Asset, AssetMetadata

pytestmark = pytest.mark.integration

BROKEN_BARN_ID = "d4e5f6a7-0000-4000-8000-000000000004"


# ── Helpers ──────────────────────────────────────────────────────────────


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


def document_for(context, slug):
    return read_json(context.output.business_data_dir / f"{slug}.json")


class FakeHandle(TreeView):
    def __init__(self, tree, model="HeritageAsset", resource_id=OLD_MILL_ID, name="Old Mill"):
        super().__init__(tree)
        self.id = resource_id
        self.graph_id = "g1"
        self.model_class_name = model
        self._name = name

    async def get_name(self):
        return self._name

    async def for_json(self, detailed=True):
        return self.tree

    async def to_static(self):
        return {"resourceinstance": {"resourceinstanceid": self.id}, "tiles": []}

    async def related(self):
        return []


# ── Tests ────────────────────────────────────────────────────────────────


class TestRunPreindex:
    @pytest.mark.asyncio
    async def test_two_assets_one_located(self, project_context, project_dir):
        result = await run_preindex(project_context, project_dir / ASSETS_FILE)

        preindex = project_dir / "prebuild" / "preindex"
        records = read_json(preindex / "assets.json.pi")
        assert [r["meta"]["resourceinstanceid"] for r in records] == [OLD_MILL_ID, LIME_KILN_ID]
        assert not (preindex / "assets.json.pi.assoc").exists()
        assert result.associated == []

        points = read_json(project_dir / "prebuild" / "fgb" / "historic-monuments---assets.json")
        assert points == [[1.0, 1.0]]
        assert read_json(preindex / "registries.json") == ["historic-monuments"]

    @pytest.mark.asyncio
    async def test_asset_records(self, project_context, project_dir):
        result = await run_preindex(project_context, project_dir / ASSETS_FILE)
        mill, kiln = result.metadata
        assert mill.slug == "old-mill-a1b2c3"
        assert mill.type == "HeritageAsset"
        assert mill.registries == ["Historic Monuments"]
        assert mill.meta.get_list("scopes") == ["public"]
        assert kiln.location is None

    @pytest.mark.asyncio
    async def test_resource_documents_are_pruned(self, project_context, project_dir):
        await run_preindex(project_context, project_dir / ASSETS_FILE)
        document = document_for(project_context, "old-mill-a1b2c3")
        groups = {tile["nodegroup_id"] for tile in document["tiles"]}
        assert groups == {"ng-names", "ng-loc", "ng-geom"}
        assert "owner phone" not in json.dumps(document)
        assert document["__scopes"] == ["public"]
        assert document["metadata"]["slug"] == "old-mill-a1b2c3"

    @pytest.mark.asyncio
    async def test_private_build_keeps_everything(self, project_dir):
        context = context_for(project_dir, include_private=True)
        await run_preindex(context, project_dir / ASSETS_FILE)
        document = document_for(context, "old-mill-a1b2c3")
        assert "ng-notes" in {tile["nodegroup_id"] for tile in document["tiles"]}
        assert document["__scopes"] == []

    @pytest.mark.asyncio
    async def test_prefix(self, project_context, project_dir):
        result = await run_preindex(project_context, project_dir / ASSETS_FILE, "ni-")
        assert result.metadata[0].slug == "ni-old-mill-a1b2c3"

    @pytest.mark.asyncio
    async def test_existing_registry_table_keeps_positions(self, project_dir):
        table = project_dir / "prebuild" / "preindex" / "registries.json"
        table.parent.mkdir(parents=True)
        table.write_text('["gardens"]')
        context = context_for(project_dir)
        await run_preindex(context, project_dir / ASSETS_FILE)
        assert read_json(table) == ["gardens", "historic-monuments"]

    @pytest.mark.asyncio
    async def test_non_public_source_has_no_scopes(self, project_dir):
        prebuild_file = project_dir / "prebuild" / "prebuild.json"
        data = read_json(prebuild_file)
        data["sources"][0]["public"] = False
        write_json(prebuild_file, data)
        context = context_for(project_dir)

        result = await run_preindex(context, project_dir / ASSETS_FILE)
        assert result.metadata[0].meta.get_list("scopes") == []
        assert document_for(context, "old-mill-a1b2c3")["__scopes"] == []

    @pytest.mark.asyncio
    async def test_unusable_geometry_does_not_stop_the_run(self, project_dir):
        write_json(
            project_dir / ASSETS_FILE,
            business_data(
                asset_resource(OLD_MILL_ID, "Old Mill", polygon_collection()),
                asset_resource(BROKEN_BARN_ID, "Broken Barn", polygon_collection([])),
                asset_resource(LIME_KILN_ID, "Lime Kiln"),
            ),
        )
        context = context_for(project_dir)

        result = await run_preindex(context, project_dir / ASSETS_FILE)
        assert [a.slug for a in result.metadata] == [
            "old-mill-a1b2c3",
            "broken-barn-d4e5f6",
            "lime-kiln-b2c3d4",
        ]
        assert result.metadata[1].location is None
        points = read_json(project_dir / "prebuild" / "fgb" / "historic-monuments---assets.json")
        assert points == [[1.0, 1.0]]
        assert "location" not in document_for(context, "broken-barn-d4e5f6")["metadata"]

    @pytest.mark.asyncio
    async def test_linked_resources_are_cached(self, project_dir):
        link_assets(project_dir)
        context = context_for(project_dir)

        result = await run_preindex(context, project_dir / ASSETS_FILE)
        assert [a.slug for a in result.metadata] == ["old-mill-a1b2c3", "lime-kiln-b2c3d4"]
        kiln = document_for(context, "lime-kiln-b2c3d4")
        assert kiln["__cache"] == {
            OLD_MILL_ID: {
                "title": "Old Mill",
                "slug": "old-mill-a1b2c3",
                "location": "[1.0, 1.0]",
                "type": "HeritageAsset",
            }
        }
        assert "__cache" not in document_for(context, "old-mill-a1b2c3")

    @pytest.mark.asyncio
    async def test_links_to_non_public_models_are_not_cached(self, project_dir):
        link_assets(project_dir)
        context = context_for(project_dir, public_models=["Registry"])
        await run_preindex(context, project_dir / ASSETS_FILE)
        assert "__cache" not in document_for(context, "lime-kiln-b2c3d4")

    @pytest.mark.asyncio
    async def test_rejects_non_json(self, project_context, project_dir):
        with pytest.raises(InvalidInputError):
            await run_preindex(project_context, project_dir / "prebuild" / "business_data" / "assets.csv")


class TestExtractionDriver:
    @pytest.mark.asyncio
    async def test_soft_deleted_assets_are_skipped(self, project_context):
        driver = ExtractionDriver(project_context)
        handles = [
            FakeHandle({"soft_deleted": True}),
            FakeHandle({}, resource_id=LIME_KILN_ID, name="Lime Kiln"),
        ]
        result = await driver.run(handles, "assets.json")
        assert result.skipped == 1
        assert [a.resource_id for a in result.metadata] == [LIME_KILN_ID]

    @pytest.mark.asyncio
    async def test_other_models_are_never_soft_deleted(self, project_context):
        driver = ExtractionDriver(project_context)
        person = FakeHandle({"soft_deleted": True}, model="Person")
        assert await driver.is_soft_deleted(person) is False

    @pytest.mark.asyncio
    async def test_should_index_splits_lists(self, project_context, project_dir):
        class PeopleAreAssociated(ExtractionDriver):
            def should_index(self, asset: Asset) -> bool:
                return asset.type != "Person"

        driver = PeopleAreAssociated(project_context)
        result = await driver.run(
            [FakeHandle({}), FakeHandle({}, model="Person", resource_id=LIME_KILN_ID, name="Ann")],
            "mixed.json",
        )
        preindex = project_dir / "prebuild" / "preindex"
        assert len(read_json(preindex / "mixed.json.pi")) == 1
        assert read_json(preindex / "mixed.json.pi.assoc")[0]["type"] == "Person"
        assert len(result.associated) == 1

    @pytest.mark.asyncio
    async def test_associated_models_setting(self, project_dir):
        context = context_for(project_dir, associated_models=["Person"])
        result = await ExtractionDriver(context).run(
            [FakeHandle({}), FakeHandle({}, model="Person", resource_id=LIME_KILN_ID, name="Ann")],
            "mixed.json",
        )
        assert [a.type for a in result.metadata] == ["HeritageAsset"]
        assert [a.type for a in result.associated] == ["Person"]
        assert read_json(project_dir / "prebuild" / "preindex" / "mixed.json.pi.assoc")[0]["type"] == "Person"

    @pytest.mark.asyncio
    async def test_associated_models_match_graph_ids(self, project_dir):
        driver = ExtractionDriver(context_for(project_dir, associated_models=["g1"]))
        result = await driver.run([FakeHandle({})], "graphs.json")
        assert result.metadata == []
        assert len(result.associated) == 1

    @pytest.mark.asyncio
    async def test_everything_is_indexed_by_default(self, project_context):
        result = await ExtractionDriver(project_context).run(
            [FakeHandle({}, model="Person", name="Ann")], "people.json"
        )
        assert len(result.metadata) == 1
        assert result.associated == []

    @pytest.mark.asyncio
    async def test_fields_are_read_from_the_json_tree(self, project_context):
        class JsonOnlyHandle(FakeHandle):
            async def try_get(self, path):
                return None

        tree = {"location_data": {"geometry": {"geospatial_coordinates": polygon_collection()}}}
        asset = await ExtractionDriver(project_context).process_asset(JsonOnlyHandle(tree))
        assert asset.location == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_unusable_registry_names_are_dropped(self, project_context):
        source = PrebuildSource(resources="assets", registries=["!!!", "Gardens"])
        driver = ExtractionDriver(project_context)
        asset = await driver.process_asset(FakeHandle({}), source=source)
        assert asset.registries == ["Gardens"]
        assert project_context.registries.names == ["gardens"]

    @pytest.mark.asyncio
    async def test_registries_from_configured_path(self, project_dir):
        context = context_for(project_dir)
        context.project.prebuild.paths.registries = "registers"
        driver = ExtractionDriver(context, registry_names={REGISTRY_ID: "Historic Monuments"})
        handle = FakeHandle({"registers": [{"resourceId": REGISTRY_ID}, {"resourceId": "unknown"}]})
        assert await driver.registries_for(handle, None) == ["Historic Monuments"]

    @pytest.mark.asyncio
    async def test_slug_escape_is_fatal(self, project_context):
        driver = ExtractionDriver(project_context)

        class EscapingExtractor:
            async def get_meta(self, resource, view=None, prefix=None, include_private=False, **options):
                meta = AssetMetadata(resourceinstanceid="r", graphid="g", title="x", slug="../../x")
                return Asset(meta=meta, content="x", slug="../../x", type="HeritageAsset")

        driver.extractor = EscapingExtractor()
        with pytest.raises(PathTraversalError):
            await driver.process_asset(FakeHandle({}))

    def test_preindex_names(self):
        assert preindex_names("prebuild/business_data/assets-%.json") == ("assets-%.json", "assets-%")
        assert preindex_names(None) == ("ix", "ix")
