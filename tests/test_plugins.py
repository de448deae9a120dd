"""Tests for .uplugin scanning."""

from unreal_indexer.errors import IssueCode
from unreal_indexer.plugins import PluginScanner


class TestPluginScanner:
    """Test descriptor discovery and parsing."""

    def test_parse_descriptor_fields(self, project):
        path = project.plugin(
            "Inventory",
            modules=("InventoryRuntime", "InventoryEditor"),
            VersionName="2.1.0",
            Version=7,
            Description="Items and bags",
            Category="Gameplay",
            CreatedBy="Studio",
            DocsURL="https://example.com/docs",
            CanContainContent=True,
            IsBetaVersion=True,
        )

        plugin = PluginScanner().parse_descriptor(path)

        assert plugin.name == "Inventory"
        assert plugin.path == str(path.parent)
        assert plugin.version == "2.1.0"
        assert plugin.version_number == 7
        assert plugin.description == "Items and bags"
        assert plugin.category == "Gameplay"
        assert plugin.created_by == "Studio"
        assert plugin.docs_url == "https://example.com/docs"
        assert plugin.support_url is None
        assert plugin.can_contain_content is True
        assert plugin.is_beta is True
        assert plugin.is_experimental is False
        assert plugin.installed is True
        assert plugin.modules == ("InventoryRuntime", "InventoryEditor")

        runtime = plugin.module_descriptors[0]
        assert runtime.plugin == "Inventory"
        assert runtime.path == str(path.parent / "Source" / "InventoryRuntime")

    def test_scan_sorted_and_skips_missing_descriptor(self, project):
        project.plugin("Zeta")
        project.plugin("Alpha")
        (project.root / "Plugins" / "NoDescriptor").mkdir()
        (project.root / "Plugins" / "NoDescriptor" / "README.md").write_text("hi")

        result = PluginScanner().scan(project.root / "Plugins")

        assert [p.name for p in result.plugins] == ["Alpha", "Zeta"]
        assert [i.code for i in result.issues] == [IssueCode.MISSING_PLUGIN_DESCRIPTOR]
        assert "NoDescriptor" in result.issues[0].message

    def test_malformed_descriptor(self, project):
        project.plugin("Good")
        broken = project.root / "Plugins" / "Broken"
        broken.mkdir(parents=True)
        (broken / "Broken.uplugin").write_text("{ not json")

        result = PluginScanner().scan(project.root / "Plugins")

        assert [p.name for p in result.plugins] == ["Good"]
        assert [i.code for i in result.issues] == [IssueCode.MALFORMED_PLUGIN_DESCRIPTOR]
        assert result.issues[0].path == str(broken / "Broken.uplugin")

    def test_missing_plugins_directory(self, project):
        result = PluginScanner().scan(project.root / "Plugins")
        assert result.plugins == []
        assert result.issues == []

    def test_files_directly_under_plugins_ignored(self, project):
        (project.root / "Plugins").mkdir()
        (project.root / "Plugins" / "notes.txt").write_text("x")

        result = PluginScanner().scan(project.root / "Plugins")
        assert result.plugins == []
        assert result.issues == []
