"""Tests for ProjectScanner, ProjectIndex queries and ProjectSession."""

import pytest

from conftest import module_entry
from unreal_indexer.errors import IssueCode, ManifestNotFound, ManifestParseError
from unreal_indexer.models import DeclarationKind
from unreal_indexer.project_index import NoProjectIndexed, ProjectSession, scan_project

HERO_H = '''
UCLASS(Blueprintable)
class GAME_API AHero : public ACharacterBase
{
    GENERATED_BODY()

public:
    UFUNCTION(BlueprintCallable, Category="Combat")
    void Fire(float Power);

    UPROPERTY(EditAnywhere, BlueprintReadWrite)
    float Health = 100.f;
};
'''

BASE_H = '''
UCLASS(Abstract)
class GAME_API ACharacterBase : public ACharacter
{
    GENERATED_BODY()
};
'''

CORE_H = '''
UCLASS()
class CORE_API UCoreObject : public UObject
{
    GENERATED_BODY()
};

USTRUCT(BlueprintType)
struct FCoreData
{
    GENERATED_BODY()
};
'''


@pytest.fixture
def game(project):
    """Two modules (Core, Game), a few assets and one plugin."""
    project.manifest(
        modules=[module_entry("Core"), module_entry("Game", "Core")],
        Plugins=[{"Name": "Disabled", "Enabled": False}],
    )
    project.source("Core", "Public/CoreObject.h", CORE_H)
    project.source("Game", "Characters/Hero.h", HERO_H)
    project.source("Game", "Characters/CharacterBase.h", BASE_H)
    project.source(
        "Game",
        "Characters/Hero.cpp",
        '''
        #include "Hero.h"

        void AHero::Fire(float Power)
        {
        }
        ''',
    )
    project.content(
        "Characters/BP_Hero.uasset",
        "Characters/SK_Hero.uasset",
        "Maps/Arena.umap",
        "UI/WBP_HUD.uasset",
    )
    project.plugin("Disabled", Category="Misc")
    project.plugin("Inventory", modules=("InventoryRuntime",), Category="Gameplay")
    project.write(
        {
            "Plugins/Inventory/Source/InventoryRuntime/Bag.h": '''
                UCLASS()
                class INVENTORYRUNTIME_API UBag : public UCoreObject
                {
                    GENERATED_BODY()
                };
            ''',
        }
    )
    return project


class TestScan:
    """Test index construction."""

    def test_declarations_in_discovery_order(self, game):
        index = game.scan()

        # Core before Game (manifest order), files sorted, plugin modules last.
        assert [d.name for d in index.declarations] == [
            "UCoreObject",
            "FCoreData",
            "ACharacterBase",
            "AHero",
            "UBag",
        ]
        assert [m.name for m in index.modules] == ["Core", "Game", "InventoryRuntime"]
        assert index.class_by_name["UBag"].module == "InventoryRuntime"

    def test_class_by_name_kind_matches_annotation(self, game):
        index = game.scan()

        assert index.class_by_name["FCoreData"].kind is DeclarationKind.STRUCT
        assert index.class_by_name["AHero"].kind is DeclarationKind.CLASS
        assert [d.name for d in index.declarations_of_kind("USTRUCT")] == ["FCoreData"]

    def test_functions_indexed(self, game):
        index = game.scan()

        assert [(f.owner, f.name) for f in index.functions] == [("AHero", "Fire")]
        assert index.functions_of("AHero")[0].blueprint_callable is True

    def test_assets_and_statistics(self, game):
        index = game.scan()

        assert [a.path for a in index.assets] == [
            "Characters/BP_Hero.uasset",
            "Characters/SK_Hero.uasset",
            "Maps/Arena.umap",
            "UI/WBP_HUD.uasset",
        ]
        assert [a.name for a in index.assets_of_type("Blueprint")] == ["BP_Hero"]
        assert index.assets_of_type("Sound") == []
        assert index.asset_statistics.total_count == 4
        assert index.asset_by_path("/Game/Maps/Arena").type == "Level"
        assert index.asset_by_path("Maps/Arena.umap").name == "Arena"
        assert index.asset_by_path("Maps/Nope.umap") is None

    def test_plugins(self, game):
        index = game.scan()

        assert [p.name for p in index.plugins] == ["Disabled", "Inventory"]
        assert [p.name for p in index.enabled_plugins()] == ["Inventory"]
        assert index.plugin_statistics() == {
            "total": 2,
            "enabled": 1,
            "by_category": {"Misc": 1, "Gameplay": 1},
        }

    def test_additional_plugin_directories(self, project):
        project.manifest(modules=[], AdditionalPluginDirectories=["External/Plugins"])
        project.plugin("Extra", directory="External/Plugins")

        index = project.scan()

        assert [p.name for p in index.plugins] == ["Extra"]

    def test_unresolved_plugin_module_recorded(self, project):
        project.manifest(modules=[])
        project.plugin("Broken", modules=("Ghost",))

        index = project.scan()

        codes = [i.code for i in index.issues]
        assert IssueCode.UNRESOLVED_PLUGIN_MODULE in codes
        assert [m.name for m in index.modules] == []

    def test_empty_module_directory_is_not_an_error(self, project):
        project.manifest(modules=[module_entry("Game")])
        (project.root / "Source" / "Game").mkdir(parents=True)
        (project.root / "Content").mkdir()

        index = project.scan()

        assert index.declarations == ()
        assert index.issues == ()
        assert index.validate().valid is True

    def test_missing_module_directory_recorded_not_raised(self, project):
        project.manifest(modules=[module_entry("Game")])

        index = project.scan()

        codes = [i.code for i in index.issues]
        assert IssueCode.MODULE_DIRECTORY_MISSING in codes
        assert IssueCode.CONTENT_DIRECTORY_MISSING in codes

    def test_manifest_failure_is_fatal(self, project):
        with pytest.raises(ManifestNotFound):
            project.scan()

        (project.root / "MyGame.uproject").write_text("{broken")
        with pytest.raises(ManifestParseError):
            scan_project(project.root, project.config())

    def test_parallel_scan_matches_sequential(self, game):
        sequential = game.scan()
        parallel = game.scan(parallel_scan=True)

        assert parallel.to_dict() == sequential.to_dict()

    def test_oversized_file_skipped(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "Small.h", "UCLASS()\nclass ASmall : public AActor {};\n")
        project.source("Game", "Huge.h", "UCLASS()\nclass AHuge : public AActor {};\n" + "// x\n" * 200)

        index = project.scan(max_file_bytes=256)

        assert [d.name for d in index.declarations] == ["ASmall"]
        assert [i.code for i in index.issues if i.code is IssueCode.FILE_TOO_LARGE] == [
            IssueCode.FILE_TOO_LARGE
        ]


class TestDuplicates:
    """Test last-seen-wins de-duplication."""

    def test_last_seen_wins_and_all_retained(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "A.h", "UCLASS()\nclass AThing : public AActor {};\n")
        project.source("Game", "B.h", "UCLASS()\nclass AThing : public APawn {};\n")

        index = project.scan()

        assert [d.parent for d in index.declarations] == ["AActor", "APawn"]
        assert index.class_by_name["AThing"].parent == "APawn"
        assert index.class_by_name["AThing"].file.endswith("B.h")

        duplicates = [i for i in index.issues if i.code is IssueCode.DUPLICATE_DECLARATION]
        assert len(duplicates) == 1
        assert "A.h:2" in duplicates[0].message
        assert "AActor" in duplicates[0].message

    def test_same_name_different_kind_is_not_duplicate(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "A.h", "UENUM()\nenum class FThing : uint8 { A };\n")
        project.source("Game", "B.h", "USTRUCT()\nstruct FThing {};\n")

        index = project.scan()

        assert [d.kind for d in index.declarations] == [DeclarationKind.ENUM, DeclarationKind.STRUCT]
        assert index.class_by_name["FThing"].kind is DeclarationKind.STRUCT
        assert not [i for i in index.issues if i.code is IssueCode.DUPLICATE_DECLARATION]


class TestSearch:
    """Test search ordering and matching."""

    def test_case_insensitive_substring(self, game):
        index = game.scan()

        assert [d.name for d in index.search_declarations("hero")] == ["AHero"]
        assert [d.name for d in index.search_declarations("CORE")] == ["UCoreObject", "FCoreData"]

    def test_empty_query_matches_everything(self, game):
        index = game.scan()
        results = index.search("")

        assert results.declarations == index.declarations
        assert results.assets == index.assets

    def test_assets_match_name_or_path(self, game):
        index = game.scan()

        assert [a.name for a in index.search_assets("characters")] == ["BP_Hero", "SK_Hero"]
        assert [a.name for a in index.search_assets("hud")] == ["WBP_HUD"]

    def test_assets_match_type_tag(self, game):
        index = game.scan()

        assert [a.name for a in index.search_assets("level")] == ["Arena"]
        assert [a.name for a in index.search_assets("WIDGET")] == ["WBP_HUD"]

    def test_no_match(self, game):
        results = game.scan().search("zzz")
        assert results.declarations == ()
        assert results.assets == ()
        assert results.to_dict()["total_count"] == 0

    def test_discovery_order_follows_manifest_not_alphabet(self, project):
        project.manifest(modules=[module_entry("Zeta"), module_entry("Alpha")])
        project.source("Zeta", "Z.h", "UCLASS()\nclass AZetaItem : public AActor {};\n")
        project.source("Alpha", "A.h", "UCLASS()\nclass AAlphaItem : public AActor {};\n")

        index = project.scan()

        assert [d.name for d in index.search_declarations("item")] == ["AZetaItem", "AAlphaItem"]


class TestHierarchy:
    """Test parent-chain walking."""

    def test_round_trip_to_external_parent(self, game):
        result = game.scan().hierarchy("AHero")

        assert result.chain == ("AHero", "ACharacterBase", "ACharacter")
        assert result.cyclic is False
        assert result.issue is None

    def test_ends_at_declaration_without_parent(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source(
            "Game",
            "Types.h",
            '''
            USTRUCT()
            struct FBase
            {
            };

            USTRUCT()
            struct FDerived : public FBase
            {
            };
            ''',
        )

        assert project.scan().hierarchy("FDerived").chain == ("FDerived", "FBase")

    def test_split_header_keeps_parent_link(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source(
            "Game",
            "Hero.h",
            '''
            UCLASS()
            class GAME_API AHero
                : public ACharacter
            {
                GENERATED_BODY()
            };
            ''',
        )

        index = project.scan()

        assert index.hierarchy("AHero").chain == ("AHero", "ACharacter")
        assert [c.name for c in index.usages("ACharacter").children] == ["AHero"]

    def test_cycle_terminates(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "A.h", "UCLASS()\nclass UA : public UB {};\n")
        project.source("Game", "B.h", "UCLASS()\nclass UB : public UA {};\n")

        result = project.scan().hierarchy("UA")

        assert result.cyclic is True
        assert result.chain == ("UA", "UB")
        assert result.issue.code is IssueCode.CYCLIC_HIERARCHY

    def test_self_reference_terminates(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "Self.h", "UCLASS()\nclass USelf : public USelf {};\n")

        result = project.scan().hierarchy("USelf")

        assert result.cyclic is True
        assert result.chain == ("USelf",)

    def test_unknown_name(self, game):
        result = game.scan().hierarchy("ANobody")
        assert result.chain == ()
        assert result.cyclic is False


class TestUsages:
    """Test textual usage lookup."""

    def test_children_and_files(self, game):
        game.source(
            "Game",
            "Characters/HeroChild.h",
            "UCLASS()\nclass AHeroChild : public AHero {};\n",
        )
        game.source("Game", "Misc/Heroic.h", "int32 AHeroicCount;\n")
        game.source("Game", "Misc/Spawner.h", "class FSpawner\n{\n    AHero* Spawned;\n};\n")
        index = game.scan()

        result = index.usages("AHero")

        assert [c.name for c in result.children] == ["AHeroChild"]
        names = [path.rsplit("/", 1)[-1] for path in result.files]
        assert "Hero.cpp" in names
        assert "HeroChild.h" in names
        assert "Spawner.h" in names
        assert result.count == len(result.files)

    def test_declaration_line_excluded(self, game):
        index = game.scan()
        result = index.usages("ACharacterBase")

        names = [path.rsplit("/", 1)[-1] for path in result.files]
        # Declared in CharacterBase.h, referenced as a parent in Hero.h.
        assert names == ["Hero.h"]
        assert [c.name for c in result.children] == ["AHero"]

    def test_whole_word_only(self, project):
        project.manifest(modules=[module_entry("Game")])
        project.source("Game", "A.h", "UCLASS()\nclass AItem : public AActor {};\n")
        project.source("Game", "B.h", "int32 AItemCount;\n")

        assert project.scan().usages("AItem").files == ()

    def test_index_is_a_snapshot_of_scan_time(self, project):
        project.manifest(modules=[module_entry("Game")])
        base = project.source("Game", "Base.h", "UCLASS()\nclass UBase : public UObject {};\n")
        project.source("Game", "Other.h", "int32 Unrelated;\n")
        index = project.scan()
        assert index.usages("UBase").files == ()

        project.source("Game", "Other.h", "UBase* Ptr;\n")
        base.unlink()

        assert index.usages("UBase").files == ()
        assert [p.rsplit("/", 1)[-1] for p in project.scan().usages("UBase").files] == ["Other.h"]

    def test_unknown_name_has_no_usages(self, game):
        result = game.scan().usages("ANobody")
        assert result.children == ()
        assert result.files == ()


class TestDetailsAndSummary:
    """Test on-demand member details and the summary."""

    def test_details(self, game):
        details = game.scan().details("AHero")

        assert details.members_available is True
        fire = next(m for m in details.methods if m.name == "Fire")
        assert "BlueprintCallable" in fire.specifiers
        health = next(p for p in details.properties if p.name == "Health")
        assert health.to_dict()["is_blueprint_exposed"] is True

    def test_details_unknown(self, game):
        assert game.scan().details("ANobody") is None

    def test_summary(self, game):
        summary = game.scan().summary()

        assert summary["project_name"] == "MyGame"
        assert summary["engine_version"] == "5.3"
        assert summary["modules"]["names"] == ["Core", "Game", "InventoryRuntime"]
        assert summary["declarations"]["total"] == 5
        assert summary["declarations"]["by_kind"] == {"UCLASS": 4, "USTRUCT": 1}
        assert summary["functions"] == {"total": 1, "blueprint_callable": 1}
        assert summary["assets"]["total"] == 4
        assert summary["assets"]["blueprints"] == 1
        assert summary["plugins"]["total"] == 2
        assert summary["target_platforms"] == ["Windows"]


class TestSession:
    """Test snapshot replacement semantics."""

    def test_requires_scan(self, project):
        session = ProjectSession(project.config())
        with pytest.raises(NoProjectIndexed):
            session.require_index()

    def test_rescan_does_not_mutate_previous_index(self, game):
        session = ProjectSession(game.config())
        first = session.scan(game.root)
        first_names = [d.name for d in first.declarations]

        game.source("Game", "New.h", "UCLASS()\nclass ANewcomer : public AActor {};\n")
        second = session.scan()

        assert session.index is second
        assert [d.name for d in first.declarations] == first_names
        assert "ANewcomer" not in first.class_by_name
        assert "ANewcomer" in second.class_by_name

    def test_failed_scan_keeps_previous_index(self, game):
        session = ProjectSession(game.config())
        first = session.scan()
        (game.root / "MyGame.uproject").write_text("{broken")

        with pytest.raises(ManifestParseError):
            session.scan()

        assert session.index is first

    def test_index_is_read_only(self, game):
        index = game.scan()
        with pytest.raises(TypeError):
            index.class_by_name["AHero"] = None
        with pytest.raises(AttributeError):
            index.declarations = ()
