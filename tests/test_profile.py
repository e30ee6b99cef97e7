"""
Tests for profile parsing, the attribute tree builder and the inheritance
resolver.
"""

import pytest

from dbot.pattern import PatternSet
from dbot.profile import (
    Profile,
    build_component_tree,
    parse_attribute,
    parse_declaration,
    resolve_entries,
)
from dbot.types import (
    AttributeFragment,
    AttrType,
    DeclarationNode,
    InvalidPathError,
    ProfileFormatError,
    ResolvedAttribute,
    UnexpectedChildrenError,
)


def path_only_node(source):
    return DeclarationNode(attr=AttributeFragment(source=source))


def parse(mapping):
    diagnostics = []
    node = parse_declaration(mapping, "", diagnostics)
    return node, diagnostics


def entries_of(mapping):
    return Profile.from_mapping(mapping).into_entries()


class TestParseDeclaration:
    """Tests for reading the declaration mapping."""

    def test_normalized_path_attributes(self):
        """Sources and keys are normalized."""
        node, _ = parse(
            {
                "~source": "skip/../path/to/root",
                "/path/to/./target1": "../path/to/source1",
            }
        )
        assert node == DeclarationNode(
            attr=AttributeFragment(source="path/to/root"),
            children={"path/to/target1": path_only_node("path/to/source1")},
        )

    def test_profile_attributes(self):
        """Reserved keys fill the attribute fragment."""
        node, diagnostics = parse(
            {
                "~source": "path/to/source",
                "~type": "link",
                "~recursive": True,
                "~ignore": ["*.bak", "skip*"],
            }
        )
        assert node.attr == AttributeFragment(
            source="path/to/source",
            type=AttrType.LINK,
            recursive=True,
            ignore=PatternSet(("*.bak", "skip*")),
        )
        assert node.children == {}
        assert diagnostics == []

    def test_single_ignore_string(self):
        """A single glob string is accepted for ~ignore."""
        node, _ = parse({"~ignore": "*.swp"})
        assert node.attr.ignore == PatternSet(("*.swp",))

    def test_undefined_attribute_is_a_diagnostic(self):
        """Unknown reserved keys are reported, not fatal."""
        node, diagnostics = parse(
            {"target": {"~source": "src", "~undefined_attr": "..."}}
        )
        assert node.children["target"].attr.source == "src"
        assert len(diagnostics) == 1
        assert diagnostics[0].kind == "unknown-attribute"
        assert diagnostics[0].key == "~undefined_attr"
        assert diagnostics[0].path == "target"
        assert "undefined attribute '~undefined_attr'" in str(diagnostics[0])

    def test_children(self):
        """Plain keys are child declarations."""
        node, _ = parse(
            {
                "target1": "path/to/source1",
                "target2": {"~source": "path/to/source2"},
            }
        )
        assert node.children == {
            "target1": path_only_node("path/to/source1"),
            "target2": path_only_node("path/to/source2"),
        }

    def test_type_shorthand(self):
        """'<link>' sets only the type."""
        assert parse_attribute("<link>") == AttributeFragment(type=AttrType.LINK)
        assert parse_attribute("<template>") == AttributeFragment(type=AttrType.TEMPLATE)

    def test_type_shorthand_errors(self):
        """Unknown or unterminated shorthand types are rejected."""
        with pytest.raises(ProfileFormatError, match="must end with '>'"):
            parse_attribute("<link")
        with pytest.raises(ProfileFormatError, match="unknown attribute type"):
            parse_attribute("<folder>")

    def test_bad_attribute_values(self):
        """Reserved keys with the wrong value type are rejected."""
        with pytest.raises(ProfileFormatError):
            parse({"~recursive": "yes"})
        with pytest.raises(ProfileFormatError):
            parse({"~type": "folder"})
        with pytest.raises(ProfileFormatError):
            parse({"~ignore": [1, 2]})
        with pytest.raises(ProfileFormatError):
            parse({"~source": ["a"]})

    def test_bad_declaration_value(self):
        """Only strings, mappings and null are declarations."""
        with pytest.raises(ProfileFormatError):
            parse({"target": 42})

    def test_null_is_empty_declaration(self):
        """An empty value declares nothing."""
        node, _ = parse({"target": None})
        assert node.children == {"target": DeclarationNode()}

    def test_invalid_path_key(self):
        """Keys with a share prefix are rejected."""
        with pytest.raises(InvalidPathError):
            parse({"\\\\server\\share": "source"})


class TestBuildComponentTree:
    """Tests for re-rooting declarations by path component."""

    def test_multi_component_keys_are_split(self):
        """'path/to/target' becomes a chain of single-component nodes."""
        node, _ = parse({"path/to/target": "src"})
        tree = build_component_tree(node)
        assert list(tree.children) == ["path"]
        assert list(tree.children["path"].children) == ["to"]
        leaf = tree.children["path"].children["to"].children["target"]
        assert leaf.attr.source == "src"
        assert leaf.children == {}

    def test_nested_and_flat_declarations_share_nodes(self):
        """Nested and slash-separated keys land in the same directory."""
        node, _ = parse(
            {
                "path": {"~source": "p", "to": {"target": "t1"}},
                "path/to/target2": "t2",
            }
        )
        tree = build_component_tree(node)
        to = tree.children["path"].children["to"]
        assert set(to.children) == {"target", "target2"}
        assert tree.children["path"].attr.source == "p"

    def test_fragments_for_same_node_are_merged(self):
        """Scalar fields are overwritten, ignore lists accumulate."""
        node, _ = parse(
            {
                "a": {"b": {"~source": "x", "~ignore": "*.bak"}},
                "a/b": {"~recursive": True, "~ignore": ["skip*"], "~type": "link"},
            }
        )
        b = build_component_tree(node).children["a"].children["b"]
        assert b.attr == AttributeFragment(
            source="x",
            type=AttrType.LINK,
            recursive=True,
            ignore=PatternSet(("*.bak", "skip*")),
        )

    def test_last_declared_source_wins(self):
        """The fragment merged last decides scalar fields."""
        node, _ = parse({"a/b": "first", "a": {"b": "second"}})
        b = build_component_tree(node).children["a"].children["b"]
        assert b.attr.source == "second"

    def test_recursive_only_fragment_keeps_source(self):
        """Merging a recursive-only fragment leaves the source alone."""
        attr = AttributeFragment(source="x", type=AttrType.COPY)
        attr.merge(AttributeFragment(recursive=True))
        assert attr == AttributeFragment(source="x", type=AttrType.COPY, recursive=True)

    def test_empty_ignore_is_noop(self):
        """An empty incoming ignore list does not replace the existing one."""
        attr = AttributeFragment(ignore=PatternSet(("*.bak",)))
        attr.merge(AttributeFragment(ignore=PatternSet()))
        assert attr.ignore == PatternSet(("*.bak",))

    def test_empty_key_merges_into_declaring_node(self):
        """A key normalizing to the empty path is the node itself."""
        node, _ = parse({"a": {".": {"~source": "x"}}})
        tree = build_component_tree(node)
        assert tree.children["a"].attr.source == "x"
        assert tree.children["a"].children == {}


class TestResolveEntries:
    """Tests for attribute inheritance."""

    def test_source_is_inherited_by_name(self):
        """A child without source uses the parent's source joined with its name."""
        entries = entries_of({"a": {"~source": "src", "b": {"c": None}}})
        assert entries == [
            ("a", ResolvedAttribute(source="src")),
            ("a/b", ResolvedAttribute(source="src/b")),
            ("a/b/c", ResolvedAttribute(source="src/b/c")),
        ]

    def test_nodes_without_source_are_dropped(self):
        """Intermediate directories only structure the tree."""
        entries = entries_of({"path/to/target": "path/to/source"})
        assert entries == [("path/to/target", ResolvedAttribute(source="path/to/source"))]

    def test_type_and_recursive_are_inherited(self):
        """type and recursive fall back to the parent's values."""
        entries = dict(
            entries_of(
                {
                    "a": {
                        "~source": "s",
                        "~type": "template",
                        "~recursive": True,
                        "b": {"~type": "copy"},
                        "c": None,
                    }
                }
            )
        )
        assert entries["a/b"].type == AttrType.COPY
        assert entries["a/b"].recursive is True
        assert entries["a/c"].type == AttrType.TEMPLATE
        assert entries["a/c"].recursive is True

    def test_defaults(self):
        """type defaults to copy and recursive to false."""
        ((_, attr),) = entries_of({"a": "s"})
        assert attr.type == AttrType.COPY
        assert attr.recursive is False
        assert not attr.ignore

    def test_ignore_is_unioned_with_ancestors(self):
        """A child's ignore set includes every ancestor's set."""
        entries = dict(
            entries_of(
                {
                    "~ignore": "*.root",
                    "a": {"~source": "s", "~ignore": "*.a", "b": {"~ignore": ["*.b"]}},
                }
            )
        )
        assert entries["a"].ignore.patterns == ("*.root", "*.a")
        assert entries["a/b"].ignore.patterns == ("*.root", "*.a", "*.b")

    def test_unchanged_ignore_chain_is_shared(self):
        """Children without own patterns share the parent's set."""
        entries = dict(entries_of({"a": {"~source": "s", "~ignore": "*.a", "b": None}}))
        assert entries["a/b"].ignore is entries["a"].ignore

    def test_root_source(self):
        """The root node may declare a source for the target root."""
        entries = entries_of({"~source": "home", "x": None})
        assert entries == [
            ("", ResolvedAttribute(source="home")),
            ("x", ResolvedAttribute(source="home/x")),
        ]

    def test_sorted_by_path_components(self):
        """Entries are ordered component by component."""
        entries = entries_of({"a-c": "1", "a/b": "2", "a": "3"})
        assert [target for target, _ in entries] == ["a", "a/b", "a-c"]

    def test_link_with_children(self):
        """A link cannot have nested declarations."""
        with pytest.raises(UnexpectedChildrenError) as exc_info:
            entries_of({"p/t": {"~type": "link", "~source": "s", "child": "c"}})
        assert exc_info.value.path == "p/t"

    def test_link_with_children_even_if_recursive(self):
        """Recursive links may have children."""
        entries = dict(
            entries_of(
                {"p/t": {"~type": "link", "~recursive": True, "~source": "s", "c": "x"}}
            )
        )
        assert entries["p/t/c"] == ResolvedAttribute(
            source="x", type=AttrType.LINK, recursive=True
        )

    def test_template_with_children(self):
        """A non-recursive template cannot have nested declarations."""
        with pytest.raises(UnexpectedChildrenError) as exc_info:
            entries_of({"a": {"~type": "template", "b": {"~source": "s"}}})
        assert exc_info.value.path == "a"

    def test_inherited_link_type_validates_children(self):
        """The resolved type, not the declared one, is validated."""
        with pytest.raises(UnexpectedChildrenError) as exc_info:
            entries_of({"a": {"~type": "link", "~recursive": True, "b": {"~recursive": False, "c": "x"}}})
        assert exc_info.value.path == "a/b"

    def test_resolve_entries_on_empty_tree(self):
        """An empty profile resolves to nothing."""
        assert resolve_entries(build_component_tree(DeclarationNode())) == []
