"""
Declaration inspector - member details via tree-sitter.

The scanner only records declaration headers. When a caller asks for the
details of one declaration, its file is parsed with tree-sitter-cpp to list
methods, properties and enumerators. Reflection macros and `*_API` export
tokens are blanked out first (newlines kept, so rows still match source
lines) because they are not valid C++ to the grammar; the specifiers of
UFUNCTION/UPROPERTY macros are re-attached to the member that follows them.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import tree_sitter_cpp as tscpp
from tree_sitter import Language, Parser

from ..errors import IssueCode, ScanIssue
from ..logging import get_logger
from ..models import TypeDeclaration
from .patterns import (
    ALL_ANNOTATIONS,
    BLUEPRINT_SPECIFIERS,
    BODY_MACROS,
    MEMBER_ANNOTATIONS,
    REPLICATION_SPECIFIERS,
    close_macro_arguments,
    parse_specifiers,
    specifier_names,
)
from .scanner import decode_source

logger = get_logger(__name__)

_MACRO_RE = re.compile(r"\b(" + "|".join((*ALL_ANNOTATIONS, *BODY_MACROS)) + r")\s*\(")
_EXPORT_RE = re.compile(r"\b[A-Z][A-Z0-9_]*_API\b")

_TYPE_NODES = ("class_specifier", "struct_specifier", "enum_specifier")
_RETURN_TYPE_NODES = (
    "primitive_type",
    "type_identifier",
    "qualified_identifier",
    "template_type",
    "sized_type_specifier",
)

Visibility = Literal["public", "protected", "private"]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ParameterInfo:
    """Information about a function parameter."""
    name: str
    type: str
    default_value: str | None = None


@dataclass
class MethodInfo:
    """Information about a member function."""
    name: str
    return_type: str
    parameters: list[ParameterInfo] = field(default_factory=list)
    is_virtual: bool = False
    is_override: bool = False
    is_const: bool = False
    is_static: bool = False
    visibility: Visibility = "public"
    specifiers: list[str] = field(default_factory=list)
    line: int = 0

    def to_dict(self) -> dict:
        names = specifier_names(self.specifiers)
        return {
            "name": self.name,
            "return_type": self.return_type,
            "parameters": [
                {"name": p.name, "type": p.type, "default_value": p.default_value}
                for p in self.parameters
            ],
            "is_virtual": self.is_virtual,
            "is_override": self.is_override,
            "is_const": self.is_const,
            "is_static": self.is_static,
            "visibility": self.visibility,
            "specifiers": self.specifiers,
            "is_blueprint_exposed": bool(names & BLUEPRINT_SPECIFIERS),
            "is_replicated": bool(names & REPLICATION_SPECIFIERS),
            "line": self.line,
        }


@dataclass
class PropertyInfo:
    """Information about a data member."""
    name: str
    type: str
    visibility: Visibility = "public"
    is_static: bool = False
    specifiers: list[str] = field(default_factory=list)
    line: int = 0

    def to_dict(self) -> dict:
        names = specifier_names(self.specifiers)
        return {
            "name": self.name,
            "type": self.type,
            "visibility": self.visibility,
            "is_static": self.is_static,
            "specifiers": self.specifiers,
            "is_blueprint_exposed": bool(names & BLUEPRINT_SPECIFIERS),
            "is_replicated": bool(names & REPLICATION_SPECIFIERS),
            "line": self.line,
        }


@dataclass
class DeclarationDetails:
    """A declaration plus the members found in its body."""
    declaration: TypeDeclaration
    members_available: bool = False
    methods: list[MethodInfo] = field(default_factory=list)
    properties: list[PropertyInfo] = field(default_factory=list)
    enumerators: list[str] = field(default_factory=list)
    issue: ScanIssue | None = None

    def to_dict(self) -> dict:
        return {
            **self.declaration.to_dict(),
            "members_available": self.members_available,
            "methods": [m.to_dict() for m in self.methods],
            "properties": [p.to_dict() for p in self.properties],
            "enumerators": self.enumerators,
            "issue": self.issue.to_dict() if self.issue else None,
        }


# ============================================================================
# Macro Masking
# ============================================================================

def _blank(text: str) -> str:
    return "".join(ch if ch == "\n" else " " for ch in text)


def mask_reflection_macros(text: str) -> tuple[str, dict[int, list[str]]]:
    """
    Blank out reflection macro calls and export tokens.

    Args:
        text: Source text

    Returns:
        (masked_text, member_specifiers) where member_specifiers maps the
        1-based line on which a UFUNCTION/UPROPERTY call ends to its
        specifier list.
    """
    pieces: list[str] = []
    member_specifiers: dict[int, list[str]] = {}
    position = 0

    for match in _MACRO_RE.finditer(text):
        if match.start() < position:
            continue
        closed = close_macro_arguments(text[match.end():])
        if closed is None:
            continue
        arguments, rest = closed
        end = len(text) - len(rest)

        if match.group(1) in MEMBER_ANNOTATIONS:
            end_line = text.count("\n", 0, end) + 1
            member_specifiers[end_line] = parse_specifiers(arguments)

        pieces.append(text[position:match.start()])
        pieces.append(_blank(text[match.start():end]))
        position = end

    pieces.append(text[position:])
    masked = _EXPORT_RE.sub(lambda m: " " * len(m.group(0)), "".join(pieces))
    return masked, member_specifiers


# ============================================================================
# Inspector
# ============================================================================

class DeclarationInspector:
    """Extracts members of an indexed declaration using tree-sitter."""

    def __init__(self, max_cache_size: int = 64):
        self._language = Language(tscpp.language())
        self._parser = Parser(self._language)

        # (path, mtime) -> (tree, member_specifiers)
        self._tree_cache: dict[tuple[str, float], tuple[Any, dict[int, list[str]]]] = {}
        self._max_cache_size = max_cache_size
        self._cache_queue: list[tuple[str, float]] = []

        # Guards the parser and the cache; details() runs on worker threads.
        self._lock = threading.RLock()

    def _manage_cache(self, key: tuple[str, float], value: tuple[Any, dict[int, list[str]]]) -> None:
        """Manage cache size using FIFO eviction."""
        if len(self._tree_cache) >= self._max_cache_size and self._cache_queue:
            oldest = self._cache_queue.pop(0)
            self._tree_cache.pop(oldest, None)
        self._tree_cache[key] = value
        self._cache_queue.append(key)

    def parse_text(self, text: str) -> tuple[Any, dict[int, list[str]]]:
        masked, member_specifiers = mask_reflection_macros(text)
        with self._lock:
            tree = self._parser.parse(bytes(masked, "utf-8"))
        return tree, member_specifiers

    def _parse_file(self, file_path: str) -> tuple[Any, dict[int, list[str]]]:
        path = Path(file_path)
        key = (str(path), path.stat().st_mtime)
        with self._lock:
            if key in self._tree_cache:
                return self._tree_cache[key]

            parsed = self.parse_text(decode_source(path.read_bytes()))
            self._manage_cache(key, parsed)
            return parsed

    def inspect(self, declaration: TypeDeclaration) -> DeclarationDetails:
        """
        Parse the declaring file and collect the declaration's members.

        Never raises for file problems; they are reported on the result.
        """
        details = DeclarationDetails(declaration=declaration)
        try:
            tree, member_specifiers = self._parse_file(declaration.file)
        except (OSError, UnicodeDecodeError) as e:
            details.issue = ScanIssue(
                code=IssueCode.UNREADABLE_FILE,
                message=f"Cannot parse {declaration.name}: {e}",
                path=declaration.file,
            )
            logger.warning("%s", details.issue)
            return details

        node = self._find_type_node(tree.root_node, declaration)
        if node is None:
            logger.debug("No body found for %s in %s", declaration.name, declaration.file)
            return details

        self._collect_members(node, member_specifiers, details)
        details.members_available = True
        return details

    def inspect_text(self, text: str, declaration: TypeDeclaration) -> DeclarationDetails:
        """Same as inspect() but over in-memory source text."""
        details = DeclarationDetails(declaration=declaration)
        tree, member_specifiers = self.parse_text(text)
        node = self._find_type_node(tree.root_node, declaration)
        if node is not None:
            self._collect_members(node, member_specifiers, details)
            details.members_available = True
        return details

    # ========================================================================
    # Tree Walking
    # ========================================================================

    def _iter_descendants(self, node: Any):
        """Depth-first iteration over all descendants of a node."""
        stack = list(reversed(node.children))
        while stack:
            cur = stack.pop()
            yield cur
            if cur.children:
                stack.extend(reversed(cur.children))

    def _find_type_node(self, root: Any, declaration: TypeDeclaration) -> Any | None:
        fallback = None
        for node in self._iter_descendants(root):
            if node.type not in _TYPE_NODES:
                continue
            name_node = node.child_by_field_name("name")
            if name_node is None or name_node.text.decode(errors="ignore") != declaration.name:
                continue
            if node.child_by_field_name("body") is None:
                continue
            if node.start_point[0] + 1 == declaration.line:
                return node
            if fallback is None:
                fallback = node
        return fallback

    def _collect_members(
        self, node: Any, member_specifiers: dict[int, list[str]], details: DeclarationDetails
    ) -> None:
        body = node.child_by_field_name("body")

        if node.type == "enum_specifier":
            for child in body.children:
                if child.type == "enumerator":
                    name_node = child.child_by_field_name("name")
                    if name_node is not None:
                        details.enumerators.append(name_node.text.decode())
            return

        visibility: Visibility = "private" if node.type == "class_specifier" else "public"

        for child in body.children:
            if child.type == "access_specifier":
                text = child.text.decode().strip().rstrip(":")
                if text in ("public", "protected", "private"):
                    visibility = text
                continue

            if child.type not in ("field_declaration", "function_definition", "declaration"):
                continue

            line = child.start_point[0] + 1
            specifiers = member_specifiers.get(line) or member_specifiers.get(line - 1) or []

            function_declarator = self._find_function_declarator(child)
            if function_declarator is not None:
                method = self._extract_method_info(child, function_declarator, visibility, line)
                if method:
                    method.specifiers = list(specifiers)
                    details.methods.append(method)
            elif child.type == "field_declaration":
                prop = self._extract_property_info(child, visibility, line)
                if prop:
                    prop.specifiers = list(specifiers)
                    details.properties.append(prop)

    def _find_function_declarator(self, node: Any) -> Any | None:
        declarator = node.child_by_field_name("declarator")
        while declarator is not None:
            if declarator.type == "function_declarator":
                return declarator
            declarator = declarator.child_by_field_name("declarator")
        return None

    def _extract_method_info(
        self, node: Any, declarator: Any, visibility: Visibility, line: int
    ) -> MethodInfo | None:
        name_node = declarator.child_by_field_name("declarator")
        if name_node is None:
            return None

        head = node.text[: declarator.start_byte - node.start_byte].decode(errors="ignore")
        head_words = head.split()
        parameters = declarator.child_by_field_name("parameters")
        # Qualifiers between the parameter list and the body or `;`
        tail_start = (parameters if parameters is not None else declarator).end_byte - node.start_byte
        body = node.child_by_field_name("body")
        tail_end = (body.start_byte if body is not None else node.end_byte) - node.start_byte
        tail = re.findall(r"\w+", node.text[tail_start:tail_end].decode(errors="ignore"))

        type_node = node.child_by_field_name("type")
        return_type = type_node.text.decode() if type_node is not None else ""
        if return_type and head.rstrip().endswith(("*", "&")):
            return_type += head.rstrip()[-1]

        method = MethodInfo(
            name=name_node.text.decode(),
            return_type=return_type,
            is_virtual="virtual" in head_words,
            is_static="static" in head_words,
            is_override="override" in tail,
            is_const="const" in tail,
            visibility=visibility,
            line=line,
        )

        if parameters is not None:
            method.parameters = self._extract_parameters(parameters)
        return method

    def _extract_parameters(self, param_list: Any) -> list[ParameterInfo]:
        """Extract parameter information from a parameter list."""
        params = []
        for child in param_list.children:
            if child.type not in ("parameter_declaration", "optional_parameter_declaration"):
                continue

            declarator = child.child_by_field_name("declarator")
            name = ""
            type_text = child.text.decode(errors="ignore")
            if declarator is not None:
                identifiers = [
                    d for d in self._iter_descendants(declarator) if d.type == "identifier"
                ]
                if declarator.type == "identifier":
                    identifiers = [declarator]
                if identifiers:
                    name = identifiers[-1].text.decode()
                prefix = child.text[: declarator.start_byte - child.start_byte].decode(errors="ignore")
                markers = declarator.text.decode(errors="ignore")
                if name:
                    markers = markers.replace(name, "")
                type_text = f"{prefix.strip()}{markers.strip()}"

            default_node = child.child_by_field_name("default_value")
            params.append(
                ParameterInfo(
                    name=name or "unnamed",
                    type=type_text or "unknown",
                    default_value=default_node.text.decode() if default_node is not None else None,
                )
            )
        return params

    def _extract_property_info(self, node: Any, visibility: Visibility, line: int) -> PropertyInfo | None:
        """Extract property information from a field declaration."""
        type_node = node.child_by_field_name("type")
        declarator = node.child_by_field_name("declarator")
        if declarator is None:
            return None

        prop_name = ""
        if declarator.type == "field_identifier":
            prop_name = declarator.text.decode()
        else:
            for child in self._iter_descendants(declarator):
                if child.type == "field_identifier":
                    prop_name = child.text.decode()
                    break
        if not prop_name:
            return None

        prop_type = type_node.text.decode() if type_node is not None else "unknown"
        if declarator.type == "pointer_declarator":
            prop_type += "*"
        elif declarator.type == "reference_declarator":
            prop_type += "&"

        head = node.text[: declarator.start_byte - node.start_byte].decode(errors="ignore")
        return PropertyInfo(
            name=prop_name,
            type=prop_type,
            visibility=visibility,
            is_static="static" in head.split(),
            line=line,
        )


# ============================================================================
# Global Instance
# ============================================================================

_inspector: DeclarationInspector | None = None
_inspector_lock = threading.Lock()


def get_inspector() -> DeclarationInspector:
    """Get the shared inspector instance."""
    global _inspector
    with _inspector_lock:
        if _inspector is None:
            _inspector = DeclarationInspector()
        return _inspector
