"""
Declaration scanner - line-oriented recognition of reflected C++ types.

Walks module source directories and feeds every header/source file through a
small state machine:

    SEARCHING --annotation--> PENDING_ANNOTATION --`)`--> PENDING_DECLARATION
        ^                                                       |
        +------------------- declaration line ------------------+

Brace depth and the pending specifier list are explicit fields of the
per-file state. Type annotations are only accepted at file scope
(depth 0); UFUNCTION annotations are accepted directly inside the body of
the enclosing type (depth 1).

A type header may span lines (`class GAME_API AHero` followed by
`: public ACharacter`); the declaration stays pending until the base clause,
`{` or `;` is seen, and is recorded at the line holding its name.

Each scanned file also yields the line numbers of every identifier in it,
so usage queries can be answered from the scan without re-reading files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from ..config import get_config
from ..errors import IssueCode, ScanIssue
from ..logging import get_logger
from ..models import DeclarationKind, FunctionDeclaration, ModuleDescriptor, TypeDeclaration
from .patterns import (
    FUNCTION_ANNOTATION,
    PROPERTY_ANNOTATION,
    TYPE_ANNOTATIONS,
    brace_delta,
    close_macro_arguments,
    match_annotation,
    parse_function_header,
    parse_specifiers,
    parse_type_header,
    strip_comments,
)

logger = get_logger(__name__)

SOURCE_EXTENSIONS = (".h", ".cpp")

# Non-blank lines allowed between an annotation and its declaration.
DECLARATION_LOOKAHEAD = 10

_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")

# Same boundaries as a `\bName\b` search for identifier names.
_IDENTIFIER_RE = re.compile(r"\b[A-Za-z_]\w*")

# identifier -> ascending line numbers
FileReferences = dict[str, tuple[int, ...]]


class ScanState(str, Enum):
    SEARCHING = "searching"
    PENDING_ANNOTATION = "pending_annotation"
    PENDING_DECLARATION = "pending_declaration"


@dataclass
class SourceScanResult:
    """Declarations, functions and issues collected from source files."""
    declarations: list[TypeDeclaration] = field(default_factory=list)
    functions: list[FunctionDeclaration] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    issues: list[ScanIssue] = field(default_factory=list)
    references: dict[str, FileReferences] = field(default_factory=dict)

    def extend(self, other: "SourceScanResult") -> None:
        self.declarations.extend(other.declarations)
        self.functions.extend(other.functions)
        self.files.extend(other.files)
        self.issues.extend(other.issues)
        self.references.update(other.references)


class _FileScan:
    """State machine over the lines of one file."""

    def __init__(self, path: str, module: str):
        self.path = path
        self.module = module
        self.result = SourceScanResult()

        self.state = ScanState.SEARCHING
        self.brace_depth = 0
        self.in_block_comment = False

        # Pending annotation
        self.macro = ""
        self.annotation_line = 0
        self.annotation_depth = 0
        self.arguments = ""
        self.specifiers: tuple[str, ...] = ()
        self.lookahead = 0

        # Type header split over several lines
        self.header = ""
        self.header_line = 0

        # Type whose body UFUNCTIONs belong to
        self.owner: str | None = None
        self.owner_entered = False

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def feed(self, raw: str, lineno: int) -> None:
        code, self.in_block_comment = strip_comments(raw, self.in_block_comment)

        if self.state is ScanState.PENDING_ANNOTATION:
            rest = self._continue_annotation(" " + code)
            if rest is None:
                return
            code = rest

        self._process(code, lineno)
        self._update_depth(code)

    def finish(self) -> SourceScanResult:
        if self.state is not ScanState.SEARCHING and not self._flush_header():
            self._drop_pending("file ends before the annotated declaration")
        return self.result

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _process(self, code: str, lineno: int) -> None:
        if self.state is ScanState.SEARCHING:
            matched = match_annotation(code)
            if matched is None:
                self._track_plain_class(code)
                return

            macro, after = matched
            if macro == PROPERTY_ANNOTATION:
                return
            self.macro = macro
            self.annotation_line = lineno
            self.annotation_depth = self.brace_depth
            self.arguments = ""
            self.state = ScanState.PENDING_ANNOTATION

            rest = self._continue_annotation(after)
            if rest is None:
                return
            code = rest

        if self.state is ScanState.PENDING_DECLARATION:
            stripped = code.strip()
            if not stripped:
                return

            if match_annotation(stripped) is not None:
                if not self._flush_header():
                    self._drop_pending(f"followed by another annotation at line {lineno}")
                self._process(code, lineno)
                return

            if self._try_declaration(stripped, lineno):
                return

            self.lookahead += 1
            if self.lookahead >= DECLARATION_LOOKAHEAD and not self._flush_header():
                self._drop_pending(f"no declaration within {DECLARATION_LOOKAHEAD} lines")

    def _continue_annotation(self, text: str) -> str | None:
        """Accumulate macro arguments; return the text after `)` once closed."""
        self.arguments += text
        closed = close_macro_arguments(self.arguments)
        if closed is None:
            return None

        arguments, rest = closed
        self.specifiers = tuple(parse_specifiers(arguments))
        self.state = ScanState.PENDING_DECLARATION
        self.lookahead = 0
        return rest

    def _try_declaration(self, code: str, lineno: int) -> bool:
        if self.macro == FUNCTION_ANNOTATION:
            return self._try_function(code, lineno)

        kind = TYPE_ANNOTATIONS[self.macro]
        header = f"{self.header} {code}" if self.header else code
        parsed = parse_type_header(header, kind)
        if parsed is None:
            return False

        name, parent = parsed
        if parent is None and not header_complete(header):
            # Base clause or body still to come
            if not self.header:
                self.header_line = lineno
            self.header = header
            return False

        self._record_type(kind, name, parent, self.header_line or lineno)
        return True

    def _flush_header(self) -> bool:
        """Record a pending multi-line header as far as it was read."""
        if not self.header:
            return False
        kind = TYPE_ANNOTATIONS[self.macro]
        name, parent = parse_type_header(self.header, kind)
        self._record_type(kind, name, parent, self.header_line)
        return True

    def _record_type(
        self, kind: DeclarationKind, name: str, parent: str | None, lineno: int
    ) -> None:
        if self.annotation_depth == 0:
            self.result.declarations.append(
                TypeDeclaration(
                    kind=kind,
                    name=name,
                    parent=parent,
                    specifiers=self.specifiers,
                    module=self.module,
                    file=self.path,
                    line=lineno,
                )
            )
            self._set_owner(name)
        else:
            logger.debug(
                "Ignoring nested %s %s at %s:%d", self.macro, name, self.path, lineno
            )
        self._reset()

    def _try_function(self, code: str, lineno: int) -> bool:
        parsed = parse_function_header(code)
        if parsed is None:
            return False

        return_type, name, parameters = parsed
        if self.owner and self.owner_entered and self.annotation_depth == 1:
            self.result.functions.append(
                FunctionDeclaration(
                    name=name,
                    owner=self.owner,
                    return_type=return_type,
                    parameters=tuple(parameters),
                    specifiers=self.specifiers,
                    module=self.module,
                    file=self.path,
                    line=lineno,
                )
            )
        self._reset()
        return True

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _track_plain_class(self, code: str) -> None:
        # Interface `I` classes carry UFUNCTIONs without an annotation of their own.
        if self.brace_depth != 0:
            return
        parsed = parse_type_header(code.strip(), DeclarationKind.CLASS)
        if parsed is not None:
            self._set_owner(parsed[0])

    def _set_owner(self, name: str) -> None:
        self.owner = name
        self.owner_entered = False

    def _update_depth(self, code: str) -> None:
        self.brace_depth = max(0, self.brace_depth + brace_delta(code))
        if self.owner is None:
            return
        if self.brace_depth > 0:
            self.owner_entered = True
        elif self.owner_entered or ";" in code:
            self.owner = None
            self.owner_entered = False

    def _drop_pending(self, reason: str) -> None:
        issue = ScanIssue(
            code=IssueCode.UNTERMINATED_ANNOTATION,
            message=f"{self.macro} annotation at line {self.annotation_line} dropped: {reason}",
            path=self.path,
            line=self.annotation_line,
        )
        logger.warning("%s", issue)
        self.result.issues.append(issue)
        self._reset()

    def _reset(self) -> None:
        self.state = ScanState.SEARCHING
        self.macro = ""
        self.arguments = ""
        self.specifiers = ()
        self.lookahead = 0
        self.header = ""
        self.header_line = 0


def header_complete(header: str) -> bool:
    """Whether a type header has reached its body or terminating `;`."""
    return "{" in header or ";" in header


def collect_references(text: str) -> FileReferences:
    """Line numbers of every identifier in `text`, comments included."""
    lines: dict[str, list[int]] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        for word in set(_IDENTIFIER_RE.findall(line)):
            lines.setdefault(word, []).append(lineno)
    return {word: tuple(numbers) for word, numbers in lines.items()}


def iter_source_files(root: Path) -> list[Path]:
    """All header/source files under `root`, in sorted path order."""
    files = [
        p for p in root.rglob("*")
        if p.suffix.lower() in SOURCE_EXTENSIONS and p.is_file()
    ]
    return sorted(files, key=lambda p: p.as_posix())


def decode_source(data: bytes) -> str:
    """Decode UTF-8 (with or without BOM) or BOM-marked UTF-16 source text."""
    if data.startswith(_UTF16_BOMS):
        return data.decode("utf-16")
    return data.decode("utf-8-sig")


class DeclarationScanner:
    """
    Scans module source trees for macro-annotated declarations.

    Per-file problems (unreadable, oversized, unterminated annotations) are
    recorded as issues; they never abort the scan.
    """

    def __init__(self, max_file_bytes: int | None = None):
        self.max_file_bytes = max_file_bytes or get_config().max_file_bytes

    def scan_modules(self, modules: Iterable[ModuleDescriptor]) -> SourceScanResult:
        """Scan each module directory in order."""
        result = SourceScanResult()
        for module in modules:
            result.extend(self.scan_module(module))
        return result

    def scan_module(self, module: ModuleDescriptor) -> SourceScanResult:
        """Scan one module's directory recursively."""
        root = Path(module.path)
        if not root.is_dir():
            issue = ScanIssue(
                code=IssueCode.MODULE_DIRECTORY_MISSING,
                message=f"Module directory not found: {module.name}",
                path=str(root),
            )
            logger.warning("%s", issue)
            return SourceScanResult(issues=[issue])

        result = SourceScanResult()
        files = iter_source_files(root)
        for file_path in files:
            result.extend(self.scan_file(file_path, module.name))
        logger.debug(
            "Module %s: %d files, %d declarations",
            module.name,
            len(files),
            len(result.declarations),
        )
        return result

    def scan_file(self, path: str | Path, module: str) -> SourceScanResult:
        """Read and scan a single file."""
        file_path = Path(path)
        path_str = str(file_path)

        try:
            size = file_path.stat().st_size
            if size > self.max_file_bytes:
                return self._skip(
                    IssueCode.FILE_TOO_LARGE,
                    f"Skipped {size} byte file (limit {self.max_file_bytes})",
                    path_str,
                )
            text = decode_source(file_path.read_bytes())
        except UnicodeDecodeError as e:
            return self._skip(IssueCode.UNREADABLE_FILE, f"Cannot decode as text: {e.reason}", path_str)
        except OSError as e:
            return self._skip(IssueCode.UNREADABLE_FILE, f"Cannot read file: {e}", path_str)

        return self.scan_text(text, path_str, module)

    def scan_text(self, text: str, path: str, module: str) -> SourceScanResult:
        """Run the state machine over already decoded text."""
        state = _FileScan(path, module)
        for index, line in enumerate(text.splitlines()):
            state.feed(line, index + 1)
        result = state.finish()
        result.files.append(path)
        result.references[path] = collect_references(text)
        return result

    def _skip(self, code: IssueCode, message: str, path: str) -> SourceScanResult:
        issue = ScanIssue(code=code, message=message, path=path)
        logger.warning("%s", issue)
        return SourceScanResult(issues=[issue])
