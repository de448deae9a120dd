"""
Unreal Engine reflection macro patterns.

Lexical helpers shared by the declaration scanner and the member inspector:
the annotation macro table, specifier-list splitting, comment stripping,
brace counting and declaration-header parsing. None of this is a C++
parser; it recognises only the line shapes UHT itself requires.
"""

import re

from ..models import DeclarationKind


# ============================================================================
# Macro Tables
# ============================================================================

TYPE_ANNOTATIONS: dict[str, DeclarationKind] = {
    "UCLASS": DeclarationKind.CLASS,
    "USTRUCT": DeclarationKind.STRUCT,
    "UENUM": DeclarationKind.ENUM,
    "UINTERFACE": DeclarationKind.INTERFACE,
}

FUNCTION_ANNOTATION = "UFUNCTION"
PROPERTY_ANNOTATION = "UPROPERTY"

MEMBER_ANNOTATIONS = (FUNCTION_ANNOTATION, PROPERTY_ANNOTATION)

# Macros that expand to nothing the scanner cares about but confuse a C++ grammar.
BODY_MACROS = (
    "GENERATED_BODY",
    "GENERATED_UCLASS_BODY",
    "GENERATED_USTRUCT_BODY",
    "GENERATED_UINTERFACE_BODY",
    "GENERATED_IINTERFACE_BODY",
    "UMETA",
    "UPARAM",
)

ALL_ANNOTATIONS = (*TYPE_ANNOTATIONS, *MEMBER_ANNOTATIONS)


# ============================================================================
# Blueprint-Related Specifiers
# ============================================================================

BLUEPRINT_SPECIFIERS = {
    # Function specifiers
    "BlueprintCallable",
    "BlueprintPure",
    "BlueprintImplementableEvent",
    "BlueprintNativeEvent",
    "BlueprintAuthorityOnly",
    "BlueprintCosmetic",

    # Property specifiers
    "BlueprintReadOnly",
    "BlueprintReadWrite",
    "BlueprintGetter",
    "BlueprintSetter",
    "BlueprintAssignable",

    # Class specifiers
    "Blueprintable",
    "BlueprintType",
}


# ============================================================================
# Replication Specifiers
# ============================================================================

REPLICATION_SPECIFIERS = {
    "Replicated",
    "ReplicatedUsing",
    "NotReplicated",
    "Server",
    "Client",
    "NetMulticast",
    "Reliable",
    "Unreliable",
}


_TOKEN_RE = re.compile(r"[A-Za-z_]\w*(?:\s*::\s*[A-Za-z_]\w*)*|::|\S")
_IDENT_RE = re.compile(r"[A-Za-z_]\w*$")
_TRAILING_NAME_RE = re.compile(r"(~?[A-Za-z_]\w*)\s*$")

ACCESS_KEYWORDS = {"public", "protected", "private", "virtual"}

FUNCTION_QUALIFIERS = {
    "virtual",
    "static",
    "inline",
    "explicit",
    "friend",
    "constexpr",
    "FORCEINLINE",
    "FORCENOINLINE",
}


# ============================================================================
# Lexical Helpers
# ============================================================================

def split_top_level(text: str, opening: str = "(", closing: str = ")") -> list[str]:
    """
    Split on commas that are not nested in brackets or string literals.

    Args:
        text: Text to split
        opening: Characters that increase nesting depth
        closing: Characters that decrease nesting depth

    Returns:
        Stripped, non-empty pieces in order
    """
    result = []
    depth = 0
    quote = None
    current = ""
    escaped = False

    for char in text:
        if quote:
            current += char
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in "\"'":
            quote = char
            current += char
        elif char in opening:
            depth += 1
            current += char
        elif char in closing:
            depth -= 1
            current += char
        elif char == ',' and depth == 0:
            if current.strip():
                result.append(current.strip())
            current = ""
        else:
            current += char

    if current.strip():
        result.append(current.strip())

    return result


def parse_specifiers(specifiers_str: str) -> list[str]:
    """
    Parse specifiers from a macro argument string.

    Nested parentheses (e.g. `meta=(DisplayName="Fire")`) and quoted
    values stay inside a single token.

    Args:
        specifiers_str: The string inside macro parentheses

    Returns:
        List of individual specifiers
    """
    return split_top_level(specifiers_str, "(", ")")


def specifier_names(specifiers: list[str] | tuple[str, ...]) -> set[str]:
    """Bare specifier names, with `=value` parts removed."""
    return {s.split("=")[0].strip() for s in specifiers}


def strip_comments(line: str, in_block: bool) -> tuple[str, bool]:
    """
    Remove // and /* */ comments from one line, keeping string literals.

    Args:
        line: Raw source line
        in_block: Whether a block comment is open at the start of the line

    Returns:
        (code, in_block) where in_block reports whether a block comment
        is still open at the end of the line.
    """
    out = []
    quote = None
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if in_block:
            if line.startswith("*/", i):
                in_block = False
                out.append(" ")
                i += 2
            else:
                i += 1
            continue

        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(line[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue

        if ch in "\"'":
            quote = ch
        elif line.startswith("//", i):
            break
        elif line.startswith("/*", i):
            in_block = True
            i += 2
            continue
        out.append(ch)
        i += 1

    return "".join(out), in_block


def bracket_depth(text: str, opening: str, closing: str) -> int:
    """Net opening minus closing brackets outside string and character literals."""
    depth = 0
    quote = None
    escaped = False
    for ch in text:
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in opening:
            depth += 1
        elif ch in closing:
            depth -= 1
    return depth


def brace_delta(code: str) -> int:
    """Net `{` minus `}` on a line of code."""
    return bracket_depth(code, "{", "}")


def match_annotation(code: str) -> tuple[str, str] | None:
    """
    Recognise a line that starts with a reflection macro call.

    Returns:
        (macro, text_after_open_paren) or None. A bare `UCLASS` with no
        parentheses yields an empty argument string followed by `)`.
    """
    stripped = code.lstrip()
    match = re.match(r"([A-Z]+)\b", stripped)
    if not match or match.group(1) not in ALL_ANNOTATIONS:
        return None

    macro = match.group(1)
    rest = stripped[match.end():].lstrip()
    if rest.startswith("("):
        return macro, rest[1:]
    if not rest:
        return macro, ")"
    return None


def close_macro_arguments(text: str) -> tuple[str, str] | None:
    """
    Find the `)` closing an already opened macro argument list.

    Args:
        text: Accumulated text following the opening parenthesis

    Returns:
        (arguments, remainder) or None if the list is still open.
    """
    depth = 1
    quote = None
    escaped = False
    for i, ch in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[:i], text[i + 1:]
    return None


def tokenize(code: str) -> list[str]:
    """Identifier / punctuation tokens; qualified names stay whole."""
    return [re.sub(r"\s+", "", t) for t in _TOKEN_RE.findall(code)]


def _is_identifier(token: str) -> bool:
    return bool(_IDENT_RE.match(token.split("::")[-1]))


def is_export_macro(token: str) -> bool:
    """`MYGAME_API` style export macros between the keyword and the name."""
    return token.endswith("_API")


def parse_type_header(code: str, kind: DeclarationKind) -> tuple[str, str | None] | None:
    """
    Parse `<keyword> [EXPORT_API] <Name> [final] [: <access> <Parent>, ...]`.

    Only the first base is kept. Enum underlying types (`: uint8`) are not
    parents.

    Returns:
        (name, parent) or None if the line is not a declaration of `kind`.
    """
    tokens = tokenize(code)
    if not tokens or tokens[0] != kind.keyword:
        return None

    i = 1
    if kind is DeclarationKind.ENUM and i < len(tokens) and tokens[i] in ("class", "struct"):
        i += 1
    while i < len(tokens) and is_export_macro(tokens[i]):
        i += 1
    if i >= len(tokens) or not _is_identifier(tokens[i]):
        return None

    name = tokens[i].split("::")[-1]
    i += 1
    if i < len(tokens) and tokens[i] == "final":
        i += 1

    parent = None
    if kind is not DeclarationKind.ENUM and i < len(tokens) and tokens[i] == ":":
        i += 1
        while i < len(tokens) and tokens[i] in ACCESS_KEYWORDS:
            i += 1
        if i < len(tokens) and _is_identifier(tokens[i]):
            parent = tokens[i].split("::")[-1]

    return name, parent


def parse_function_header(code: str) -> tuple[str, str, list[str]] | None:
    """
    Parse `[qualifiers] <ReturnType> <Name>(<params>)`.

    Parameters are returned as raw strings and only when the parameter list
    closes on the same line.

    Returns:
        (return_type, name, parameters) or None.
    """
    open_index = code.find("(")
    if open_index < 0:
        return None

    prefix = code[:open_index]
    match = _TRAILING_NAME_RE.search(prefix)
    if not match:
        return None
    name = match.group(1)

    words = [
        w for w in prefix[:match.start()].split()
        if w not in FUNCTION_QUALIFIERS and not is_export_macro(w)
    ]
    return_type = " ".join(words)
    if name in FUNCTION_QUALIFIERS or name in ("return", "if", "while", "for", "switch"):
        return None

    parameters: list[str] = []
    closed = close_macro_arguments(code[open_index + 1:])
    if closed is not None:
        parameters = split_top_level(closed[0], "(<", ")>")
    return return_type, name, parameters
