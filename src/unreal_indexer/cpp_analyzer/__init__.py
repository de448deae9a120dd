"""
C++ Declaration Analyzer.

Finds macro-annotated (reflected) declarations in Unreal module sources.

Key Components:
- DeclarationScanner: line-oriented state machine over .h/.cpp files
- DeclarationInspector: tree-sitter member extraction for one declaration
- get_inspector(): Get the global inspector instance
- parse_specifiers(): Split a macro argument list into specifiers
"""

from .inspector import (
    DeclarationDetails,
    DeclarationInspector,
    MethodInfo,
    ParameterInfo,
    PropertyInfo,
    get_inspector,
)
from .patterns import (
    BLUEPRINT_SPECIFIERS,
    REPLICATION_SPECIFIERS,
    TYPE_ANNOTATIONS,
    parse_specifiers,
)
from .scanner import (
    DeclarationScanner,
    ScanState,
    SourceScanResult,
)

__all__ = [
    # Scanner
    "DeclarationScanner",
    "ScanState",
    "SourceScanResult",
    # Inspector
    "DeclarationInspector",
    "get_inspector",
    # Data classes
    "DeclarationDetails",
    "MethodInfo",
    "PropertyInfo",
    "ParameterInfo",
    # Patterns
    "TYPE_ANNOTATIONS",
    "BLUEPRINT_SPECIFIERS",
    "REPLICATION_SPECIFIERS",
    "parse_specifiers",
]
