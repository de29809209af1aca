# File: sqlconstructor/utils.py
"""
SQL Constructor - Utility Functions & Helpers
=============================================
Data-type classification, operator / aggregation option tables, identifier
casing and file I/O used throughout the pipeline.

- Type predicates work on the free-form ``data_type`` strings found in
  imported schemas ("integer", "character varying", "timestamp with time
  zone", "text[]", ...).
- String-conversion functions are ``lru_cache``d; the same names are
  converted over and over while exporting.
- File writes go through a temporary file and an atomic rename.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import FrozenSet, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlconstructor.utils")

# ---------------------------------------------------------------------------
# Data-type families
# ---------------------------------------------------------------------------

NUMERIC_TYPES: FrozenSet[str] = frozenset(
    {
        "integer",
        "bigint",
        "decimal",
        "numeric",
        "real",
        "double precision",
        "smallint",
        "money",
    }
)

AGGREGATE_CALL_RE: re.Pattern[str] = re.compile(r"^(COUNT|SUM|AVG|MIN|MAX)\s*\(")

_SNAKE_OR_KEBAB_BOUNDARY_RE: re.Pattern[str] = re.compile(r"[-_]([a-zA-Z])")


def is_boolean_type(data_type: Optional[str]) -> bool:
    return (data_type or "").lower() == "boolean"


def is_numeric_type(data_type: Optional[str]) -> bool:
    return (data_type or "").lower() in NUMERIC_TYPES


def is_temporal_type(data_type: Optional[str]) -> bool:
    lower: str = (data_type or "").lower()
    return lower.startswith("timestamp") or lower == "date"


def is_array_type(data_type: Optional[str]) -> bool:
    lower: str = (data_type or "").lower()
    return "array" in lower or lower.endswith("[]")


def is_aggregate_expression(expression: str) -> bool:
    """Heuristic: does the expression start with an aggregate call?"""
    return bool(AGGREGATE_CALL_RE.match(expression.strip().upper()))


def format_data_type(data_type: Optional[str]) -> str:
    """Short display label for a column type."""
    if not data_type:
        return "unknown"
    if data_type.startswith("timestamp"):
        return "date"
    if data_type.startswith("character"):
        return "text"
    return data_type


# ---------------------------------------------------------------------------
# Operator & aggregation option tables
# ---------------------------------------------------------------------------


def get_operators(data_type: Optional[str]) -> List[str]:
    """
    Operators offered for a column of the given type.

    The empty string ("no filter") always comes first and the raw ``SQL``
    operator always comes last.
    """
    if not data_type:
        return ["", "=", "SQL"]

    lower: str = data_type.lower()

    if is_array_type(lower):
        ops: List[str] = ["IN", "=", "<>", "IS NULL", "IS NOT NULL"]
    elif lower == "boolean":
        ops = ["=", "IS NULL", "IS NOT NULL"]
    elif is_numeric_type(lower) or is_temporal_type(lower):
        ops = ["=", "<>", "IS NULL", "IS NOT NULL", ">", "<", ">=", "<=", "IN"]
    else:
        ops = [
            "=", "<>", "IS NULL", "IS NOT NULL", ">", "<", ">=",
            "LIKE", "NOT LIKE", "IN",
        ]

    return ["", *ops, "SQL"]


def get_aggregation_options(data_type: Optional[str]) -> List[str]:
    """
    Grouping roles offered for a column of the given type.

    SUM / AVG only make sense on numbers; booleans get SUM (cast to int)
    but no AVG.
    """
    base: List[str] = ["Group By", "COUNT", "MIN", "MAX", "Expression", "Where"]

    if is_numeric_type(data_type):
        return ["Group By", "SUM", "AVG", *base[1:]]
    if is_boolean_type(data_type):
        return ["Group By", "SUM", *base[1:]]
    return base


def get_effective_type_for_aggregation(
    original_type: str, aggregation: Optional[str]
) -> str:
    """
    Type of the value produced by an aggregation.

    ``COUNT(text)`` is a bigint, ``SUM``/``AVG`` are decimals, MIN/MAX keep
    the column type.
    """
    if not aggregation or aggregation in ("Group By", "Where"):
        return original_type
    if aggregation == "COUNT":
        return "bigint"
    if aggregation in ("SUM", "AVG"):
        return "decimal"
    return original_type


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """
    Convert snake_case or kebab-case to camelCase.

    Only the separators are touched; the rest of the name keeps its casing.

    Examples:
        >>> to_camel_case("first_name")
        'firstName'
        >>> to_camel_case("created-at")
        'createdAt'
        >>> to_camel_case("userID")
        'userID'
    """
    if not name:
        return ""
    return _SNAKE_OR_KEBAB_BOUNDARY_RE.sub(lambda m: m.group(1).upper(), name)


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert snake_case or kebab-case to PascalCase.

    Examples:
        >>> to_pascal_case("user_roles")
        'UserRoles'
    """
    camel: str = to_camel_case(name)
    if not camel:
        return ""
    return camel[0].upper() + camel[1:]


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path*.

    When *atomic* is True, writes to a temporary file in the same directory
    then renames it over the target, so readers never see a partial file.

    Returns the number of bytes written.
    """
    ensure_directory(path.parent)

    encoded: bytes = content.encode("utf-8")

    if atomic:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
            os.replace(tmp_path, str(path))
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path) -> str:
    """Read a file and return its content as a string."""
    return path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("render") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


__all__: List[str] = [
    "AGGREGATE_CALL_RE",
    "NUMERIC_TYPES",
    "Timer",
    "ensure_directory",
    "format_data_type",
    "get_aggregation_options",
    "get_effective_type_for_aggregation",
    "get_operators",
    "is_aggregate_expression",
    "is_array_type",
    "is_boolean_type",
    "is_numeric_type",
    "is_temporal_type",
    "read_file",
    "to_camel_case",
    "to_pascal_case",
    "write_file",
]
