"""
Filter Compiler

Turns user-facing folder and path selections into a vector store predicate.

Selectors are alternative content locations, so the compiled predicate ORs
them: a fragment matches if it sits in any selected watch folder, any
selected smart folder, or at any selected file path. No selection at all
compiles to MatchAll, which renders as "no filter".

Predicates are a small tagged tree (Eq, In, Or, And, Range, MatchAll) that
can both render to the store's filter syntax and be evaluated locally.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..common.errors import ValidationError

# Metadata fields targeted by each selector dimension
WATCH_FOLDER_FIELD = "folderName"
SMART_FOLDER_FIELD = "smartFolderNames"
FILE_PATH_FIELD = "filepath"


class RetrievalFilter:
    """Base class for predicate nodes"""

    def to_store(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def matches(self, metadata: Dict[str, Any]) -> bool:
        raise NotImplementedError


def _value_matches(actual: Any, expected: Any) -> bool:
    # List-valued metadata (e.g. smart folders) matches on membership
    if isinstance(actual, (list, tuple, set)):
        return expected in actual
    return actual == expected


@dataclass(frozen=True)
class MatchAll(RetrievalFilter):
    """The universal predicate"""

    def to_store(self) -> Optional[Dict[str, Any]]:
        return None

    def matches(self, metadata: Dict[str, Any]) -> bool:
        return True


MATCH_ALL = MatchAll()


@dataclass(frozen=True)
class Eq(RetrievalFilter):
    field: str
    value: Any

    def to_store(self) -> Dict[str, Any]:
        return {self.field: {"$eq": self.value}}

    def matches(self, metadata: Dict[str, Any]) -> bool:
        return _value_matches(metadata.get(self.field), self.value)


@dataclass(frozen=True)
class In(RetrievalFilter):
    field: str
    values: Tuple[Any, ...]

    def to_store(self) -> Dict[str, Any]:
        return {self.field: {"$in": list(self.values)}}

    def matches(self, metadata: Dict[str, Any]) -> bool:
        actual = metadata.get(self.field)
        return any(_value_matches(actual, value) for value in self.values)


@dataclass(frozen=True)
class Range(RetrievalFilter):
    """Inclusive numeric range; either bound may be open"""
    field: str
    gte: Optional[float] = None
    lte: Optional[float] = None

    def to_store(self) -> Dict[str, Any]:
        bounds = {}
        if self.gte is not None:
            bounds["$gte"] = self.gte
        if self.lte is not None:
            bounds["$lte"] = self.lte
        return {self.field: bounds}

    def matches(self, metadata: Dict[str, Any]) -> bool:
        actual = metadata.get(self.field)
        if not isinstance(actual, (int, float)) or isinstance(actual, bool):
            return False
        if self.gte is not None and actual < self.gte:
            return False
        if self.lte is not None and actual > self.lte:
            return False
        return True


@dataclass(frozen=True)
class Or(RetrievalFilter):
    children: Tuple[RetrievalFilter, ...]

    def to_store(self) -> Dict[str, Any]:
        return {"$or": [child.to_store() for child in self.children]}

    def matches(self, metadata: Dict[str, Any]) -> bool:
        return any(child.matches(metadata) for child in self.children)


@dataclass(frozen=True)
class And(RetrievalFilter):
    children: Tuple[RetrievalFilter, ...]

    def to_store(self) -> Dict[str, Any]:
        return {"$and": [child.to_store() for child in self.children]}

    def matches(self, metadata: Dict[str, Any]) -> bool:
        return all(child.matches(metadata) for child in self.children)


def conjoin(*filters: RetrievalFilter) -> RetrievalFilter:
    """AND predicates together, dropping MatchAll operands"""
    parts = tuple(f for f in filters if not isinstance(f, MatchAll))
    if not parts:
        return MATCH_ALL
    if len(parts) == 1:
        return parts[0]
    return And(parts)


def _selector_leaf(field_name: str, values: Optional[Sequence[Any]]) -> Optional[RetrievalFilter]:
    values = list(values or [])
    if not values:
        return None
    if len(values) == 1:
        return Eq(field_name, values[0])
    return In(field_name, tuple(values))


class FilterCompiler:
    """Compiles folder and path selections into a RetrievalFilter."""

    @staticmethod
    def compile(
        watch_folder_names: Optional[Sequence[str]] = None,
        smart_folder_names: Optional[Sequence[str]] = None,
        file_paths: Optional[Sequence[str]] = None,
    ) -> RetrievalFilter:
        """
        Build the OR of one leaf per non-empty selector list.

        A list with one element contributes Eq, a longer list contributes In,
        an empty or None list contributes nothing. A single leaf is returned
        bare; no leaves at all yields MATCH_ALL.
        """
        leaves = [
            leaf
            for leaf in (
                _selector_leaf(WATCH_FOLDER_FIELD, watch_folder_names),
                _selector_leaf(SMART_FOLDER_FIELD, smart_folder_names),
                _selector_leaf(FILE_PATH_FIELD, file_paths),
            )
            if leaf is not None
        ]
        if not leaves:
            return MATCH_ALL
        if len(leaves) == 1:
            return leaves[0]
        return Or(tuple(leaves))


# =============================================================================
# Request-side selectors
# =============================================================================

@dataclass
class SharedSelector:
    """Content shared from another account's namespace"""
    owner_id: Optional[str]
    folder_names: List[str] = field(default_factory=list)
    file_paths: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return bool(self.owner_id)

    def compile(self) -> RetrievalFilter:
        # Shared content has no smart-folder dimension
        return FilterCompiler.compile(self.folder_names, None, self.file_paths)


@dataclass
class QueryFilters:
    """Structured folder/path filters attached to a query"""
    watch_folder_names: List[str] = field(default_factory=list)
    smart_folder_names: List[str] = field(default_factory=list)
    file_paths: List[str] = field(default_factory=list)
    shared: List[SharedSelector] = field(default_factory=list)

    @property
    def has_own_selection(self) -> bool:
        return bool(self.watch_folder_names or self.smart_folder_names or self.file_paths)

    def compile_own(self) -> RetrievalFilter:
        return FilterCompiler.compile(
            self.watch_folder_names, self.smart_folder_names, self.file_paths
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["QueryFilters"]:
        """
        Parse the camelCase request shape.

        None means no structured filter was sent at all. Folder names are
        lower-cased to match how fragments are stored; file paths are kept
        verbatim.
        """
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValidationError("filters must be an object", ["filters"])

        shared_raw = data.get("sharedContext") or []
        if not isinstance(shared_raw, list):
            raise ValidationError("sharedContext must be a list", ["sharedContext"])

        shared = []
        for entry in shared_raw:
            if not isinstance(entry, dict):
                raise ValidationError("sharedContext entries must be objects", ["sharedContext"])
            shared.append(
                SharedSelector(
                    owner_id=entry.get("ownerId") or None,
                    folder_names=_lowered(_string_list(entry, "folderNames")),
                    file_paths=_string_list(entry, "filePaths"),
                )
            )

        return cls(
            watch_folder_names=_lowered(_string_list(data, "watchFolderNames")),
            smart_folder_names=_lowered(_string_list(data, "smartFolderNames")),
            file_paths=_string_list(data, "filePaths"),
            shared=shared,
        )


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of strings", [key])
    return list(value)


def _lowered(values: Iterable[str]) -> List[str]:
    return [v.lower() for v in values]
