"""Timing data classes, constants, and classification."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Callable, Iterable, Optional


# ─── Constants ────────────────────────────────────────────────────────

UNKNOWN_KEY = "unknown"
DEFAULT_TIMEOUT = timedelta(seconds=120)
DEFAULT_EPSILON = timedelta(seconds=1)

ORIGIN_CLIENT = "client"
ORIGIN_IMPORT = "import"


class SummaryType(IntEnum):
    """Closed set of categories a Summary is decomposed by."""

    PROJECT = 0
    LANGUAGE = 1
    EDITOR = 2
    OS = 3
    MACHINE = 4

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]

    @classmethod
    def parse(cls, value: int | str) -> "SummaryType":
        """Parse a category from its number or its name (``project``, ``os`` …)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip().lower()
        if text.isdigit():
            return cls(int(text))
        for summary_type, label in _TYPE_LABELS.items():
            if text in (label, summary_type.name.lower()):
                return summary_type
        if text == "operating_system":
            return cls.OS
        raise ValueError(f"Unknown summary type: {value!r}")


_TYPE_LABELS = {
    SummaryType.PROJECT: "project",
    SummaryType.LANGUAGE: "language",
    SummaryType.EDITOR: "editor",
    SummaryType.OS: "os",
    SummaryType.MACHINE: "machine",
}


# ─── Activity Classification ─────────────────────────────────────────

CATEGORY_BY_EXTENSION: dict[str, str] = {
    ".md": "writing docs", ".rst": "writing docs", ".adoc": "writing docs",
    ".txt": "writing docs",
}

ENTITY_KEYWORDS: dict[str, str] = {
    "test_": "writing tests", "_test.": "writing tests", ".test.": "writing tests",
    ".spec.": "writing tests", "spec_": "writing tests",
    "debug": "debugging",
    "review": "code reviewing", "diff": "code reviewing",
}


def classify_entity(entity: str) -> str:
    """Auto-classify an entity (file path) into an activity category."""
    if not entity:
        return "coding"
    entity_lower = os.path.basename(entity.lower())
    for keyword, category in ENTITY_KEYWORDS.items():
        if keyword in entity_lower:
            return category
    ext = os.path.splitext(entity_lower)[1]
    return CATEGORY_BY_EXTENSION.get(ext, "coding")


# ─── Data Classes ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Heartbeat:
    """A single activity pulse. Immutable once stored."""
    user_id: str
    time: datetime
    entity: str = ""
    type: str = "file"
    category: str = ""
    project: str = ""
    branch: str = ""
    language: str = ""
    editor: str = ""
    operating_system: str = ""
    machine: str = ""
    is_write: bool = False
    origin: str = ORIGIN_CLIENT
    id: Optional[int] = field(default=None, compare=False)

    def key_for(self, summary_type: SummaryType) -> str:
        """Raw key of this heartbeat for one category; empty means unknown."""
        if summary_type is SummaryType.PROJECT:
            return self.project
        if summary_type is SummaryType.LANGUAGE:
            return self.language
        if summary_type is SummaryType.EDITOR:
            return self.editor
        if summary_type is SummaryType.OS:
            return self.operating_system
        if summary_type is SummaryType.MACHINE:
            return self.machine
        raise ValueError(f"Unhandled summary type: {summary_type!r}")

    def with_language(self, language: str) -> "Heartbeat":
        return replace(self, language=language)

    def hashed(self) -> str:
        """Content hash used to suppress duplicate inserts."""
        parts = (
            self.user_id, self.time.isoformat(), self.entity, self.type,
            self.category, self.project, self.branch, self.language,
            self.editor, self.operating_system, self.machine,
            "1" if self.is_write else "0",
        )
        return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Alias:
    """User rule: raw ``value`` of category ``type`` resolves to ``key``."""
    user_id: str
    type: SummaryType
    key: str
    value: str
    id: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class LanguageMapping:
    """User rule: files ending in ``.extension`` are written in ``language``."""
    user_id: str
    extension: str
    language: str
    id: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class SummaryItem:
    """One (category, canonical key) → duration entry."""
    type: SummaryType
    key: str
    total_seconds: int

    @property
    def total(self) -> timedelta:
        return timedelta(seconds=self.total_seconds)


AliasLookup = Callable[[SummaryType, str], str]


@dataclass
class Filters:
    """Optional per-category constraints on a summary query.

    Set fields combine with OR: a heartbeat or item is kept when it matches
    *any* of them. A Filters object with no field set matches nothing.
    """
    project: str = ""
    language: str = ""
    editor: str = ""
    os: str = ""
    machine: str = ""

    def value_for(self, summary_type: SummaryType) -> str:
        if summary_type is SummaryType.PROJECT:
            return self.project
        if summary_type is SummaryType.LANGUAGE:
            return self.language
        if summary_type is SummaryType.EDITOR:
            return self.editor
        if summary_type is SummaryType.OS:
            return self.os
        if summary_type is SummaryType.MACHINE:
            return self.machine
        raise ValueError(f"Unhandled summary type: {summary_type!r}")

    def active(self) -> list[tuple[SummaryType, str]]:
        """Set fields, in category order."""
        return [(t, self.value_for(t)) for t in SummaryType if self.value_for(t)]

    def is_empty(self) -> bool:
        return not self.active()

    def matches(self, keys: dict[SummaryType, str]) -> bool:
        """True when any set field equals the corresponding resolved key."""
        return any(keys.get(t) == value for t, value in self.active())

    def cache_key(self) -> tuple[str, ...]:
        return tuple(self.value_for(t) for t in SummaryType)


@dataclass
class Summary:
    """Elapsed time of one user over one contiguous range, by category.

    ``total_seconds`` is estimated over the whole category-agnostic
    timeline, so it need not equal the sum of any category's items.
    """
    user_id: str
    from_time: datetime
    to_time: datetime
    total_seconds: int = 0
    projects: list[SummaryItem] = field(default_factory=list)
    languages: list[SummaryItem] = field(default_factory=list)
    editors: list[SummaryItem] = field(default_factory=list)
    operating_systems: list[SummaryItem] = field(default_factory=list)
    machines: list[SummaryItem] = field(default_factory=list)
    id: Optional[int] = field(default=None, compare=False)

    @property
    def total(self) -> timedelta:
        return timedelta(seconds=self.total_seconds)

    @property
    def total_hours(self) -> float:
        return round(self.total_seconds / 3600, 2)

    def items_of(self, summary_type: SummaryType) -> list[SummaryItem]:
        if summary_type is SummaryType.PROJECT:
            return self.projects
        if summary_type is SummaryType.LANGUAGE:
            return self.languages
        if summary_type is SummaryType.EDITOR:
            return self.editors
        if summary_type is SummaryType.OS:
            return self.operating_systems
        if summary_type is SummaryType.MACHINE:
            return self.machines
        raise ValueError(f"Unhandled summary type: {summary_type!r}")

    def set_items(self, summary_type: SummaryType, items: list[SummaryItem]) -> None:
        if summary_type is SummaryType.PROJECT:
            self.projects = items
        elif summary_type is SummaryType.LANGUAGE:
            self.languages = items
        elif summary_type is SummaryType.EDITOR:
            self.editors = items
        elif summary_type is SummaryType.OS:
            self.operating_systems = items
        elif summary_type is SummaryType.MACHINE:
            self.machines = items
        else:
            raise ValueError(f"Unhandled summary type: {summary_type!r}")

    def all_items(self) -> Iterable[SummaryItem]:
        for summary_type in SummaryType:
            yield from self.items_of(summary_type)

    def total_time_by(self, summary_type: SummaryType) -> timedelta:
        return timedelta(seconds=sum(i.total_seconds for i in self.items_of(summary_type)))

    def total_time_by_key(self, summary_type: SummaryType, key: str) -> timedelta:
        return timedelta(
            seconds=sum(i.total_seconds for i in self.items_of(summary_type) if i.key == key)
        )

    def total_time_by_filters(self, filters: Filters) -> timedelta:
        """Sum of the items matching any set filter field (OR semantics)."""
        total = timedelta(0)
        for summary_type, value in filters.active():
            total += self.total_time_by_key(summary_type, value)
        return total

    def with_resolved_aliases(self, resolve: AliasLookup) -> "Summary":
        """Copy with every item key resolved and colliding keys merged."""
        resolved = replace(self)
        for summary_type in SummaryType:
            totals: dict[str, int] = {}
            for item in self.items_of(summary_type):
                key = resolve(summary_type, item.key)
                totals[key] = totals.get(key, 0) + item.total_seconds
            resolved.set_items(summary_type, sort_items(summary_type, totals))
        return resolved

    def fill_unknown(self) -> "Summary":
        """Give every empty category a single unknown item carrying the total.

        Summaries without a grand total fall back to the largest category sum.
        """
        total = self.total_seconds or max(
            int(self.total_time_by(t).total_seconds()) for t in SummaryType
        )
        if total <= 0:
            return self
        for summary_type in SummaryType:
            if not self.items_of(summary_type):
                self.set_items(summary_type, [SummaryItem(summary_type, UNKNOWN_KEY, total)])
        return self

    def sorted(self) -> "Summary":
        for summary_type in SummaryType:
            totals = {i.key: i.total_seconds for i in self.items_of(summary_type)}
            self.set_items(summary_type, sort_items(summary_type, totals))
        return self

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "from": self.from_time.isoformat(),
            "to": self.to_time.isoformat(),
            "total_seconds": self.total_seconds,
            **{
                _LIST_NAMES[t]: [
                    {"key": i.key, "total_seconds": i.total_seconds}
                    for i in self.items_of(t)
                ]
                for t in SummaryType
            },
        }

    @staticmethod
    def format_duration(seconds: int) -> str:
        """Format seconds as 'Xh Ym'."""
        h, m = divmod(seconds // 60, 60)
        if h > 0:
            return f"{h}h {m}m"
        return f"{m}m"


_LIST_NAMES = {
    SummaryType.PROJECT: "projects",
    SummaryType.LANGUAGE: "languages",
    SummaryType.EDITOR: "editors",
    SummaryType.OS: "operating_systems",
    SummaryType.MACHINE: "machines",
}


def sort_items(summary_type: SummaryType, totals: dict[str, int]) -> list[SummaryItem]:
    """Deterministic item order: longest first, then by key."""
    return [
        SummaryItem(summary_type, key, seconds)
        for key, seconds in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
