"""
CODETIME — Alias Resolver.

Maps raw category keys to canonical keys using a user's alias rules.
Resolution is total (unmatched keys resolve to themselves) and happens
when summaries are built or read, never at ingestion.
"""

from __future__ import annotations

from typing import Iterable

from codetime.exceptions import InvalidRuleError
from codetime.timing.models import UNKNOWN_KEY, Alias, SummaryType

MAX_KEY_LENGTH = 255


class AliasResolver:
    """Per-user alias lookup.

    Rules chain: with ``a → b`` and ``b → c`` both ``a`` and ``b`` resolve
    to ``c``, so resolving an already resolved key is a no-op.
    """

    def __init__(self, user_id: str, aliases: Iterable[Alias] = ()):
        self.user_id = user_id
        self._rules: dict[SummaryType, dict[str, str]] = {t: {} for t in SummaryType}
        for alias in aliases:
            if alias.user_id == user_id:
                self._rules[alias.type][alias.value] = alias.key

    def __call__(self, summary_type: SummaryType, raw_key: str) -> str:
        return self.resolve(summary_type, raw_key)

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())

    def resolve(self, summary_type: SummaryType, raw_key: str) -> str:
        rules = self._rules[summary_type]
        key = raw_key
        seen = {key}
        while key in rules:
            key = rules[key]
            if key in seen:
                break
            seen.add(key)
        return key


def identity_resolver(summary_type: SummaryType, raw_key: str) -> str:
    return raw_key


def validate_alias(alias: Alias, existing: Iterable[Alias] = ()) -> Alias:
    """Check an alias rule before it is stored.

    Raises:
        InvalidRuleError: on empty or oversized keys, self-mappings, rules on
            the unknown bucket, or rules that would close a cycle.
    """
    key = alias.key.strip()
    value = alias.value.strip()
    if not alias.user_id:
        raise InvalidRuleError("Alias requires a user")
    if not isinstance(alias.type, SummaryType):
        raise InvalidRuleError(f"Invalid alias type: {alias.type!r}")
    if not key or not value:
        raise InvalidRuleError("Alias key and value must not be empty")
    if len(key) > MAX_KEY_LENGTH or len(value) > MAX_KEY_LENGTH:
        raise InvalidRuleError(f"Alias key and value are limited to {MAX_KEY_LENGTH} characters")
    if key == value:
        raise InvalidRuleError(f"Alias maps {value!r} onto itself")
    if value == UNKNOWN_KEY:
        raise InvalidRuleError("The unknown bucket cannot be aliased")

    resolver = AliasResolver(alias.user_id, [a for a in existing if a.value != value])
    if resolver.resolve(alias.type, key) == value:
        raise InvalidRuleError(f"Alias {value!r} → {key!r} would create a cycle")

    return Alias(user_id=alias.user_id, type=alias.type, key=key, value=value, id=alias.id)
