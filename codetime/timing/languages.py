"""
CODETIME — Language Mapper.

Fills in the language of heartbeats whose client did not report one.
Lookup order: the user's own mappings, then server-wide custom
languages (``CODETIME_CUSTOM_LANGUAGES``), then the built-in table.
Extensions match as entity suffixes, so ``blade.php`` beats ``php``.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from codetime import config
from codetime.exceptions import InvalidRuleError
from codetime.timing.models import Heartbeat, LanguageMapping

MAX_EXTENSION_LENGTH = 32

BUILTIN_LANGUAGES: dict[str, str] = {
    "py": "Python", "pyi": "Python", "ipynb": "Jupyter",
    "go": "Go", "rs": "Rust", "java": "Java", "kt": "Kotlin", "kts": "Kotlin",
    "scala": "Scala", "groovy": "Groovy", "gradle": "Gradle",
    "c": "C", "h": "C", "cc": "C++", "cpp": "C++", "cxx": "C++", "hpp": "C++",
    "cs": "C#", "fs": "F#", "swift": "Swift", "m": "Objective-C", "mm": "Objective-C",
    "js": "JavaScript", "mjs": "JavaScript", "cjs": "JavaScript", "jsx": "JavaScript",
    "ts": "TypeScript", "tsx": "TSX", "vue": "Vue.js", "svelte": "Svelte",
    "astro": "Astro",
    "html": "HTML", "htm": "HTML", "css": "CSS", "scss": "SCSS", "sass": "Sass",
    "less": "LESS",
    "php": "PHP", "blade.php": "Blade", "twig": "Twig",
    "rb": "Ruby", "erb": "HTML+ERB", "ex": "Elixir", "exs": "Elixir", "erl": "Erlang",
    "hs": "Haskell", "ml": "OCaml", "clj": "Clojure", "lua": "Lua", "dart": "Dart",
    "r": "R", "jl": "Julia", "pl": "Perl", "zig": "Zig", "nim": "Nim",
    "sh": "Bash", "bash": "Bash", "zsh": "Zsh", "fish": "Fish", "ps1": "PowerShell",
    "sql": "SQL", "graphql": "GraphQL", "proto": "Protocol Buffer",
    "json": "JSON", "yaml": "YAML", "yml": "YAML", "toml": "TOML", "ini": "INI",
    "xml": "XML", "csv": "CSV",
    "md": "Markdown", "markdown": "Markdown", "rst": "reStructuredText", "tex": "TeX",
    "tf": "HCL", "hcl": "HCL", "dockerfile": "Docker", "mk": "Makefile",
}


def normalize_extension(extension: str) -> str:
    """``.PY`` → ``py``."""
    return extension.strip().lstrip(".").lower()


def validate_mapping(mapping: LanguageMapping) -> LanguageMapping:
    """Normalize and check a language mapping rule.

    Raises:
        InvalidRuleError: If the extension or language is unusable.
    """
    extension = normalize_extension(mapping.extension)
    language = mapping.language.strip()
    if not mapping.user_id:
        raise InvalidRuleError("Language mapping requires a user")
    if not extension or not language:
        raise InvalidRuleError("Extension and language must not be empty")
    if len(extension) > MAX_EXTENSION_LENGTH:
        raise InvalidRuleError(f"Extension is limited to {MAX_EXTENSION_LENGTH} characters")
    if any(ch in extension for ch in "/\\*%?") or any(ch.isspace() for ch in extension):
        raise InvalidRuleError(f"Invalid extension: {mapping.extension!r}")
    return LanguageMapping(
        user_id=mapping.user_id, extension=extension, language=language, id=mapping.id
    )


def _by_length(rules: Mapping[str, str]) -> list[tuple[str, str]]:
    return sorted(
        ((normalize_extension(ext), lang) for ext, lang in rules.items()),
        key=lambda kv: (-len(kv[0]), kv[0]),
    )


class LanguageMapper:
    """Extension → language lookup for one user."""

    def __init__(
        self,
        mappings: Iterable[LanguageMapping] = (),
        custom: Optional[Mapping[str, str]] = None,
        builtin: Optional[Mapping[str, str]] = None,
    ):
        user_rules = {normalize_extension(m.extension): m.language for m in mappings}
        self._sources = [
            _by_length(user_rules),
            _by_length(config.CUSTOM_LANGUAGES if custom is None else custom),
            _by_length(BUILTIN_LANGUAGES if builtin is None else builtin),
        ]

    def map(self, extension: str) -> Optional[str]:
        """Language of an exact extension, or ``None``."""
        ext = normalize_extension(extension)
        if not ext:
            return None
        for rules in self._sources:
            for rule_ext, language in rules:
                if rule_ext == ext:
                    return language
        return None

    def map_entity(self, entity: str) -> Optional[str]:
        """Language of the longest matching extension suffix of ``entity``."""
        if not entity:
            return None
        name = entity.lower()
        for rules in self._sources:
            for rule_ext, language in rules:
                if name.endswith("." + rule_ext):
                    return language
        return None

    def augment(self, heartbeat: Heartbeat) -> Heartbeat:
        """Copy of ``heartbeat`` with its language filled in, when missing."""
        if heartbeat.language:
            return heartbeat
        language = self.map_entity(heartbeat.entity)
        if language is None:
            return heartbeat
        return heartbeat.with_language(language)
