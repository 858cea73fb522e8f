"""HeartbeatTracker — heartbeat ingestion."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from codetime.exceptions import InvalidHeartbeatError
from codetime.storage import HeartbeatStore, LanguageMappingStore, UserStore
from codetime.temporal import now_utc, parse_timestamp
from codetime.timing.languages import LanguageMapper
from codetime.timing.models import ORIGIN_CLIENT, Heartbeat, classify_entity

logger = logging.getLogger("codetime")

USER_AGENT_PATTERN = re.compile(r"^wakatime\/[\d+.]+\s\((\w+).*\)\s.+\s(\w+)\/.+$")
MAX_FIELD_LENGTH = 1024

HeartbeatInput = Union[Heartbeat, Mapping[str, Any]]


def parse_user_agent(user_agent: str) -> tuple[str, str]:
    """Extract ``(operating_system, editor)`` from a WakaTime user agent.

    Example:
        ``wakatime/13.0.7 (Linux-4.15.0-91-generic-x86_64-with-glibc2.4)
        Python3.8.0.final.0 vscode/1.42.1 vscode-wakatime/4.0.0``
        → ``("Linux", "vscode")``

    Raises:
        ValueError: If the string does not look like a WakaTime user agent.
    """
    match = USER_AGENT_PATTERN.match(user_agent or "")
    if not match:
        raise ValueError(f"Failed to parse user agent: {user_agent!r}")
    return match.group(1), match.group(2)


@dataclass
class IngestResult:
    accepted: int = 0
    inserted: int = 0
    rejected: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duplicates(self) -> int:
        return self.accepted - self.inserted


def _text(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    return str(value).strip()[:MAX_FIELD_LENGTH]


def build_heartbeat(
    user_id: str,
    data: HeartbeatInput,
    user_agent: Optional[str] = None,
    origin: str = ORIGIN_CLIENT,
) -> Heartbeat:
    """Validate and normalize one incoming heartbeat.

    Raises:
        InvalidHeartbeatError: If the user or the timestamp is missing or
            unusable.
    """
    if isinstance(data, Heartbeat):
        data = {k: getattr(data, k) for k in Heartbeat.__dataclass_fields__ if k != "id"}
    user = (user_id or _text(data, "user_id")).strip()
    if not user:
        raise InvalidHeartbeatError("Heartbeat has no user")
    if data.get("time") in (None, ""):
        raise InvalidHeartbeatError("Heartbeat has no time")
    try:
        when = parse_timestamp(data["time"])
    except (ValueError, TypeError, OverflowError, OSError) as e:
        raise InvalidHeartbeatError(f"Invalid heartbeat time {data['time']!r}") from e

    editor = _text(data, "editor")
    operating_system = _text(data, "operating_system")
    if user_agent and not (editor and operating_system):
        try:
            ua_os, ua_editor = parse_user_agent(user_agent)
            editor = editor or ua_editor
            operating_system = operating_system or ua_os
        except ValueError:
            logger.debug("Unparseable user agent: %s", user_agent)

    entity = _text(data, "entity")
    return Heartbeat(
        user_id=user,
        time=when,
        entity=entity,
        type=_text(data, "type") or "file",
        category=_text(data, "category") or classify_entity(entity),
        project=_text(data, "project"),
        branch=_text(data, "branch"),
        language=_text(data, "language"),
        editor=editor,
        operating_system=operating_system,
        machine=_text(data, "machine"),
        is_write=bool(data.get("is_write", False)),
        origin=origin,
    )


class HeartbeatTracker:
    """Validates, augments and stores heartbeats.

    Usage:
        tracker = HeartbeatTracker(heartbeats, users, mappings)
        result = await tracker.ingest_batch("alice", [{"time": 1700000000, ...}])
    """

    def __init__(
        self,
        heartbeats: HeartbeatStore,
        users: UserStore,
        mappings: LanguageMappingStore,
    ):
        self._heartbeats = heartbeats
        self._users = users
        self._mappings = mappings

    async def mapper_for(self, user_id: str) -> LanguageMapper:
        return LanguageMapper(await self._mappings.list_by_user(user_id))

    async def ingest_batch(
        self,
        user_id: str,
        heartbeats: Iterable[HeartbeatInput],
        user_agent: Optional[str] = None,
        origin: str = ORIGIN_CLIENT,
    ) -> IngestResult:
        """Store a batch of heartbeats for ``user_id``.

        Invalid heartbeats are counted and skipped; they never fail the batch.
        Duplicates of already stored heartbeats are accepted but not inserted.
        """
        result = IngestResult()
        valid: list[Heartbeat] = []
        for raw in heartbeats:
            try:
                valid.append(build_heartbeat(user_id, raw, user_agent, origin))
            except InvalidHeartbeatError as e:
                result.rejected += 1
                result.errors.append(str(e))

        if valid:
            mappers: dict[str, LanguageMapper] = {}
            augmented = []
            for hb in valid:
                if hb.user_id not in mappers:
                    mappers[hb.user_id] = await self.mapper_for(hb.user_id)
                augmented.append(mappers[hb.user_id].augment(hb))
            await self._users.ensure(mappers)
            result.inserted = await self._heartbeats.insert_batch(augmented)
            result.accepted = len(augmented)

        if result.rejected:
            logger.warning("Rejected %d heartbeat(s) for %s", result.rejected, user_id)
        logger.debug(
            "Ingested %d heartbeat(s) for %s (%d new)", result.accepted, user_id, result.inserted
        )
        return result

    async def heartbeat(self, user_id: str, entity: str = "", **fields: Any) -> IngestResult:
        """Record a single heartbeat; ``time`` defaults to now."""
        fields.setdefault("time", now_utc())
        return await self.ingest_batch(user_id, [{"entity": entity, **fields}])
