"""
CODETIME — Heartbeat import.

Reads heartbeat exports lazily and feeds them to the engine in bounded
batches. Two formats are understood:

* JSON lines, one heartbeat object per line;
* a WakaTime data dump, ``{"days": [{"heartbeats": [...]}, ...]}``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from codetime import config
from codetime.temporal import parse_timestamp
from codetime.timing.models import ORIGIN_IMPORT

logger = logging.getLogger("codetime.import")


def _iter_json_lines(path: Path) -> Iterator[dict[str, Any]]:
    with path.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Skipping malformed line %d of %s: %s", lineno, path, e)
                continue
            if isinstance(record, dict):
                yield record


def _iter_dump(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for record in data:
            if isinstance(record, dict):
                yield record
        return
    if not isinstance(data, dict):
        raise ValueError("Unsupported export format")
    if "days" in data:
        for day in data.get("days") or []:
            for record in day.get("heartbeats") or []:
                if isinstance(record, dict):
                    yield record
    elif "heartbeats" in data:
        yield from _iter_dump(data["heartbeats"])
    else:
        raise ValueError("Unsupported export format")


def read_heartbeat_export(path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield heartbeat records from an export file.

    ``.jsonl`` / ``.ndjson`` files are streamed line by line; anything
    else is parsed as a JSON document.

    Raises:
        ValueError: If a JSON document has no recognizable heartbeat list.
    """
    path = Path(path).expanduser()
    if path.suffix.lower() in (".jsonl", ".ndjson"):
        yield from _iter_json_lines(path)
        return
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    yield from _iter_dump(data)


def _batched(records: Iterable[dict], size: int) -> Iterator[list[dict]]:
    batch: list[dict] = []
    for record in records:
        batch.append(record)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


@dataclass
class ImportResult:
    read: int = 0
    skipped: int = 0
    inserted: int = 0
    rejected: int = 0
    batches: int = 0
    regenerated_days: int = 0


class HeartbeatImporter:
    """Feeds a heartbeat stream into an engine, then regenerates Summaries.

    Records at or before the newest heartbeat already imported from the
    same origin are skipped, so an interrupted import can simply be rerun.
    """

    def __init__(self, engine, batch_size: Optional[int] = None, origin: str = ORIGIN_IMPORT):
        self.engine = engine
        self.batch_size = max(1, batch_size or config.IMPORT_BATCH_SIZE)
        self.origin = origin

    def _is_new(self, record: dict, since: Optional[datetime]) -> bool:
        if since is None:
            return True
        try:
            return parse_timestamp(record.get("time")) > since
        except (ValueError, TypeError, OverflowError, OSError):
            # Let ingestion reject it and count it
            return True

    async def run(
        self, user_id: str, records: Iterable[dict], regenerate: bool = True
    ) -> ImportResult:
        result = ImportResult()
        since = await self.engine.heartbeats.latest_time(user_id, origin=self.origin)
        if since is not None:
            logger.info("Resuming import for %s after %s", user_id, since.isoformat())

        def fresh() -> Iterator[dict]:
            for record in records:
                result.read += 1
                if self._is_new(record, since):
                    yield record
                else:
                    result.skipped += 1

        for batch in _batched(fresh(), self.batch_size):
            ingested = await self.engine.ingest(user_id, batch, origin=self.origin)
            result.inserted += ingested.inserted
            result.rejected += ingested.rejected
            result.batches += 1
            logger.debug("Imported batch %d (%d new)", result.batches, ingested.inserted)

        if regenerate and result.inserted:
            result.regenerated_days = await self.engine.regenerate_summaries(user_id)

        logger.info(
            "Imported %d heartbeat(s) for %s (%d read, %d skipped, %d rejected)",
            result.inserted, user_id, result.read, result.skipped, result.rejected,
        )
        return result

    async def import_file(self, user_id: str, path: str | Path, regenerate: bool = True) -> ImportResult:
        return await self.run(user_id, read_heartbeat_export(path), regenerate=regenerate)
