"""
Knowledge base corpus store.

Loads the static knowledge-base snapshot (a JSON array of rule records) into
memory exactly once. The loaded collection is immutable and shared by every
request; restarting the process is the only way to pick up a new snapshot.

A missing or unparsable snapshot is fatal. Individual records that fail
validation are quarantined (skipped and logged) so one bad row cannot take
the whole corpus down.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from .types import KnowledgeRecord


logger = logging.getLogger("culturacheck.knowledge.corpus_store")


class KnowledgeBaseError(Exception):
    """Base error for knowledge base problems."""


class CorpusLoadError(KnowledgeBaseError):
    """The snapshot is missing, unreadable or structurally malformed."""


@dataclass(frozen=True)
class QuarantinedRecord:
    """A snapshot entry rejected at ingestion."""
    index: int
    record_id: Optional[str]
    reason: str


class CorpusStore:
    """
    Read-only, load-once view over the knowledge-base snapshot.

    Construct one instance at service start and pass it to the components
    that need it.

    Example:
        >>> store = CorpusStore(Path("backend/data/knowledge-base.json"))
        >>> records = store.load()
        >>> store.is_loaded
        True
    """

    def __init__(self, path: Path) -> None:
        """
        Initialize the store.

        Args:
            path: Location of the JSON snapshot
        """
        self._path = Path(path)
        self._records: Optional[Tuple[KnowledgeRecord, ...]] = None
        self._quarantined: List[QuarantinedRecord] = []

    @property
    def path(self) -> Path:
        """Get the snapshot path."""
        return self._path

    @property
    def is_loaded(self) -> bool:
        """Check whether the snapshot has been loaded."""
        return self._records is not None

    @property
    def records(self) -> Tuple[KnowledgeRecord, ...]:
        """Get the loaded records, loading the snapshot on first access."""
        return self.load()

    @property
    def quarantined(self) -> List[QuarantinedRecord]:
        """Entries rejected during the last load."""
        return list(self._quarantined)

    def __len__(self) -> int:
        return len(self.records)

    def load(self) -> Tuple[KnowledgeRecord, ...]:
        """
        Load the snapshot into memory.

        Idempotent: after the first successful call the cached collection is
        returned without touching the disk again.

        Returns:
            Tuple of validated records in snapshot order

        Raises:
            CorpusLoadError: If the file is missing or unreadable, is not a JSON
                array, or contains duplicate record ids
        """
        if self._records is not None:
            return self._records

        raw = self._read_snapshot()
        records, quarantined = self._validate(raw)

        self._quarantined = quarantined
        self._records = tuple(records)

        logger.info(
            "Knowledge base loaded",
            extra={
                "path": str(self._path),
                "records": len(self._records),
                "quarantined": len(quarantined),
            },
        )
        return self._records

    def _read_snapshot(self) -> List[Any]:
        if not self._path.exists():
            raise CorpusLoadError(f"Knowledge base snapshot not found at {self._path}")

        try:
            with self._path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, UnicodeDecodeError) as exc:
            raise CorpusLoadError(f"Cannot read knowledge base snapshot {self._path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CorpusLoadError(f"Knowledge base snapshot {self._path} is not valid JSON: {exc}") from exc

        if not isinstance(data, list):
            raise CorpusLoadError(
                f"Knowledge base snapshot must be a JSON array, got {type(data).__name__}"
            )
        return data

    def _validate(self, raw: List[Any]) -> Tuple[List[KnowledgeRecord], List[QuarantinedRecord]]:
        records: List[KnowledgeRecord] = []
        quarantined: List[QuarantinedRecord] = []
        seen_ids = set()

        for index, item in enumerate(raw):
            record_id = item.get("id") if isinstance(item, dict) else None
            try:
                record = KnowledgeRecord.model_validate(item)
            except ValidationError as exc:
                reason = "; ".join(
                    f"{'.'.join(str(loc) for loc in err['loc']) or 'record'}: {err['msg']}"
                    for err in exc.errors()
                )
                logger.warning(
                    f"Quarantined knowledge record {record_id!r}: {reason}",
                    extra={"index": index, "record_id": record_id},
                )
                quarantined.append(QuarantinedRecord(index=index, record_id=record_id, reason=reason))
                continue

            if record.id in seen_ids:
                raise CorpusLoadError(f"Duplicate knowledge record id {record.id!r} at index {index}")
            seen_ids.add(record.id)
            records.append(record)

        return records, quarantined
