"""Versioned, time-bounded snapshot cache stored as a JSON document on disk."""

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .error_handling import CacheError
from .logging import get_logger
from .models import parse_timestamp, utc_now

SCHEMA_VERSION = "1"
DEFAULT_TTL = timedelta(hours=24)


@dataclass
class CacheSnapshot:
    """A persisted discovery result with its schema version and save time."""

    schema_version: str
    saved_at: datetime
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "savedAt": self.saved_at.isoformat(),
            "payload": self.payload,
        }


class CacheStore:
    """Single-file snapshot cache with atomic replacement.

    Reads never raise: a missing, unreadable or structurally invalid file is a
    cache miss. Writes go to a temporary file in the same directory which is then
    renamed over the target, so a concurrent reader sees either the old or the
    new snapshot.
    """

    def __init__(
        self,
        path,
        schema_version: str = SCHEMA_VERSION,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize cache store.

        Args:
            path: Location of the snapshot file
            schema_version: Schema version written to and expected from snapshots
            clock: Returns the current timezone-aware time (defaults to UTC now)
        """
        self.path = Path(path)
        self.schema_version = schema_version
        self._clock = clock or utc_now
        self.logger = get_logger("cache")

    def load(self) -> Optional[CacheSnapshot]:
        """Load the snapshot from disk.

        Returns:
            CacheSnapshot, or None if absent, unreadable or invalidated
        """
        if not self.path.exists():
            self.logger.debug(f"No cache snapshot at {self.path}")
            return None

        try:
            snapshot = self._read()
        except CacheError as e:
            self.logger.warning(f"Ignoring unreadable cache snapshot: {e}")
            return None

        if snapshot.schema_version != self.schema_version:
            self.logger.info(
                "Cache snapshot invalidated by schema version change",
                found=snapshot.schema_version,
                expected=self.schema_version,
            )
            return None

        return snapshot

    def _read(self) -> CacheSnapshot:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheError(f"{self.path}: {e}") from e

        if not isinstance(document, dict) or "schemaVersion" not in document:
            raise CacheError(f"{self.path}: missing schemaVersion")

        try:
            saved_at = parse_timestamp(document["savedAt"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheError(f"{self.path}: invalid savedAt ({e})") from e

        return CacheSnapshot(
            schema_version=str(document["schemaVersion"]),
            saved_at=saved_at,
            payload=document.get("payload"),
        )

    def save(self, payload: Any) -> bool:
        """Persist a payload as the current snapshot.

        Args:
            payload: JSON-serializable discovery result

        Returns:
            True if the snapshot was written, False otherwise
        """
        snapshot = CacheSnapshot(self.schema_version, self._clock(), payload)
        tmp_name = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(snapshot.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to save cache snapshot {self.path}: {e}")
            return False
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        self.logger.debug(f"Saved cache snapshot: {self.path}")
        return True

    def is_valid(
        self, snapshot: Optional[CacheSnapshot], ttl: timedelta = DEFAULT_TTL
    ) -> bool:
        """True iff the snapshot matches the schema version and is within the TTL."""
        if snapshot is None:
            return False
        if snapshot.schema_version != self.schema_version:
            return False
        return self._clock() - snapshot.saved_at <= ttl

    def clear(self) -> int:
        """Delete the snapshot file.

        Returns:
            Number of files removed
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return 0
        except OSError as e:
            self.logger.error(f"Failed to clear cache {self.path}: {e}")
            return 0

        self.logger.info(f"Cleared cache snapshot {self.path}")
        return 1

    def get_info(self, ttl: timedelta = DEFAULT_TTL) -> Dict[str, Any]:
        """Get cache information for display.

        Returns:
            Dictionary with path, size, save time, age and validity
        """
        info: Dict[str, Any] = {
            "path": str(self.path),
            "ttl_hours": ttl.total_seconds() / 3600,
            "exists": self.path.exists(),
            "size_kb": 0.0,
            "saved_at": None,
            "age_hours": None,
            "valid": False,
        }
        if not info["exists"]:
            return info

        info["size_kb"] = round(self.path.stat().st_size / 1024, 2)
        try:
            snapshot = self._read()
        except CacheError as e:
            info["error"] = str(e)
            return info

        age = self._clock() - snapshot.saved_at
        info["schema_version"] = snapshot.schema_version
        info["saved_at"] = snapshot.saved_at.isoformat()
        info["age_hours"] = round(age.total_seconds() / 3600, 2)
        info["valid"] = self.is_valid(snapshot, ttl)
        return info
