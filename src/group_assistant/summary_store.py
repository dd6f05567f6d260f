from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .errors import PersistenceError
from .models import GroupSummaryConfig, QuietTime, SummaryDefaults

logger = logging.getLogger(__name__)


class SummaryConfigStore:
    """Periodic-summary settings kept in memory and flushed atomically to JSON."""

    __slots__ = ("_path", "_defaults", "_enabled", "_groups", "_dirty")

    def __init__(self, path: Path, defaults: SummaryDefaults | None = None):
        self._path = path
        self._defaults = defaults or SummaryDefaults()
        self._enabled = False
        self._groups: dict[str, GroupSummaryConfig] = {}
        self._dirty = False
        self._load()

    @property
    def defaults(self) -> SummaryDefaults:
        return self._defaults

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        if self._enabled == enabled:
            return
        self._enabled = enabled
        self._dirty = True

    def groups(self) -> list[str]:
        """Configured group names in insertion order."""

        return list(self._groups)

    def get(self, group_name: str) -> GroupSummaryConfig | None:
        return self._groups.get(group_name)

    def set(self, group_name: str, config: GroupSummaryConfig) -> None:
        self._groups[group_name] = config
        self._dirty = True

    def remove(self, group_name: str) -> bool:
        if self._groups.pop(group_name, None) is None:
            return False
        self._dirty = True
        return True

    def save(self) -> None:
        if not self._dirty:
            return
        payload = {
            "enabled": self._enabled,
            "groups": {name: config.to_dict() for name, config in self._groups.items()},
        }
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as file:
                json.dump(payload, file, indent=2, ensure_ascii=False)
                file.flush()
                os.fsync(file.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to save {self._path}: {exc}") from exc
        self._dirty = False

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as file:
                raw_data: Any = json.load(file)
        except json.JSONDecodeError:
            # Corrupted file - start fresh but keep backup of original contents.
            backup_path = self._path.with_suffix(".bak")
            if backup_path.exists():
                backup_path.unlink()
            self._path.rename(backup_path)
            logger.warning("Summary config %s is corrupted, moved to %s", self._path, backup_path)
            return

        if not isinstance(raw_data, dict):
            return

        self._enabled = bool(raw_data.get("enabled", False))
        groups = raw_data.get("groups")
        if not isinstance(groups, dict):
            return

        for name, value in groups.items():
            if not isinstance(value, dict):
                continue
            self._groups[str(name)] = self._parse_group(value)

    def _parse_group(self, value: dict[str, Any]) -> GroupSummaryConfig:
        defaults = self._defaults
        quiet = value.get("quietTime")
        if not isinstance(quiet, dict):
            quiet = {}
        delete_after = value.get("deleteAfter", defaults.delete_after)
        return GroupSummaryConfig(
            enabled=value.get("enabled") is not False,
            interval_hours=int(value.get("intervalHours") or defaults.interval_hours),
            quiet_time=QuietTime(
                start=str(quiet.get("start") or defaults.quiet_time.start),
                end=str(quiet.get("end") or defaults.quiet_time.end),
            ),
            delete_after=int(delete_after) if delete_after is not None else None,
            prompt=str(value.get("prompt") or defaults.prompt),
        )
