import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from utils.logger import setup_logger


class FileStorage:
    """
    JSON list files for the file-backed article store.

    A snapshot of several files is written all-or-nothing: every file is
    staged next to its target first, and targets are only replaced once all
    of them were staged. Replaced files keep timestamped ``.bak`` copies.
    """

    def __init__(self, *, logger=None, keep_backups: int = 3) -> None:
        self.logger = logger or setup_logger(self.__class__.__name__)
        self.keep_backups = keep_backups

    def load_json(self, file_path: Path, default: Optional[List[dict]] = None) -> List[dict]:
        """
        Read one collection.

        A missing file yields ``default``; a file that is not valid JSON is
        renamed with a ``.corrupt`` suffix and also yields ``default``.
        """
        path = Path(file_path)
        fallback = list(default or [])
        if not path.exists():
            return fallback

        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            self.logger.error("Corrupt collection %s: %s", path, exc)
            self._quarantine(path)
            return fallback
        except OSError as exc:
            self.logger.error("Cannot read collection %s: %s", path, exc)
            return fallback

        if not isinstance(records, list):
            self.logger.warning("Collection %s is not a JSON list; ignoring it.", path)
            return fallback
        return records

    def save_json(self, file_path: Path, data: Iterable[dict]) -> bool:
        return self.save_snapshot({Path(file_path): data})

    def save_snapshot(self, collections: Mapping[Path, Iterable[dict]]) -> bool:
        """Write every collection or none of them; returns True on success."""
        staged: Dict[Path, Path] = {}
        try:
            for target, records in collections.items():
                target = Path(target)
                target.parent.mkdir(parents=True, exist_ok=True)
                staging = target.with_name(target.name + ".tmp")
                staged[target] = staging
                staging.write_text(
                    json.dumps(list(records), ensure_ascii=False, indent=2), encoding="utf-8"
                )
        except (OSError, TypeError, ValueError) as exc:
            self.logger.error("Failed to stage snapshot: %s", exc)
            self._discard(staged.values())
            return False

        backups = {target: self.backup_file(target) for target in staged}
        replaced: List[Path] = []
        try:
            for target, staging in staged.items():
                staging.replace(target)
                replaced.append(target)
        except OSError as exc:
            self.logger.error("Failed to replace collection files: %s", exc)
            self._discard(staged.values())
            for target in replaced:
                self._restore(backups[target], target)
            return False
        return True

    def backup_file(self, file_path: Path) -> Optional[Path]:
        """Copy ``file_path`` aside and keep only the newest ``keep_backups`` copies."""
        path = Path(file_path)
        if not path.exists():
            return None

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup = path.with_name(f"{path.name}.{stamp}.bak")
        shutil.copy2(path, backup)

        stale = sorted(path.parent.glob(f"{path.name}.*.bak"), reverse=True)[self.keep_backups:]
        for old in stale:
            try:
                old.unlink()
            except OSError as exc:
                self.logger.warning("Cannot prune backup %s: %s", old, exc)
        return backup

    def _quarantine(self, path: Path) -> None:
        target = path.with_name(f"{path.name}.{datetime.now():%Y%m%d_%H%M%S}.corrupt")
        try:
            shutil.move(str(path), str(target))
            self.logger.info("Moved corrupt collection %s to %s", path, target)
        except OSError as exc:
            self.logger.error("Cannot move corrupt collection %s aside: %s", path, exc)

    def _restore(self, backup: Optional[Path], target: Path) -> None:
        if backup is None:
            target.unlink(missing_ok=True)
            return
        try:
            shutil.copy2(backup, target)
            self.logger.info("Restored %s from %s", target, backup)
        except OSError as exc:
            self.logger.error("Cannot restore %s from %s: %s", target, backup, exc)

    @staticmethod
    def _discard(paths: Iterable[Path]) -> None:
        for path in paths:
            path.unlink(missing_ok=True)
