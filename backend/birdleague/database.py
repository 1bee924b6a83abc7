"""
Bird League Backend — JSON Document Store
==========================================

What:  File-backed store for the single league dataset (members, schedule,
       submissions, judgments) with rotating automatic backups and restore.
Why:   The league is small enough that one human-readable JSON file is the
       simplest durable store, and safe to hand-edit or diff.
How:   Every read re-loads db.json, so out-of-process edits (a restore, a
       manual fix) are seen immediately. Every mutation is a read-modify-write
       cycle held under a re-entrant lock keyed by the resolved file path.
Who:   Routes and services call the module-level `document_store`. The judging
       collaborator reads through the accessors and writes via save_judgment().

Write path (each mutation):
    1. Snapshot the current db.json into backups/db-<UTC timestamp>.json
       (skipped when there is no db.json yet)
    2. Prune backups beyond `max_backups`, oldest name first
    3. Serialize the dataset to a temp file in data_dir, fsync, os.replace()
       it over db.json

    Steps 1-2 are best effort: an OSError there is logged and the write goes
    on, because new data matters more than backup completeness. Step 3 is an
    atomic rename, so a crash leaves either the old or the new db.json, never
    a truncated one. A crash between 1 and 3 leaves an extra backup of the
    old state, which is harmless.

Recovery:
    - db.json missing   → default dataset is created and persisted
    - db.json corrupt   → (not JSON, or no members/schedule) logged at ERROR,
                          default dataset persisted; the corrupt file is
                          snapshotted by step 1 first, so it can be
                          recovered from backups/ by hand
    - bad entry         → (valid JSON, one entry of the wrong shape) nothing
                          is written; reads raise FileStorageError until
                          db.json is fixed or a backup is restored
    - restore_backup()  → snapshots current state first, so a restore can be
                          undone by restoring the newest backup

Concurrency:
    One process, synchronous I/O. The lock registry serializes writers that
    share a data file, including separate DocumentStore instances pointed at
    the same path. It does not protect against other processes.
"""

import contextlib
import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from birdleague.config import settings
from birdleague.exceptions import (
    DatasetShapeError,
    FileStorageError,
    StoreCorruptError,
    ValidationError,
)
from birdleague.models.league import (
    BackupInfo,
    Dataset,
    Judgment,
    Matchup,
    Member,
    StandingRow,
    Submission,
    Week,
    WeekStatus,
)
from birdleague.models.seed import default_dataset

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKUP_PREFIX = "db-"
BACKUP_SUFFIX = ".json"
# Fixed-width UTC stamp to the millisecond (db-2026-10-19T12-00-00-000Z.json):
# lexicographic order of names is chronological order
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"
REQUIRED_COLLECTIONS = ("members", "schedule")


# ── Lock Registry ─────────────────────────────────────────────────────────
# One RLock per resolved primary file path. Re-entrant because mutations
# call _read() and _write(), which take the same lock.
_path_locks: Dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _backup_name(stamp: datetime) -> str:
    millis = stamp.microsecond // 1000
    return f"{BACKUP_PREFIX}{stamp.strftime(BACKUP_TIMESTAMP_FORMAT)}-{millis:03d}Z{BACKUP_SUFFIX}"


def _backup_stamp(name: str) -> Optional[datetime]:
    """Timestamp encoded in a backup name, or None for names not written by us."""
    body = name[len(BACKUP_PREFIX):-len(BACKUP_SUFFIX)]
    try:
        return datetime.strptime(body, BACKUP_TIMESTAMP_FORMAT + "-%fZ").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _find_index(items: Sequence[T], predicate: Callable[[T], bool]) -> Optional[int]:
    for idx, item in enumerate(items):
        if predicate(item):
            return idx
    return None


def compute_standings(dataset: Dataset) -> List[StandingRow]:
    """
    Win/loss table computed from every judgment in `dataset`.

    A judgment whose winner is "m1" credits m1 with a win and m2 with a
    loss (and vice versa for "m2"). Judgments without a winner, and ids
    that are not members, are ignored.

    Ordering: most wins first; on equal wins, fewer losses first; on a
    full tie, member order from the dataset.
    """
    rows = {m.id: StandingRow(id=m.id, name=m.name) for m in dataset.members}

    for judgment in dataset.judgments:
        if judgment.winner == "m1":
            winner_id, loser_id = judgment.m1_id, judgment.m2_id
        elif judgment.winner == "m2":
            winner_id, loser_id = judgment.m2_id, judgment.m1_id
        else:
            continue
        if winner_id in rows:
            rows[winner_id].w += 1
        if loser_id in rows:
            rows[loser_id].l += 1

    return sorted(rows.values(), key=lambda row: (-row.w, row.l))


class DocumentStore:
    """
    Read/write access to one league dataset on disk.

    Layout:
        <data_dir>/
        ├── db.json
        └── backups/
            ├── db-2026-10-19T12-00-00-001Z.json
            └── db-2026-10-19T12-05-31-482Z.json
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        db_filename: str = "db.json",
        backup_dirname: str = "backups",
        max_backups: int = 30,
    ):
        self.data_dir = Path(data_dir).resolve()
        self.db_path = self.data_dir / db_filename
        self.backup_dir = self.data_dir / backup_dirname
        self.max_backups = max_backups

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self._lock = _lock_for(self.db_path)

        logger.info(
            "DocumentStore initialized: db=%s backups=%s (keep %d)",
            self.db_path,
            self.backup_dir,
            self.max_backups,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Read Accessors
    # ══════════════════════════════════════════════════════════════════════

    def get_members(self) -> List[Member]:
        return self._read().members

    def get_member(self, member_id: int) -> Optional[Member]:
        return next((m for m in self._read().members if m.id == member_id), None)

    def get_schedule(self) -> List[Week]:
        return self._read().schedule

    def get_week(self, week: int) -> Optional[Week]:
        return next((w for w in self._read().schedule if w.week == week), None)

    def get_submission(self, week: int, member_id: int) -> Optional[Submission]:
        return next(
            (s for s in self._read().submissions if s.week == week and s.member_id == member_id),
            None,
        )

    def get_submissions_for_week(self, week: int) -> List[Submission]:
        return [s for s in self._read().submissions if s.week == week]

    def get_judgment(self, week: int, m1_id: int, m2_id: int) -> Optional[Judgment]:
        key = (week, m1_id, m2_id)
        return next((j for j in self._read().judgments if j.key() == key), None)

    def get_judgments_for_week(self, week: int) -> List[Judgment]:
        return [j for j in self._read().judgments if j.week == week]

    def get_standings(self) -> List[StandingRow]:
        """Win/loss table computed from every stored judgment (see compute_standings)."""
        return compute_standings(self._read())

    def get_full_db(self) -> Dataset:
        return self._read()

    # ══════════════════════════════════════════════════════════════════════
    # Mutations
    # ══════════════════════════════════════════════════════════════════════

    def upsert_submission(
        self,
        week: int,
        member_id: int,
        species: str,
        description: str = "",
        media_files: Optional[Iterable[str]] = None,
    ) -> Submission:
        """
        Insert or replace the submission for (week, member_id).

        On replace, the previous entry's `submitted_at` is carried into
        `previous_submitted_at` and `resubmitted_at` is stamped.
        """
        with self._lock:
            dataset = self._read()
            now = _utcnow()
            entry = Submission(
                id=Submission.make_id(week, member_id),
                week=week,
                member_id=member_id,
                species=species,
                description=description,
                media_files=list(media_files or []),
                submitted_at=now,
            )

            idx = _find_index(
                dataset.submissions,
                lambda s: s.week == week and s.member_id == member_id,
            )
            if idx is None:
                dataset.submissions.append(entry)
            else:
                entry.resubmitted_at = now
                entry.previous_submitted_at = dataset.submissions[idx].submitted_at
                dataset.submissions[idx] = entry

            self._write(dataset)

        logger.info(
            "Submission %s %s (%d media files)",
            entry.id,
            "replaced" if idx is not None else "created",
            len(entry.media_files),
        )
        return entry

    def delete_submission(self, week: int, member_id: int) -> bool:
        """Remove the submission for (week, member_id). Returns False if none existed."""
        with self._lock:
            dataset = self._read()
            kept = [s for s in dataset.submissions if not (s.week == week and s.member_id == member_id)]
            if len(kept) == len(dataset.submissions):
                return False
            dataset.submissions = kept
            self._write(dataset)
        logger.info("Submission %s deleted", Submission.make_id(week, member_id))
        return True

    def save_judgment(self, judgment: Union[Judgment, Mapping[str, Any]]) -> Judgment:
        """Upsert a judgment by (week, m1Id, m2Id). Extra keys are stored as given."""
        if not isinstance(judgment, Judgment):
            try:
                judgment = Judgment.model_validate(judgment)
            except PydanticValidationError as e:
                raise ValidationError(
                    message="Judgment must carry integer week, m1Id and m2Id",
                    context={"errors": e.error_count()},
                ) from e

        with self._lock:
            dataset = self._read()
            idx = _find_index(dataset.judgments, lambda j: j.key() == judgment.key())
            if idx is None:
                dataset.judgments.append(judgment)
            else:
                dataset.judgments[idx] = judgment
            self._write(dataset)

        logger.info(
            "Judgment saved: week %d, %d vs %d, winner=%s",
            judgment.week,
            judgment.m1_id,
            judgment.m2_id,
            judgment.winner,
        )
        return judgment

    def set_week_status(self, week: int, status: Union[WeekStatus, str]) -> Optional[Week]:
        """
        Change a week's status.

        Precondition: `status` is one of upcoming / active / completed.
        Any other value raises ValidationError before the file is read, so
        an unrecognized value can never reach db.json.

        Returns the updated Week, or None if the week does not exist.
        """
        try:
            new_status = WeekStatus(status)
        except ValueError:
            raise ValidationError(
                message="Invalid status. Must be: " + ", ".join(s.value for s in WeekStatus),
                field="status",
                context={"value": str(status)},
            )

        with self._lock:
            dataset = self._read()
            target = next((w for w in dataset.schedule if w.week == week), None)
            if target is None:
                return None
            target.status = new_status
            self._write(dataset)

        logger.info("Week %d status set to %s", week, new_status.value)
        return target

    def set_week_matchups(
        self,
        week: int,
        matchups: Iterable[Union[Matchup, Mapping[str, Any]]],
    ) -> Optional[Week]:
        """Replace a week's matchups. Returns None if the week does not exist."""
        try:
            validated = [m if isinstance(m, Matchup) else Matchup.model_validate(m) for m in matchups]
        except PydanticValidationError as e:
            raise ValidationError(
                message="Each matchup needs integer m1 and m2",
                field="matchups",
                context={"errors": e.error_count()},
            ) from e

        with self._lock:
            dataset = self._read()
            target = next((w for w in dataset.schedule if w.week == week), None)
            if target is None:
                return None
            target.matchups = validated
            self._write(dataset)

        logger.info("Week %d matchups replaced (%d matchups)", week, len(validated))
        return target

    def replace_db(self, new_dataset: Union[Dataset, Mapping[str, Any]]) -> Dataset:
        """
        Overwrite the whole dataset (manual restore from an uploaded db.json).

        The shape is checked first; a DatasetShapeError leaves db.json as it
        was. The previous state is snapshotted by the normal write path.
        """
        dataset = self._validate_dataset(new_dataset)
        self._write(dataset)
        logger.info(
            "Database replaced: %d members, %d submissions, %d judgments",
            len(dataset.members),
            len(dataset.submissions),
            len(dataset.judgments),
        )
        return dataset

    def reset(self) -> Dataset:
        """Replace everything with the seed dataset (empty submissions and judgments)."""
        dataset = default_dataset()
        self._write(dataset)
        logger.warning("Database reset to defaults")
        return dataset

    def migrate_if_needed(self, seed_path: Optional[Union[str, Path]]) -> bool:
        """
        Copy a bundled db.json into an empty data directory.

        Used when the data directory is a freshly mounted volume and the
        repository ships an older db.json. Returns True if a copy happened.
        """
        if not seed_path:
            return False
        source = Path(seed_path).resolve()
        with self._lock:
            if self.db_path.exists() or not source.is_file() or source == self.db_path:
                return False
            logger.info("Migrating data from %s to %s", source, self.db_path)
            try:
                data = source.read_bytes()
            except OSError as e:
                raise FileStorageError(
                    message="Could not read seed database",
                    context={"path": str(source), "os_error": str(e)},
                )
            self._atomic_write(data)
        logger.info("Migration complete")
        return True

    # ══════════════════════════════════════════════════════════════════════
    # Backups
    # ══════════════════════════════════════════════════════════════════════

    def list_backups(self) -> List[BackupInfo]:
        """All backups, newest first."""
        try:
            return [
                BackupInfo(name=name, size=(self.backup_dir / name).stat().st_size)
                for name in reversed(self._backup_names())
            ]
        except OSError as e:
            logger.warning("Could not list backups in %s: %s", self.backup_dir, str(e))
            return []

    def restore_backup(self, name: str) -> Optional[Dataset]:
        """
        Copy a backup verbatim over db.json.

        The current db.json is snapshotted first, so the restore itself can
        be undone. Returns None, without writing anything, if `name` is not a
        backup in the backup directory.

        Raises:
            DatasetShapeError if the backup exists but is not a valid dataset.
        """
        if not self._is_backup_name(name):
            logger.warning("Refusing to restore from invalid backup name: %r", name)
            return None

        backup_path = self.backup_dir / name
        with self._lock:
            if not backup_path.is_file():
                return None
            try:
                data = backup_path.read_bytes()
            except OSError as e:
                raise FileStorageError(
                    message="Could not read backup",
                    context={"backup": name, "os_error": str(e)},
                )
            try:
                dataset = Dataset.model_validate(json.loads(data))
            except ValueError as e:
                raise DatasetShapeError(
                    message=f"Backup '{name}' is not a valid dataset",
                    context={"backup": name, "error": str(e)},
                ) from e

            self._create_backup()
            self._atomic_write(data)

        logger.info("Restored from backup: %s", name)
        return dataset

    def _backup_names(self) -> List[str]:
        """Backup file names, oldest first."""
        return sorted(
            entry.name
            for entry in self.backup_dir.iterdir()
            if entry.is_file() and self._is_backup_name(entry.name)
        )

    @staticmethod
    def _is_backup_name(name: str) -> bool:
        return (
            bool(name)
            and name == Path(name).name
            and "/" not in name
            and "\\" not in name
            and name.startswith(BACKUP_PREFIX)
            and name.endswith(BACKUP_SUFFIX)
        )

    def _next_backup_path(self) -> Path:
        """
        Name for the next snapshot: the current millisecond, moved past the
        newest existing backup so several writes within one millisecond
        still sort in write order.
        """
        now = _utcnow()
        stamp = now.replace(microsecond=now.microsecond // 1000 * 1000)
        latest = next(
            (s for s in map(_backup_stamp, reversed(self._backup_names())) if s is not None),
            None,
        )
        if latest is not None and stamp <= latest:
            stamp = latest + timedelta(milliseconds=1)
        while True:
            path = self.backup_dir / _backup_name(stamp)
            if not path.exists():
                return path
            stamp += timedelta(milliseconds=1)

    def _create_backup(self) -> Optional[Path]:
        """
        Snapshot db.json and prune old backups. Never raises.

        Returns the new backup path, or None when there was nothing to back
        up or the copy failed.
        """
        if not self.db_path.exists():
            return None
        try:
            backup_path = self._next_backup_path()
            shutil.copyfile(self.db_path, backup_path)
            logger.debug("Backup created: %s", backup_path.name)
            self._prune_backups()
            return backup_path
        except OSError as e:
            # A failed backup must not block the primary write
            logger.error("Backup failed: %s", str(e))
            return None

    def _prune_backups(self) -> None:
        names = self._backup_names()
        excess = len(names) - self.max_backups
        for name in names[:max(excess, 0)]:
            (self.backup_dir / name).unlink()
            logger.info("Pruned old backup: %s", name)

    # ══════════════════════════════════════════════════════════════════════
    # Raw Read / Write
    # ══════════════════════════════════════════════════════════════════════

    def _read(self) -> Dataset:
        with self._lock:
            if not self.db_path.exists():
                logger.info("No existing database at %s, creating default", self.db_path)
                dataset = default_dataset()
                self._write(dataset)
                return dataset
            try:
                return self._load()
            except StoreCorruptError as e:
                logger.error(
                    "Database file is corrupt, resetting to defaults "
                    "(the corrupt file is kept in %s): %s",
                    self.backup_dir,
                    e.context.get("error"),
                )
                dataset = default_dataset()
                self._write(dataset)
                return dataset

    def _load(self) -> Dataset:
        try:
            raw = self.db_path.read_bytes()
        except OSError as e:
            logger.error("Failed to read %s: %s", self.db_path, str(e))
            raise FileStorageError(
                message="Could not read the league database",
                context={"path": str(self.db_path), "os_error": str(e)},
            )
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise StoreCorruptError(context={"path": str(self.db_path), "error": str(e)}) from e
        if not isinstance(document, dict) or any(document.get(k) is None for k in REQUIRED_COLLECTIONS):
            raise StoreCorruptError(
                context={"path": str(self.db_path), "error": "missing members or schedule"}
            )

        # Valid JSON with a bad entry: raise without writing anything
        try:
            return Dataset.model_validate(document)
        except PydanticValidationError as e:
            first = e.errors()[0]
            logger.error(
                "Database file %s has %d invalid entries, first at %s: %s",
                self.db_path,
                e.error_count(),
                ".".join(str(part) for part in first["loc"]),
                first["msg"],
            )
            raise FileStorageError(
                message="The league database has invalid entries; fix db.json or restore a backup",
                context={"path": str(self.db_path), "errors": e.error_count()},
            ) from e

    def _write(self, dataset: Dataset) -> None:
        payload = json.dumps(dataset.to_document(), indent=2, ensure_ascii=False)
        with self._lock:
            self._create_backup()
            self._atomic_write(payload.encode("utf-8"))

    def _atomic_write(self, data: bytes) -> None:
        tmp_fd, tmp_name = tempfile.mkstemp(prefix=".db-", suffix=".tmp", dir=self.data_dir)
        try:
            with os.fdopen(tmp_fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.db_path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            logger.error("Failed to write %s: %s", self.db_path, str(e))
            raise FileStorageError(
                message="Failed to save the league database",
                context={"path": str(self.db_path), "os_error": str(e)},
            )

    @staticmethod
    def _validate_dataset(candidate: Union[Dataset, Mapping[str, Any]]) -> Dataset:
        if isinstance(candidate, Dataset):
            return candidate
        if not isinstance(candidate, Mapping):
            raise DatasetShapeError(message="Invalid dataset: expected a JSON object")
        missing = [key for key in REQUIRED_COLLECTIONS if candidate.get(key) is None]
        if missing:
            raise DatasetShapeError(context={"missing": missing})
        try:
            return Dataset.model_validate(candidate)
        except PydanticValidationError as e:
            raise DatasetShapeError(
                message="Invalid dataset: entries do not match the expected shape",
                context={"errors": e.error_count()},
            ) from e


# ── Singleton Instance ────────────────────────────────────────────────────
document_store = DocumentStore(
    data_dir=settings.data_dir,
    db_filename=settings.db_filename,
    backup_dirname=settings.backup_dirname,
    max_backups=settings.max_backups,
)
