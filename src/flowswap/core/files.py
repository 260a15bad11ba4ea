# src/flowswap/core/files.py
"""Active/backup file handling for the persisted flow configuration.

Two artifacts are persisted per configuration:

- the rendered (enriched, runnable) configuration, e.g. ``flow.json.gz``
- the raw configuration as received, e.g. ``flow.json.raw``

Each has a transient backup counterpart that only exists while an update
attempt is in flight:

    conf/flow.json.gz           active rendered
    conf/flow.json.gz.backup    backup rendered
    conf/flow.json.raw          active raw
    conf/flow.json.backup.raw   backup raw

All writes go through write-to-temp-then-rename so a crash never leaves a
half-written active file behind.
"""

from __future__ import annotations

import gzip
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from flowswap.contracts.errors import ConfigFileError

slog = structlog.get_logger(__name__)

DEFAULT_BACKUP_SUFFIX = ".backup"
DEFAULT_RAW_EXTENSION = ".raw"
_COMPRESSED_SUFFIX = ".gz"


@dataclass(frozen=True, slots=True)
class ConfigFilePaths:
    """The four paths derived from the active rendered configuration file."""

    active: Path
    backup: Path
    raw: Path
    backup_raw: Path

    @classmethod
    def derive(
        cls,
        flow_configuration_file: Path,
        *,
        backup_suffix: str = DEFAULT_BACKUP_SUFFIX,
        raw_extension: str = DEFAULT_RAW_EXTENSION,
    ) -> ConfigFilePaths:
        """Derive backup and raw paths from the active file.

        The backup path appends the backup suffix to the full active name.
        The raw paths replace the last extension of the active name.

        Example:
            >>> paths = ConfigFilePaths.derive(Path("/opt/conf/flow.json.gz"))
            >>> paths.raw.name, paths.backup_raw.name
            ('flow.json.raw', 'flow.json.backup.raw')
        """
        active = Path(flow_configuration_file).absolute()
        base_name = active.stem
        return cls(
            active=active,
            backup=active.with_name(active.name + backup_suffix),
            raw=active.with_name(base_name + raw_extension),
            backup_raw=active.with_name(base_name + backup_suffix + raw_extension),
        )

    @property
    def backups(self) -> tuple[Path, Path]:
        return (self.backup, self.backup_raw)

    @property
    def compress_rendered(self) -> bool:
        return self.active.suffix == _COMPRESSED_SUFFIX


def write_atomically(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a fsynced temp file and os.replace.

    The temp file lives in the target directory so the rename stays on one
    filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class ConfigFileSet:
    """Backup/persist/revert/cleanup over the active and backup file pairs.

    Every operation is idempotent and safe to call when its target file does
    not exist. Use transaction() so cleanup() runs on every exit path:

        with file_set.transaction():
            file_set.backup()
            file_set.persist(rendered, raw)
            ...
            if failed:
                file_set.revert()
        # backups are gone here, whatever happened
    """

    def __init__(self, paths: ConfigFilePaths) -> None:
        self.paths = paths
        # Active files whose backup was written by the current attempt
        self._backed_up: set[Path] = set()
        # None until backup() runs; True when there was no raw file to back up
        self._raw_was_absent: bool | None = None

    def backup(self) -> None:
        """Copy both active files to their backups.

        Backups left behind by a crashed attempt are removed first, so
        revert() can only ever restore bytes copied by this call.

        Raises:
            ConfigFileError: If a stale backup cannot be removed, or if the
                active rendered file cannot be read. A missing active
                configuration is not a valid pre-update state.
        """
        self._backed_up.clear()
        self._raw_was_absent = None
        for stale in self.paths.backups:
            if not self._remove(stale):
                raise ConfigFileError("Unable to remove stale backup flow configuration", path=stale)

        try:
            rendered = self.paths.active.read_bytes()
        except OSError as e:
            raise ConfigFileError("Unable to read active flow configuration for backup", path=self.paths.active) from e
        self._copy_to(self.paths.backup, rendered)
        self._backed_up.add(self.paths.active)

        if self.paths.raw.is_file():
            try:
                raw = self.paths.raw.read_bytes()
            except OSError as e:
                raise ConfigFileError("Unable to read raw flow configuration for backup", path=self.paths.raw) from e
            self._copy_to(self.paths.backup_raw, raw)
            self._backed_up.add(self.paths.raw)
            self._raw_was_absent = False
        else:
            slog.warning(
                "Raw flow configuration does not exist, no backup copy will be created",
                path=str(self.paths.raw),
            )
            self._raw_was_absent = True

        slog.debug("Backed up flow configuration", backup=str(self.paths.backup))

    def persist(self, rendered: bytes, raw: bytes) -> None:
        """Overwrite both active files.

        The rendered configuration is gzip-compressed when the active file
        name ends in ``.gz``; the raw configuration is stored as received.

        Raises:
            ConfigFileError: If either file cannot be written.
        """
        payload = gzip.compress(rendered, mtime=0) if self.paths.compress_rendered else rendered
        for path, data in ((self.paths.active, payload), (self.paths.raw, raw)):
            try:
                write_atomically(path, data)
            except OSError as e:
                raise ConfigFileError("Unable to persist flow configuration", path=path) from e
        slog.debug(
            "Persisted flow configuration",
            path=str(self.paths.active),
            rendered_bytes=len(rendered),
            raw_bytes=len(raw),
            compressed=self.paths.compress_rendered,
        )

    def revert(self) -> bool:
        """Restore both active files from the backups taken by backup().

        A file this attempt never backed up was never overwritten either, so
        it is left alone. When the raw file did not exist before backup(),
        the persisted raw file is removed instead.

        Returns:
            True if every file that had a prior state was restored. False if
            any restore failed; failures are logged, never raised.
        """
        restored = True
        for backup, active in ((self.paths.backup, self.paths.active), (self.paths.backup_raw, self.paths.raw)):
            if active not in self._backed_up:
                if active == self.paths.raw and self._raw_was_absent:
                    restored &= self._remove(active)
                else:
                    slog.info("No backup taken for flow configuration file, leaving it as is", path=str(active))
                continue
            try:
                write_atomically(active, backup.read_bytes())
            except OSError as e:
                slog.error("Unable to revert flow configuration", path=str(active), error=str(e))
                restored = False
        return restored

    def cleanup(self) -> None:
        """Remove both backup files. Failures are logged."""
        for backup in self.paths.backups:
            self._remove(backup)
        self._backed_up.clear()
        self._raw_was_absent = None

    @contextmanager
    def transaction(self) -> Iterator[ConfigFileSet]:
        """Scope that guarantees cleanup() exactly once on exit."""
        try:
            yield self
        finally:
            self.cleanup()

    def _copy_to(self, path: Path, data: bytes) -> None:
        try:
            write_atomically(path, data)
        except OSError as e:
            raise ConfigFileError("Unable to write backup flow configuration", path=path) from e

    @staticmethod
    def _remove(path: Path) -> bool:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            slog.error("Unable to remove file", path=str(path), error=str(e))
            return False
        return True
