# tests/core/test_files.py
"""Tests for ConfigFilePaths and ConfigFileSet."""

import gzip
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from flowswap.contracts.errors import ConfigFileError
from flowswap.core.files import ConfigFilePaths, ConfigFileSet, write_atomically


class TestConfigFilePaths:
    def test_derive_from_compressed_file(self, tmp_path: Path) -> None:
        paths = ConfigFilePaths.derive(tmp_path / "conf" / "flow.json.gz")

        assert paths.active.name == "flow.json.gz"
        assert paths.backup.name == "flow.json.gz.backup"
        assert paths.raw.name == "flow.json.raw"
        assert paths.backup_raw.name == "flow.json.backup.raw"
        assert paths.compress_rendered is True
        assert {p.parent for p in (paths.active, paths.backup, paths.raw, paths.backup_raw)} == {tmp_path / "conf"}

    def test_derive_from_plain_file(self, tmp_path: Path) -> None:
        paths = ConfigFilePaths.derive(tmp_path / "config.yml")

        assert paths.backup.name == "config.yml.backup"
        assert paths.raw.name == "config.raw"
        assert paths.backup_raw.name == "config.backup.raw"
        assert paths.compress_rendered is False

    def test_custom_suffixes(self, tmp_path: Path) -> None:
        paths = ConfigFilePaths.derive(tmp_path / "flow.json", backup_suffix=".bak", raw_extension=".orig")

        assert paths.backup.name == "flow.json.bak"
        assert paths.raw.name == "flow.orig"
        assert paths.backup_raw.name == "flow.bak.orig"

    def test_relative_path_made_absolute(self) -> None:
        paths = ConfigFilePaths.derive(Path("conf/flow.json"))

        assert paths.active.is_absolute()


class TestWriteAtomically:
    def test_replaces_content_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "flow.json"
        target.write_bytes(b"old")

        write_atomically(target, b"new")

        assert target.read_bytes() == b"new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["flow.json"]

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "conf" / "flow.json"

        write_atomically(target, b"data")

        assert target.read_bytes() == b"data"

    def test_failed_replace_cleans_up_temp_file(self, tmp_path: Path) -> None:
        target = tmp_path / "flow.json"
        target.mkdir()

        with pytest.raises(OSError):
            write_atomically(target, b"data")

        assert [p.name for p in tmp_path.iterdir()] == ["flow.json"]


class TestConfigFileSet:
    """Backup / persist / revert / cleanup over the four files."""

    def test_backup_copies_both_files(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))

        files.backup()

        assert files.paths.backup.read_bytes() == flow_file.read_bytes()
        assert files.paths.backup_raw.read_bytes() == files.paths.raw.read_bytes()

    def test_backup_without_active_file_fails(self, tmp_path: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(tmp_path / "flow.json.gz"))

        with pytest.raises(ConfigFileError) as exc_info:
            files.backup()

        assert exc_info.value.path == files.paths.active

    def test_persist_compresses_rendered_and_keeps_raw(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))

        files.persist(b"rendered", b"raw")

        assert gzip.decompress(flow_file.read_bytes()) == b"rendered"
        assert files.paths.raw.read_bytes() == b"raw"

    def test_persist_plain_file_uncompressed(self, tmp_path: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(tmp_path / "flow.json"))

        files.persist(b"rendered", b"raw")

        assert files.paths.active.read_bytes() == b"rendered"

    def test_persist_failure_raises_config_file_error(self, tmp_path: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(tmp_path / "flow.json"))
        files.paths.raw.mkdir()

        with pytest.raises(ConfigFileError, match="Unable to persist"):
            files.persist(b"rendered", b"raw")

    def test_revert_restores_exact_bytes(self, flow_file: Path) -> None:
        before_active = flow_file.read_bytes()
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        before_raw = files.paths.raw.read_bytes()

        files.backup()
        files.persist(b"candidate", b"candidate-raw")

        assert files.revert() is True
        assert flow_file.read_bytes() == before_active
        assert files.paths.raw.read_bytes() == before_raw

    def test_revert_removes_raw_file_that_did_not_exist(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.paths.raw.unlink()

        files.backup()
        files.persist(b"candidate", b"candidate-raw")

        assert files.revert() is True
        assert not files.paths.raw.exists()

    def test_stale_raw_backup_is_discarded_when_raw_absent(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.paths.raw.unlink()
        files.paths.backup_raw.write_bytes(b"left over from a crash")

        files.backup()

        assert not files.paths.backup_raw.exists()

    def test_backup_discards_leftover_backups(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.paths.backup.write_bytes(b"STALE-RENDERED")
        files.paths.backup_raw.write_bytes(b"STALE-RAW")

        files.backup()

        assert files.paths.backup.read_bytes() == flow_file.read_bytes()
        assert files.paths.backup_raw.read_bytes() == files.paths.raw.read_bytes()

    def test_revert_after_failed_backup_keeps_active_files(self, flow_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        before = (flow_file.read_bytes(), files.paths.raw.read_bytes())
        files.paths.backup.write_bytes(b"STALE-RENDERED")
        files.paths.backup_raw.write_bytes(b"STALE-RAW")

        def full_disk(path: Path, data: bytes) -> None:
            raise OSError(28, "No space left on device", str(path))

        monkeypatch.setattr("flowswap.core.files.write_atomically", full_disk)
        with pytest.raises(ConfigFileError, match="Unable to write backup"):
            files.backup()
        monkeypatch.undo()

        assert files.revert() is True
        assert (flow_file.read_bytes(), files.paths.raw.read_bytes()) == before

    def test_revert_restores_only_files_backed_up_this_attempt(self, flow_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        raw_before = files.paths.raw.read_bytes()
        real_copy = ConfigFileSet._copy_to

        def raw_copy_fails(self: ConfigFileSet, path: Path, data: bytes) -> None:
            if path == self.paths.backup_raw:
                raise ConfigFileError("Unable to write backup flow configuration", path=path)
            real_copy(self, path, data)

        monkeypatch.setattr(ConfigFileSet, "_copy_to", raw_copy_fails)
        with pytest.raises(ConfigFileError):
            files.backup()
        files.paths.backup_raw.write_bytes(b"STALE-RAW")

        assert files.revert() is True
        assert files.paths.raw.read_bytes() == raw_before

    def test_revert_fails_when_own_backup_vanished(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.backup()
        files.paths.backup.unlink()

        assert files.revert() is False

    def test_revert_failure_returns_false(self, flow_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.backup()

        def broken_write(path: Path, data: bytes) -> None:
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr("flowswap.core.files.write_atomically", broken_write)

        assert files.revert() is False

    def test_cleanup_removes_backups_and_is_idempotent(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        files.backup()

        files.cleanup()
        files.cleanup()

        assert not files.paths.backup.exists()
        assert not files.paths.backup_raw.exists()
        assert flow_file.exists()

    def test_transaction_cleans_up_on_exception(self, flow_file: Path) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))

        with pytest.raises(RuntimeError), files.transaction():
            files.backup()
            raise RuntimeError("boom")

        assert not files.paths.backup.exists()
        assert not files.paths.backup_raw.exists()

    @given(rendered=st.binary(max_size=512), raw=st.binary(max_size=512))
    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_revert_round_trip(self, flow_file: Path, rendered: bytes, raw: bytes) -> None:
        files = ConfigFileSet(ConfigFilePaths.derive(flow_file))
        before = (flow_file.read_bytes(), files.paths.raw.read_bytes())

        with files.transaction():
            files.backup()
            files.persist(rendered, raw)
            assert files.revert() is True

        assert (flow_file.read_bytes(), files.paths.raw.read_bytes()) == before
        assert not files.paths.backup.exists()
