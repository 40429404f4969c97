"""Тесты для token_store модуля."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from wmsgateway.token_store import FileTokenStore, MemoryTokenStore

pytestmark = pytest.mark.unit


class TestMemoryTokenStore:
    """Тесты MemoryTokenStore."""

    def test_initially_empty(self) -> None:
        assert MemoryTokenStore().get() is None

    def test_set_and_get(self) -> None:
        store = MemoryTokenStore()
        store.set("csrf-1")

        assert store.get() == "csrf-1"
        assert store.version == 1

    def test_set_replaces_single_token(self) -> None:
        """Хранится не более одного токена."""
        store = MemoryTokenStore()
        store.set("csrf-1")
        store.set("csrf-2")

        assert store.get() == "csrf-2"
        assert store.version == 2

    def test_invalidate(self) -> None:
        store = MemoryTokenStore()
        store.set("csrf-1")
        store.invalidate()

        assert store.get() is None


class TestFileTokenStore:
    """Тесты FileTokenStore."""

    def test_missing_file_means_no_token(self, tmp_path: Path) -> None:
        assert FileTokenStore(tmp_path / "token").get() is None

    def test_set_persists_between_instances(self, tmp_path: Path) -> None:
        """Токен переживает пересоздание хранилища (перезапуск процесса)."""
        path = tmp_path / "nested" / "token"
        FileTokenStore(path).set("bearer-1")

        assert FileTokenStore(path).get() == "bearer-1"

    def test_blank_file_means_no_token(self, tmp_path: Path) -> None:
        path = tmp_path / "token"
        path.write_text("  \n", encoding="utf-8")

        assert FileTokenStore(path).get() is None

    def test_invalidate_removes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "token"
        store = FileTokenStore(path)
        store.set("bearer-1")
        store.invalidate()

        assert not path.exists()
        assert store.get() is None

    def test_invalidate_without_file(self, tmp_path: Path) -> None:
        """Удаление отсутствующего токена не падает."""
        FileTokenStore(tmp_path / "token").invalidate()

    def test_unchanged_file_is_read_once(self, tmp_path: Path) -> None:
        """Пока mtime не менялся, файл повторно не читается."""
        path = tmp_path / "token"
        path.write_text("bearer-1", encoding="utf-8")
        store = FileTokenStore(path)
        read_text = Path.read_text

        with patch.object(Path, "read_text", autospec=True, side_effect=read_text) as mock_read:
            assert [store.get() for _ in range(3)] == ["bearer-1"] * 3

        assert mock_read.call_count == 1

    def test_set_does_not_reread_file(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path / "token")
        store.set("bearer-1")

        with patch.object(Path, "read_text", autospec=True) as mock_read:
            assert store.get() == "bearer-1"

        mock_read.assert_not_called()

    def test_external_change_is_picked_up(self, tmp_path: Path) -> None:
        """Токен, записанный другим процессом, виден после смены mtime."""
        path = tmp_path / "token"
        store = FileTokenStore(path)
        store.set("bearer-1")
        mtime_ns = path.stat().st_mtime_ns

        path.write_text("bearer-2", encoding="utf-8")
        os.utime(path, ns=(mtime_ns, mtime_ns + 1_000_000_000))

        assert store.get() == "bearer-2"

    def test_external_removal_is_picked_up(self, tmp_path: Path) -> None:
        path = tmp_path / "token"
        store = FileTokenStore(path)
        store.set("bearer-1")

        path.unlink()

        assert store.get() is None
