"""Unit tests for the configuration lock."""

import pytest

from zap.core.exceptions import ConfigBusy
from zap.core.locking import ConfigLock


class TestConfigLock:
    """Tests for ConfigLock."""

    def test_creates_lock_file(self, tmp_path):
        """Holding the lock creates the lock file and its directory."""
        lock = ConfigLock(tmp_path / "root" / ".lock")
        with lock.hold():
            assert lock.held
        assert (tmp_path / "root" / ".lock").exists()
        assert not lock.held

    def test_reentrant(self, tmp_path):
        """Nested holds in one owner do not deadlock."""
        lock = ConfigLock(tmp_path / ".lock")
        with lock.hold():
            with lock.hold():
                assert lock.held
            assert lock.held
        assert not lock.held

    def test_second_owner_is_busy(self, tmp_path):
        """A second owner cannot take the lock while it is held."""
        first = ConfigLock(tmp_path / ".lock")
        second = ConfigLock(tmp_path / ".lock")

        with first.hold():
            with pytest.raises(ConfigBusy) as exc:
                with second.hold():
                    pass
        assert exc.value.hint is not None
        assert not second.held

    def test_released_after_error(self, tmp_path):
        """The lock is released when the block raises."""
        first = ConfigLock(tmp_path / ".lock")
        second = ConfigLock(tmp_path / ".lock")

        with pytest.raises(RuntimeError):
            with first.hold():
                raise RuntimeError("boom")

        with second.hold():
            assert second.held
