"""
tests/test_utils/test_lock.py — Tests for the storage-directory lock.
"""

from __future__ import annotations

import pytest

from trailcount_pipeline.utils.lock import storage_lock
from trailcount_shared.errors import ConfigError


class TestStorageLock:
    def test_lock_is_released_on_exit(self, tmp_path):
        path = tmp_path / ".trailcounts.lock"
        with storage_lock(path) as lock:
            assert lock.is_locked
        assert not lock.is_locked
        with storage_lock(path):
            pass

    def test_second_holder_is_refused(self, tmp_path):
        path = tmp_path / ".trailcounts.lock"
        with storage_lock(path):
            with pytest.raises(ConfigError) as exc_info:
                with storage_lock(path):
                    pass
        assert exc_info.value.context["lock_path"] == str(path)
