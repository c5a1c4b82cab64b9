"""Tests for versioned configuration snapshots."""

import pytest

from courier.config import ConfigHandle, RuntimeConfig
from courier.config.loader import CONFIG_FILENAME
from courier.core.errors import InvalidConfiguration


class TestConfigHandle:
    def test_initial_version(self):
        handle = ConfigHandle()

        assert handle.version == 1
        assert handle.current().config == RuntimeConfig()

    def test_swap_bumps_version(self):
        handle = ConfigHandle()
        old = handle.current()

        new = handle.swap(RuntimeConfig.model_validate({"correlation_ttl": 5}))

        assert new.version == 2
        assert handle.current() is new
        assert old.config.correlation_ttl == 30
        assert new.session.drain_batch_size == 20

    def test_swap_copies_config(self):
        handle = ConfigHandle()
        config = RuntimeConfig()
        handle.swap(config)

        config.correlation_ttl = 99

        assert handle.current().config.correlation_ttl == 30

    def test_agent_type_lookup(self):
        handle = ConfigHandle(
            RuntimeConfig.model_validate({"agent_types": {"planner": {"prompt": "p"}}})
        )

        assert handle.current().agent_type("planner").prompt == "p"
        assert handle.current().agent_type("other") is None
        assert handle.current().agent_type(None) is None

    def test_from_file_and_reload(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("correlation_ttl: 4\n")
        handle = ConfigHandle.from_file(path)

        path.write_text("correlation_ttl: 8\n")
        snapshot = handle.reload(path)

        assert snapshot.version == 2
        assert handle.current().config.correlation_ttl == 8

    def test_failed_reload_keeps_current(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("correlation_ttl: 4\n")
        handle = ConfigHandle.from_file(path)

        path.write_text("correlation_ttl: -1\n")
        with pytest.raises(InvalidConfiguration):
            handle.reload(path)

        assert handle.version == 1
        assert handle.current().config.correlation_ttl == 4
