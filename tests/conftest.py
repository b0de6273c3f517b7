"""Shared fixtures: an isolated config root per test."""

import pytest

from zap.core.config import CategoryMeta, Environment, HostEntry
from zap.services.store import Store


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the real ~/.config/zap and /etc/hosts."""
    monkeypatch.setenv("ZAP_CONFIG_DIR", str(tmp_path / "default-root"))
    monkeypatch.setenv("ZAP_HOSTS_FILE", str(tmp_path / "default-hosts"))
    monkeypatch.delenv("SUDO_USER", raising=False)


@pytest.fixture
def env(tmp_path) -> Environment:
    """Environment rooted in the test's temporary directory."""
    return Environment(config_dir=tmp_path / "zap", hosts_file=tmp_path / "hosts")


@pytest.fixture
def store(env) -> Store:
    return Store(env)


@pytest.fixture
def firewalls_store(store) -> Store:
    """Store holding the firewalls category with one aliased host."""
    store.create_category("firewalls", CategoryMeta(emoji="🔥", aliases=["fw", "firewall"]))
    store.add_host(
        "firewalls",
        "paris-fw-1",
        HostEntry(address="1.1.1.1", aliases=["paris", "pfw1"]),
    )
    return store
