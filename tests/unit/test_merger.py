"""Unit tests for the import merge."""

from pathlib import Path

import pytest
import yaml

from zap.core.exceptions import ImportMalformed
from zap.services.merger import apply_import, deep_merge, plan_import


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_disjoint_keys(self):
        """Keys from both sides are kept, base first."""
        merged = deep_merge({"a": 1}, {"b": 2})
        assert merged == {"a": 1, "b": 2}
        assert list(merged) == ["a", "b"]

    def test_nested_mappings_recurse(self):
        """Nested mappings merge key by key."""
        base = {"hosts": {"web": {"address": "10.0.0.1", "port": 22}}}
        incoming = {"hosts": {"web": {"port": 2222}, "db": {}}}

        assert deep_merge(base, incoming) == {
            "hosts": {
                "web": {"address": "10.0.0.1", "port": 2222},
                "db": {},
            }
        }

    def test_lists_replaced(self):
        """Lists are scalars for merging purposes."""
        merged = deep_merge({"aliases": ["a", "b"]}, {"aliases": ["c"]})
        assert merged == {"aliases": ["c"]}

    def test_type_change_replaced(self):
        """A mapping replaced by a scalar takes the scalar."""
        assert deep_merge({"x": {"y": 1}}, {"x": 5}) == {"x": 5}
        assert deep_merge({"x": 5}, {"x": {"y": 1}}) == {"x": {"y": 1}}

    def test_inputs_untouched(self):
        """Neither argument is modified."""
        base = {"a": {"b": [1]}}
        incoming = {"a": {"c": 2}}
        merged = deep_merge(base, incoming)
        merged["a"]["b"].append(2)

        assert base == {"a": {"b": [1]}}
        assert incoming == {"a": {"c": 2}}

    def test_last_writer_wins_in_any_grouping(self):
        """Merging in sequence is associative for the final values."""
        a = {"s": {"x": 1, "y": 1}}
        b = {"s": {"y": 2, "z": 2}}
        c = {"s": {"z": 3}}

        left = deep_merge(deep_merge(a, b), c)
        right = deep_merge(a, deep_merge(b, c))
        assert left == right == {"s": {"x": 1, "y": 2, "z": 3}}


class TestPlanImport:
    """Tests for planning an import."""

    def test_empty_source(self, store, tmp_path):
        """A source with nothing usable is rejected."""
        source = tmp_path / "unpacked"
        source.mkdir()
        with pytest.raises(ImportMalformed) as exc:
            plan_import(store, source)
        assert exc.value.exit_code == 23

    def test_only_ignored_entries(self, store, tmp_path):
        """categories/ holding no tables is rejected."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "README", "hello")

        with pytest.raises(ImportMalformed):
            plan_import(store, source)

    def test_settings_merge(self, firewalls_store, tmp_path):
        """Imported settings overlay the local ones."""
        source = tmp_path / "unpacked"
        _write(
            source / "config.yml",
            "enable_welcome: true\n"
            "categories:\n"
            "  firewalls:\n"
            "    default_user: admin\n"
            "  switches:\n"
            "    aliases: [sw]\n",
        )

        plan = plan_import(firewalls_store, source)
        settings = plan.settings.model

        assert settings.enable_welcome is True
        assert list(settings.categories) == ["firewalls", "switches"]
        assert settings.categories["firewalls"].default_user == "admin"
        assert settings.categories["firewalls"].aliases == ["fw", "firewall"]
        assert settings.categories["switches"].aliases == ["sw"]
        assert plan.settings.changed

    def test_table_merge(self, firewalls_store, tmp_path):
        """Imported hosts merge into the existing table."""
        source = tmp_path / "unpacked"
        _write(
            source / "categories" / "firewalls.yml",
            "hosts:\n"
            "  paris-fw-1:\n"
            "    username: root\n"
            "  lyon-fw-1:\n"
            "    address: 2.2.2.2\n",
        )

        plan = plan_import(firewalls_store, source)
        (table,) = plan.tables
        hosts = table.model.hosts

        assert not table.is_new
        assert hosts["paris-fw-1"].address == "1.1.1.1"
        assert hosts["paris-fw-1"].username == "root"
        assert hosts["paris-fw-1"].aliases == ["paris", "pfw1"]
        assert hosts["lyon-fw-1"].address == "2.2.2.2"
        assert "+    username: root" in table.diff()

    def test_unregistered_table(self, store, tmp_path):
        """A table without a settings entry is planned but flagged."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "switches.yml", "hosts:\n  sw1: {}\n")

        plan = plan_import(store, source)

        assert plan.unregistered == ["switches"]
        assert plan.tables[0].is_new
        assert plan.settings is None

    def test_table_registered_by_same_archive(self, store, tmp_path):
        """Tables declared by the imported settings are not flagged."""
        source = tmp_path / "unpacked"
        _write(source / "config.yml", "categories:\n  switches: {}\n")
        _write(source / "categories" / "switches.yml", "hosts: {}\n")

        assert plan_import(store, source).unregistered == []

    def test_ignored_entries_reported(self, store, tmp_path):
        """Non-table entries in categories/ are listed, not imported."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "lab.yml", "hosts: {}\n")
        _write(source / "categories" / "notes.txt", "x")

        plan = plan_import(store, source)
        assert plan.ignored == ["notes.txt"]
        assert [item.key for item in plan.tables] == ["lab"]

    def test_non_mapping_rejected(self, store, tmp_path):
        """A YAML list at the top of a file is malformed."""
        source = tmp_path / "unpacked"
        _write(source / "config.yml", "- a\n- b\n")

        with pytest.raises(ImportMalformed):
            plan_import(store, source)

    def test_invalid_values_rejected(self, store, tmp_path):
        """Merged values failing validation are malformed."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "lab.yml", "hosts:\n  web:\n    port: 70000\n")

        with pytest.raises(ImportMalformed) as exc:
            plan_import(store, source)
        assert exc.value.details

    def test_invalid_file_name(self, store, tmp_path):
        """Table names that are not valid keys are malformed."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / ".yml", "hosts: {}\n")

        with pytest.raises(ImportMalformed):
            plan_import(store, source)

    def test_reserved_category_file(self, store, tmp_path):
        """categories/config.yml cannot be imported as a category."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "config.yml", "hosts: {}\n")

        with pytest.raises(ImportMalformed) as exc:
            plan_import(store, source)
        assert "reserved" in exc.value.details[0]

    def test_legacy_ip_overrides_address(self, firewalls_store, tmp_path):
        """An ip key in an imported table replaces the local address."""
        source = tmp_path / "unpacked"
        _write(
            source / "categories" / "firewalls.yml",
            "hosts:\n"
            "  paris-fw-1:\n"
            "    ip: 9.9.9.9\n",
        )

        (table,) = plan_import(firewalls_store, source).tables
        host = table.model.hosts["paris-fw-1"]

        assert host.address == "9.9.9.9"
        assert host.aliases == ["paris", "pfw1"]
        assert "ip:" not in table.content

    def test_legacy_logfile_overrides_path(self, firewalls_store, tmp_path):
        """A logfile key in imported settings replaces the local log path."""
        config = firewalls_store.load()
        config.logging.path = Path("/old.log")
        firewalls_store.write_global_config(config)

        source = tmp_path / "unpacked"
        _write(source / "config.yml", "logging:\n  enabled: true\n  logfile: /new.log\n")

        plan = plan_import(firewalls_store, source)
        logging_settings = plan.settings.model.logging

        assert logging_settings.enabled is True
        assert str(logging_settings.path) == "/new.log"
        assert "logfile" not in plan.settings.content

    def test_unknown_keys_kept(self, firewalls_store, tmp_path):
        """Keys zap does not know are merged like any other."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "firewalls.yml", "hosts:\n  paris-fw-1:\n    rack: b4\n")

        (table,) = plan_import(firewalls_store, source).tables
        assert table.model.to_document()["hosts"]["paris-fw-1"] == {
            "address": "1.1.1.1",
            "aliases": ["paris", "pfw1"],
            "rack": "b4",
        }


class TestApplyImport:
    """Tests for writing a plan."""

    def test_writes_all_files(self, firewalls_store, env, tmp_path):
        """Settings and tables are written."""
        source = tmp_path / "unpacked"
        _write(source / "config.yml", "categories:\n  switches: {}\n")
        _write(source / "categories" / "switches.yml", "hosts:\n  sw1:\n    address: 10.0.0.2\n")

        apply_import(firewalls_store, plan_import(firewalls_store, source))

        settings = yaml.safe_load(env.settings_path.read_text())
        assert list(settings["categories"]) == ["firewalls", "switches"]
        table = yaml.safe_load(env.table_path("switches").read_text())
        assert table == {"hosts": {"sw1": {"address": "10.0.0.2", "aliases": []}}}

    def test_unregistered_table_not_declared(self, store, env, tmp_path):
        """Importing a lone table creates the file only."""
        source = tmp_path / "unpacked"
        _write(source / "categories" / "switches.yml", "hosts:\n  sw1: {}\n")

        apply_import(store, plan_import(store, source))

        assert env.table_path("switches").is_file()
        assert "switches" not in store.load().categories

    def test_malformed_file_writes_nothing(self, firewalls_store, env, tmp_path):
        """One bad file stops the whole import before any write."""
        settings_before = env.settings_path.read_text()
        table_before = env.table_path("firewalls").read_text()

        source = tmp_path / "unpacked"
        _write(source / "config.yml", "enable_welcome: true\n")
        _write(source / "categories" / "firewalls.yml", "hosts:\n  x:\n    port: nope\n")

        with pytest.raises(ImportMalformed):
            apply_import(firewalls_store, plan_import(firewalls_store, source))

        assert env.settings_path.read_text() == settings_before
        assert env.table_path("firewalls").read_text() == table_before
