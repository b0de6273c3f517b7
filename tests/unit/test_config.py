"""Unit tests for configuration models and YAML helpers."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from zap.core.config import (
    DEFAULT_HOSTS_FILE,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SSH_BIN,
    CategoryMeta,
    Environment,
    GlobalConfig,
    HostEntry,
    HostTable,
    dump_yaml,
    load_document,
    normalize_settings_document,
    normalize_table_document,
    parse_global_config,
    parse_host_table,
)
from zap.core.exceptions import CorruptConfig


class TestGlobalConfig:
    """Tests for the settings model."""

    def test_defaults(self):
        """An empty document should give the documented defaults."""
        config = GlobalConfig.model_validate({})
        assert config.ssh_bin == DEFAULT_SSH_BIN
        assert config.enable_welcome is False
        assert config.backup_retention_days == DEFAULT_RETENTION_DAYS
        assert config.logging.enabled is False
        assert config.logging.path is None
        assert config.categories == {}

    def test_nulls_fall_back_to_defaults(self):
        """Null values should not fail validation."""
        config = GlobalConfig.model_validate({
            "ssh_bin": None,
            "backup_retention_days": None,
            "logging": None,
            "categories": None,
        })
        assert config.ssh_bin == DEFAULT_SSH_BIN
        assert config.backup_retention_days == DEFAULT_RETENTION_DAYS
        assert config.categories == {}

    def test_blank_ssh_bin_uses_default(self):
        """An empty ssh_bin should mean the default binary."""
        config = GlobalConfig.model_validate({"ssh_bin": ""})
        assert config.ssh_bin == DEFAULT_SSH_BIN

    def test_negative_retention_rejected(self):
        """Retention must be >= 0."""
        with pytest.raises(PydanticValidationError):
            GlobalConfig.model_validate({"backup_retention_days": -1})

    def test_zero_retention_allowed(self):
        """Retention 0 is valid."""
        config = GlobalConfig.model_validate({"backup_retention_days": 0})
        assert config.backup_retention_days == 0

    def test_category_order_preserved(self):
        """Categories keep their file order."""
        config = GlobalConfig.model_validate({
            "categories": {"zeta": {}, "alpha": {}, "mid": {}},
        })
        assert list(config.categories) == ["zeta", "alpha", "mid"]

    def test_null_category_is_empty_meta(self):
        """A category declared with no body should load."""
        config = GlobalConfig.model_validate({"categories": {"lab": None}})
        assert config.categories["lab"] == CategoryMeta()

    def test_empty_category_key_rejected(self):
        """Category keys cannot be empty."""
        with pytest.raises(PydanticValidationError):
            GlobalConfig.model_validate({"categories": {"": {}}})

    def test_legacy_logfile_key(self):
        """The old logfile key should populate logging.path."""
        config = GlobalConfig.model_validate({
            "logging": {"enabled": True, "logfile": "/tmp/zap.log"},
        })
        assert config.logging.enabled is True
        assert config.logging.path == Path("/tmp/zap.log")

    def test_to_yaml_round_trip(self):
        """Dumped settings should load back equal."""
        config = GlobalConfig.model_validate({
            "enable_welcome": True,
            "categories": {"firewalls": {"emoji": "🔥", "aliases": ["fw"], "default_port": 2222}},
        })
        text = config.to_yaml()
        assert "🔥" in text
        assert GlobalConfig.model_validate(yaml.safe_load(text)) == config

    def test_unknown_keys_written_back(self):
        """Hand-edited keys survive a load and dump."""
        config = GlobalConfig.model_validate({
            "editor": "vim",
            "logging": {"enabled": False, "rotate": 3},
            "categories": {"lab": {"owner": "netops"}},
        })
        document = config.to_document()

        assert document["editor"] == "vim"
        assert document["logging"]["rotate"] == 3
        assert document["categories"]["lab"]["owner"] == "netops"

    def test_current_key_beats_legacy_key(self):
        config = GlobalConfig.model_validate({"logging": {"path": "/a.log", "logfile": "/b.log"}})
        assert config.logging.path == Path("/a.log")
        assert "logfile" not in config.to_document()["logging"]


class TestCategoryMeta:
    """Tests for category metadata."""

    def test_legacy_empty_values_are_absent(self):
        """Empty strings and port 0 written by older versions load as unset."""
        meta = CategoryMeta.model_validate({
            "emoji": None,
            "default_user": "",
            "default_port": "0",
        })
        assert meta.emoji == ""
        assert meta.default_user is None
        assert meta.default_port is None

    def test_port_string_converted(self):
        """Quoted ports should be converted."""
        meta = CategoryMeta.model_validate({"default_port": "2222"})
        assert meta.default_port == 2222

    def test_port_out_of_range(self):
        """Invalid ports should fail validation."""
        with pytest.raises(PydanticValidationError):
            CategoryMeta.model_validate({"default_port": 70000})

    def test_aliases_ordered_set(self):
        """Aliases should be de-duplicated keeping first occurrence."""
        meta = CategoryMeta.model_validate({"aliases": ["fw", "firewall", "fw", ""]})
        assert meta.aliases == ["fw", "firewall"]

    def test_aliases_from_string(self):
        """A comma-separated string should be accepted."""
        meta = CategoryMeta.model_validate({"aliases": "fw, firewall"})
        assert meta.aliases == ["fw", "firewall"]


class TestHostEntry:
    """Tests for host entries."""

    def test_legacy_ip_key(self):
        """The old ip key should populate address."""
        entry = HostEntry.model_validate({"ip": "10.0.0.1"})
        assert entry.address == "10.0.0.1"

    def test_written_as_address(self):
        """Serialization uses the address key and omits unset fields."""
        table = HostTable.model_validate({"hosts": {"web": {"ip": "10.0.0.1", "port": 0}}})
        assert table.to_document() == {"hosts": {"web": {"address": "10.0.0.1", "aliases": []}}}

    def test_legacy_empty_values(self):
        """Empty strings from older files load as unset."""
        entry = HostEntry.model_validate({
            "ip": "",
            "username": "",
            "port": "",
            "aliases": None,
        })
        assert entry.address is None
        assert entry.username is None
        assert entry.port is None
        assert entry.aliases == []

    def test_legacy_ip_not_kept_beside_address(self):
        """A file holding both keys keeps address and drops ip."""
        entry = HostEntry.model_validate({"address": "10.0.0.1", "ip": "10.0.0.2"})
        assert entry.address == "10.0.0.1"
        assert entry.model_dump(exclude_none=True) == {"address": "10.0.0.1", "aliases": []}

    def test_unknown_keys_kept(self):
        entry = HostEntry.model_validate({"address": "10.0.0.1", "rack": "b4"})
        assert entry.model_dump(exclude_none=True)["rack"] == "b4"


class TestHostTable:
    """Tests for host tables."""

    def test_null_hosts(self):
        """hosts: null should load as an empty table."""
        assert HostTable.model_validate({"hosts": None}).hosts == {}

    def test_order_preserved(self):
        """Hosts keep their file order."""
        table = HostTable.model_validate({"hosts": {"b": {}, "a": {}}})
        assert list(table.hosts) == ["b", "a"]

    def test_empty_host_key_rejected(self):
        """Host keys cannot be empty."""
        with pytest.raises(PydanticValidationError):
            HostTable.model_validate({"hosts": {"": {}}})

    def test_numeric_keys_become_strings(self):
        """YAML integer keys should be read as strings."""
        table = HostTable.model_validate({"hosts": {101: {}}})
        assert list(table.hosts) == ["101"]


class TestNormalizeDocuments:
    """Tests for renaming legacy keys in raw trees."""

    def test_settings_logfile_renamed(self):
        data = {"logging": {"enabled": True, "logfile": "/new.log"}, "enable_welcome": True}
        assert normalize_settings_document(data) == {
            "logging": {"enabled": True, "path": "/new.log"},
            "enable_welcome": True,
        }
        assert data["logging"] == {"enabled": True, "logfile": "/new.log"}

    def test_settings_without_logging_untouched(self):
        data = {"ssh_bin": "/bin/ssh"}
        assert normalize_settings_document(data) is data

    def test_table_ip_renamed_without_defaults(self):
        """Only the key changes; no other fields are filled in."""
        data = {"hosts": {"web": {"ip": "10.0.0.1"}, "db": None}}
        assert normalize_table_document(data) == {
            "hosts": {"web": {"address": "10.0.0.1"}, "db": None},
        }
        assert data["hosts"]["web"] == {"ip": "10.0.0.1"}

    def test_table_address_wins(self):
        data = {"hosts": {"web": {"address": "10.0.0.1", "ip": "10.0.0.2"}}}
        assert normalize_table_document(data)["hosts"]["web"] == {"address": "10.0.0.1"}


class TestEnvironment:
    """Tests for the path environment."""

    def test_derived_paths(self, tmp_path):
        """All paths derive from the config root."""
        env = Environment(config_dir=tmp_path)
        assert env.settings_path == tmp_path / "config.yml"
        assert env.categories_dir == tmp_path / "categories"
        assert env.backup_dir == tmp_path / "backups"
        assert env.lock_path == tmp_path / ".lock"
        assert env.default_log_path == tmp_path / "zap.log"
        assert env.table_path("firewalls") == tmp_path / "categories" / "firewalls.yml"

    def test_environment_variables(self, monkeypatch, tmp_path):
        """ZAP_CONFIG_DIR and ZAP_HOSTS_FILE should be honoured."""
        monkeypatch.setenv("ZAP_CONFIG_DIR", str(tmp_path / "root"))
        monkeypatch.setenv("ZAP_HOSTS_FILE", str(tmp_path / "hosts"))
        env = Environment()
        assert env.config_dir == tmp_path / "root"
        assert env.hosts_file == tmp_path / "hosts"

    def test_default_hosts_file(self, monkeypatch):
        """Without overrides the hosts file is /etc/hosts."""
        monkeypatch.delenv("ZAP_HOSTS_FILE", raising=False)
        assert Environment().hosts_file == DEFAULT_HOSTS_FILE

    def test_default_config_dir(self, monkeypatch, tmp_path):
        """Without overrides the root is ~/.config/zap."""
        monkeypatch.delenv("ZAP_CONFIG_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert Environment().config_dir == tmp_path / ".config" / "zap"

    def test_frozen(self, tmp_path):
        """The environment is immutable."""
        env = Environment(config_dir=tmp_path)
        with pytest.raises(PydanticValidationError):
            env.config_dir = tmp_path / "other"


class TestYamlHelpers:
    """Tests for YAML loading and dumping."""

    def test_dump_keeps_order_and_unicode(self):
        """Keys keep insertion order and unicode is not escaped."""
        text = dump_yaml({"b": 1, "a": "🔥"})
        assert text.index("b:") < text.index("a:")
        assert "🔥" in text

    def test_load_empty_file(self, tmp_path):
        """An empty file is an empty mapping."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_document(path) == {}

    def test_load_invalid_yaml(self, tmp_path):
        """Broken YAML should raise CorruptConfig."""
        path = tmp_path / "bad.yml"
        path.write_text("hosts: [unclosed\n")
        with pytest.raises(CorruptConfig) as exc:
            load_document(path)
        assert exc.value.exit_code == 2

    def test_load_non_mapping(self, tmp_path):
        """A top-level list should raise CorruptConfig."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(CorruptConfig) as exc:
            load_document(path)
        assert "mapping" in str(exc.value)

    def test_parse_global_config_invalid(self, tmp_path):
        """Validation errors become CorruptConfig with details."""
        source = tmp_path / "config.yml"
        with pytest.raises(CorruptConfig) as exc:
            parse_global_config({"backup_retention_days": -3}, source)
        assert any("backup_retention_days" in detail for detail in exc.value.details)

    def test_parse_host_table_invalid(self, tmp_path):
        """A bad port in a table becomes CorruptConfig."""
        source = tmp_path / "lab.yml"
        with pytest.raises(CorruptConfig):
            parse_host_table({"hosts": {"web": {"port": "ssh"}}}, source)
