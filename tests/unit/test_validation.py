"""Unit tests for the validation module."""

import pytest

from zap.core.validation import (
    MAX_KEY_LENGTH,
    normalize_aliases,
    parse_alias_list,
    parse_port,
    validate_key,
    validate_port,
)
from zap.core.exceptions import ValidationError


class TestValidateKey:
    """Tests for category and host key validation."""

    def test_valid_keys(self):
        """Ordinary names should pass unchanged."""
        assert validate_key("firewalls") == "firewalls"
        assert validate_key("paris-fw-1", "host") == "paris-fw-1"
        assert validate_key("db_01.prod") == "db_01.prod"
        assert validate_key("Lab") == "Lab"

    def test_empty_key(self):
        """Empty keys should fail."""
        with pytest.raises(ValidationError) as exc:
            validate_key("")
        assert "cannot be empty" in str(exc.value)

    def test_key_type_in_message(self):
        """The key type should appear in the message."""
        with pytest.raises(ValidationError) as exc:
            validate_key("", "host")
        assert "Host" in str(exc.value)

    def test_too_long_key(self):
        """Keys over the maximum length should fail."""
        with pytest.raises(ValidationError) as exc:
            validate_key("a" * (MAX_KEY_LENGTH + 1))
        assert "maximum length" in str(exc.value)

    def test_max_length_key(self):
        """Keys at the maximum length should pass."""
        key = "a" * MAX_KEY_LENGTH
        assert validate_key(key) == key

    def test_path_separators_rejected(self):
        """Keys are file names, so separators must fail."""
        for key in ["a/b", "a\\b", "../etc"]:
            with pytest.raises(ValidationError):
                validate_key(key)

    def test_whitespace_rejected(self):
        """Keys with whitespace should fail."""
        for key in ["my servers", "tab\tkey", " lead"]:
            with pytest.raises(ValidationError):
                validate_key(key)

    def test_leading_dot_rejected(self):
        """Hidden-file names should fail."""
        with pytest.raises(ValidationError):
            validate_key(".hidden")
        with pytest.raises(ValidationError):
            validate_key("..")

    def test_reserved_category_key(self):
        """A category table named config.yml would clash with the settings backups."""
        with pytest.raises(ValidationError) as exc:
            validate_key("config", "category")
        assert "reserved" in str(exc.value)
        assert exc.value.exit_code == 3

    def test_reserved_key_allowed_for_hosts(self):
        assert validate_key("config", "host") == "config"
        assert validate_key("configs", "category") == "configs"


class TestValidatePort:
    """Tests for port validation."""

    def test_valid_ports(self):
        """Ports in range should pass."""
        assert validate_port(1) == 1
        assert validate_port(22) == 22
        assert validate_port(65535) == 65535

    def test_out_of_range(self):
        """Ports outside 1-65535 should fail."""
        for port in [0, -1, 65536]:
            with pytest.raises(ValidationError):
                validate_port(port)


class TestParsePort:
    """Tests for user/legacy port parsing."""

    def test_absent_values(self):
        """None, blanks and 0 mean "not set"."""
        assert parse_port(None) is None
        assert parse_port("") is None
        assert parse_port("   ") is None
        assert parse_port(0) is None
        assert parse_port("0") is None

    def test_numeric_strings(self):
        """Digit strings should be converted."""
        assert parse_port("2222") == 2222
        assert parse_port(" 22 ") == 22

    def test_ints(self):
        """Ints should be validated and returned."""
        assert parse_port(443) == 443

    def test_not_a_number(self):
        """Non-numeric input should fail."""
        with pytest.raises(ValidationError) as exc:
            parse_port("ssh")
        assert "Invalid port" in str(exc.value)

    def test_out_of_range(self):
        """Numbers out of range should fail."""
        with pytest.raises(ValidationError):
            parse_port("70000")


class TestAliases:
    """Tests for alias normalization."""

    def test_normalize_keeps_first_occurrence(self):
        """Duplicates should be dropped, keeping order."""
        assert normalize_aliases(["fw", "firewall", "fw"]) == ["fw", "firewall"]

    def test_normalize_strips_and_drops_blanks(self):
        """Whitespace is stripped and blanks removed."""
        assert normalize_aliases([" fw ", "", "  "]) == ["fw"]

    def test_normalize_none(self):
        """None should give an empty list."""
        assert normalize_aliases(None) == []

    def test_parse_alias_list(self):
        """Comma-separated input as typed at a prompt."""
        assert parse_alias_list(" fw, firewall ,,fw") == ["fw", "firewall"]

    def test_parse_alias_list_empty(self):
        """Empty input gives no aliases."""
        assert parse_alias_list("") == []
        assert parse_alias_list(None) == []
