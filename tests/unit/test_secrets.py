"""Tests for secret data helpers."""

from __future__ import annotations

import base64

import pytest

from pagerduty_operator.utils.secrets import encode_secret_data, find_secret_value, get_secret_value


class TestEncodeSecretData:
    """Test cases for encode_secret_data."""

    def test_encodes_values(self):
        """Test that values are base64-encoded."""
        assert encode_secret_data({"PAGERDUTY_KEY": "abc"}) == {"PAGERDUTY_KEY": "YWJj"}


class TestGetSecretValue:
    """Test cases for get_secret_value."""

    def test_data(self):
        """Test reading base64 data."""
        secret = {"metadata": {"name": "s"}, "data": {"k": base64.b64encode(b"value").decode()}}
        assert get_secret_value(secret, "k") == "value"

    def test_string_data_wins(self):
        """Test that stringData is read before data."""
        secret = {"stringData": {"k": "plain"}, "data": {"k": base64.b64encode(b"other").decode()}}
        assert get_secret_value(secret, "k") == "plain"

    def test_missing_key(self):
        """Test error message for a missing key."""
        with pytest.raises(ValueError, match="Key 'k' not found in secret 's'"):
            get_secret_value({"metadata": {"name": "s"}, "data": {}}, "k")

    def test_invalid_base64(self):
        """Test error message for undecodable data."""
        with pytest.raises(ValueError, match="not valid base64"):
            get_secret_value({"metadata": {"name": "s"}, "data": {"k": "!!!"}}, "k")


class TestFindSecretValue:
    """Test cases for find_secret_value."""

    def test_missing_secret(self):
        """Test that a missing secret yields None."""
        assert find_secret_value(None, "k") is None

    def test_missing_key(self):
        """Test that a missing key yields None."""
        assert find_secret_value({"data": {}}, "k") is None

    def test_empty_value(self):
        """Test that an empty value yields None."""
        assert find_secret_value({"stringData": {"k": ""}}, "k") is None

    def test_found(self):
        """Test that a present value is returned."""
        assert find_secret_value({"data": encode_secret_data({"k": "v"})}, "k") == "v"
