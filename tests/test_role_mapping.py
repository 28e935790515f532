"""Tests for the role mapping parser."""

from unittest.mock import MagicMock

import pytest

from idbridge.core.errors import MappingParseError
from idbridge.identity import mapping
from idbridge.identity.mapping import load_role_mapping, parse_role_mapping


@pytest.fixture
def log(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(mapping, "logger", fake)
    return fake


def test_valid_mapping():
    assert parse_role_mapping('{"opsAdmin": "admin", "opsViewer": "viewer"}') == {
        "opsAdmin": "admin",
        "opsViewer": "viewer",
    }


@pytest.mark.parametrize("text", [None, "", "   ", "{}"])
def test_empty_input_is_no_mapping(text, log):
    assert parse_role_mapping(text) == {}
    log.warning.assert_not_called()


def test_malformed_json_yields_empty_mapping(log):
    result = parse_role_mapping(
        "{not valid json", provider="postgres", config_key="postgres_auth_role_mapping"
    )
    assert result == {}
    log.warning.assert_called_once()
    kwargs = log.warning.call_args.kwargs
    assert kwargs["provider"] == "postgres"
    assert kwargs["config_key"] == "postgres_auth_role_mapping"


@pytest.mark.parametrize("text", ['["admin"]', '"admin"', "42", '{"opsAdmin": 1}', '{"a": "b", "c": null}'])
def test_wrong_shape_yields_empty_mapping(text, log):
    assert parse_role_mapping(text, provider="xsuaa") == {}
    log.warning.assert_called_once()


def test_strict_loader_raises():
    with pytest.raises(MappingParseError, match="invalid JSON"):
        load_role_mapping("{not valid json")
    with pytest.raises(MappingParseError, match="JSON object"):
        load_role_mapping("[]")
    with pytest.raises(MappingParseError, match="'opsAdmin'"):
        load_role_mapping('{"opsAdmin": ["admin"]}')
