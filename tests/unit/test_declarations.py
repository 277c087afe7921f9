"""Unit tests for the per-concern declaration values."""
import pytest

from recordconcerns.concerns import Direction, HashidConfig, SortConfig
from recordconcerns.concerns.sortable import _direction, _parse_field_config
from recordconcerns.core.errors import ConfigurationError, ErrorCode
from tests.models import Category, Lane, Page


# ─── Sortable ─────────────────────────────────────────────────────────────────

def test_plain_field_is_ascending():
    assert _parse_field_config("rank") == ("rank", "asc")


def test_field_direction_pair():
    assert _parse_field_config({"priority": "DESC"}) == ("priority", "desc")


def test_empty_mapping_rejected():
    with pytest.raises(ConfigurationError) as excinfo:
        _parse_field_config({})
    assert excinfo.value.code is ErrorCode.CONFIG_INVALID_OPTION


@pytest.mark.parametrize("token,expected", [
    ("asc", Direction.ASC),
    ("desc", Direction.DESC),
    ("upwards", Direction.ASC),
])
def test_direction_tokens(token, expected):
    assert _direction(token) is expected


def test_order_clause_direction():
    asc = SortConfig(field="position").order_clause(Lane)
    desc = SortConfig(field="position", direction=Direction.DESC).order_clause(Lane)
    assert str(asc).endswith("ASC")
    assert str(desc).endswith("DESC")


# ─── Hashids ──────────────────────────────────────────────────────────────────

def test_encoder_respects_min_length():
    encoder = HashidConfig(field="id", hashid_field="hashid", salt="s", min_length=12).encoder()
    value = encoder.encode(42)
    assert len(value) >= 12
    assert encoder.decode(value) == (42,)


# ─── Slugs ────────────────────────────────────────────────────────────────────

def test_undeclared_slug_defaults():
    config = Category.slug_config()
    assert (config.field, config.slug_field) == ("name", "slug")


def test_normalize_slug_transliterates():
    assert Page().normalize_slug("Crème Brûlée  Recipes!") == "creme-brulee-recipes"


def test_normalize_slug_uses_separator(monkeypatch):
    monkeypatch.setenv("RECORDCONCERNS_SLUG_SEPARATOR", "_")
    assert Page().normalize_slug("Hello World") == "hello_world"


def test_normalize_slug_falls_back_to_class_name():
    assert Page().normalize_slug("!!!") == "page"
