from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from storesync.adapters.config_file import load_desired_state, parse_desired_state
from storesync.config.errors import ConfigurationFileError
from storesync.domain.entities import EntityType

if TYPE_CHECKING:
    from pathlib import Path

CONFIG = """\
channels:
  - slug: web
    name: Web
    currencyCode: EUR
    defaultCountry: DE
productTypes:
  - name: Shirt
categories: []
"""


def test_load_desired_state(tmp_path: Path) -> None:
    path = tmp_path / "store.yml"
    path.write_text(CONFIG, encoding="utf-8")

    state = load_desired_state(path)

    assert state.declared_types() == {
        EntityType.CHANNELS,
        EntityType.PRODUCT_TYPES,
        EntityType.CATEGORIES,
    }
    assert state.entities(EntityType.PRODUCT_TYPES) == [{"name": "Shirt"}]
    assert state.entities(EntityType.PRODUCTS) == []


def test_collections_follow_requested_types() -> None:
    state = parse_desired_state({"categories": [{"slug": "shoes", "name": "Shoes"}]})

    collections = state.collections([EntityType.CATEGORIES, EntityType.PRODUCTS])

    assert collections == {
        EntityType.CATEGORIES: [{"slug": "shoes", "name": "Shoes"}],
        EntityType.PRODUCTS: [],
    }


def test_empty_document_manages_nothing() -> None:
    assert parse_desired_state(None).declared_types() == frozenset()


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationFileError, match="Configuration file not found"):
        load_desired_state(tmp_path / "missing.yml")


def test_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "broken.yml"
    path.write_text("channels: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationFileError, match="invalid YAML"):
        load_desired_state(path)


@pytest.mark.parametrize(
    ("data", "message"),
    [
        (["channels"], "top level must be a mapping"),
        ({"shippingZones": []}, "invalid configuration"),
        ({"channels": {"slug": "web"}}, "invalid configuration"),
    ],
)
def test_invalid_documents(data: object, message: str) -> None:
    with pytest.raises(ConfigurationFileError, match=message):
        parse_desired_state(data, source="store.yml")
