"""Read the desired-state YAML document."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storesync.config.errors import ConfigurationFileError
from storesync.domain.entities import EntityType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from storesync.domain.entities import EntitySnapshot

type EntityList = list[dict[str, object]]


class DesiredState(BaseModel):
    """One list of entity mappings per section; unknown sections are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    channels: EntityList = Field(default_factory=list)
    warehouses: EntityList = Field(default_factory=list)
    attributes: EntityList = Field(default_factory=list)
    product_types: EntityList = Field(default_factory=list, alias="productTypes")
    categories: EntityList = Field(default_factory=list)
    products: EntityList = Field(default_factory=list)

    def declared_types(self) -> frozenset[EntityType]:
        """Sections present in the document, even when empty.

        Sections left out are not managed, so they never produce deletions.
        """

        declared = {_FIELD_TYPES[name] for name in self.model_fields_set if name in _FIELD_TYPES}
        return frozenset(declared)

    def entities(self, entity_type: EntityType) -> list[EntitySnapshot]:
        return list(self._sections()[entity_type])

    def collections(
        self, entity_types: Iterable[EntityType] | None = None
    ) -> dict[EntityType, list[EntitySnapshot]]:
        sections = self._sections()
        selected = tuple(entity_types) if entity_types is not None else tuple(EntityType)
        return {entity_type: list(sections[entity_type]) for entity_type in selected}

    def _sections(self) -> dict[EntityType, EntityList]:
        return {entity_type: getattr(self, name) for name, entity_type in _FIELD_TYPES.items()}


_FIELD_TYPES = {
    "channels": EntityType.CHANNELS,
    "warehouses": EntityType.WAREHOUSES,
    "attributes": EntityType.ATTRIBUTES,
    "product_types": EntityType.PRODUCT_TYPES,
    "categories": EntityType.CATEGORIES,
    "products": EntityType.PRODUCTS,
}


def parse_desired_state(data: object, *, source: str = "<memory>") -> DesiredState:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationFileError(f"{source}: top level must be a mapping of sections")
    try:
        return DesiredState.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationFileError(f"{source}: invalid configuration\n{exc}") from exc


def load_desired_state(path: Path | str) -> DesiredState:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationFileError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationFileError(f"{config_path}: invalid YAML: {exc}") from exc

    return parse_desired_state(data, source=str(config_path))
