"""Entity families known to storesync and their natural keys."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from storesync.errors import EntityValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

type EntitySnapshot = Mapping[str, object]


class EntityType(StrEnum):
    """Entity families, declared in deployment (dependency) order."""

    CHANNELS = "channels"
    WAREHOUSES = "warehouses"
    ATTRIBUTES = "attributes"
    PRODUCT_TYPES = "productTypes"
    CATEGORIES = "categories"
    PRODUCTS = "products"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EntityType.CHANNELS: "Channels",
    EntityType.WAREHOUSES: "Warehouses",
    EntityType.ATTRIBUTES: "Attributes",
    EntityType.PRODUCT_TYPES: "Product Types",
    EntityType.CATEGORIES: "Categories",
    EntityType.PRODUCTS: "Products",
}

DEPLOYMENT_ORDER: tuple[EntityType, ...] = tuple(EntityType)


@dataclass(frozen=True, slots=True)
class EntityFamily:
    entity_type: EntityType
    key_field: str
    required_fields: tuple[str, ...] = ()
    # compared without regard to case, as dotted paths
    case_insensitive_fields: frozenset[str] = frozenset()

    def key_of(self, entity: EntitySnapshot) -> str:
        value = entity.get(self.key_field)
        if not isinstance(value, str) or not value.strip():
            raise EntityValidationError(
                f"{self.entity_type.label} entity must have a valid {self.key_field}",
                field=self.key_field,
            )
        return value

    def display_name(self, entity: EntitySnapshot) -> str:
        name = entity.get("name")
        if isinstance(name, str) and name.strip():
            return name
        return self.key_of(entity)

    def validate(self, entity: EntitySnapshot) -> None:
        """Pre-flight check run before any network call for ``entity``."""

        self.key_of(entity)
        for field_name in self.required_fields:
            value = entity.get(field_name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise EntityValidationError(
                    f"{self.entity_type.label} {field_name} is required",
                    field=field_name,
                )


FAMILIES: dict[EntityType, EntityFamily] = {
    EntityType.CHANNELS: EntityFamily(
        EntityType.CHANNELS,
        key_field="slug",
        required_fields=("name", "currencyCode", "defaultCountry"),
    ),
    EntityType.WAREHOUSES: EntityFamily(
        EntityType.WAREHOUSES,
        key_field="slug",
        required_fields=("name",),
        case_insensitive_fields=frozenset({"address.city"}),
    ),
    EntityType.ATTRIBUTES: EntityFamily(
        EntityType.ATTRIBUTES,
        key_field="name",
        required_fields=("inputType",),
    ),
    EntityType.PRODUCT_TYPES: EntityFamily(EntityType.PRODUCT_TYPES, key_field="name"),
    EntityType.CATEGORIES: EntityFamily(
        EntityType.CATEGORIES,
        key_field="slug",
        required_fields=("name",),
    ),
    EntityType.PRODUCTS: EntityFamily(
        EntityType.PRODUCTS,
        key_field="slug",
        required_fields=("name", "productType"),
    ),
}


def family_for(entity_type: EntityType) -> EntityFamily:
    return FAMILIES[entity_type]


def _normalise_type_name(value: str) -> str:
    return value.replace("-", "").replace("_", "").replace(" ", "").lower()


_TYPES_BY_NAME = {
    _normalise_type_name(entity_type.value): entity_type for entity_type in EntityType
}


def parse_entity_type(name: str) -> EntityType:
    """Accept ``productTypes``, ``product-types`` or ``product_types`` alike."""

    try:
        return _TYPES_BY_NAME[_normalise_type_name(name)]
    except KeyError:
        known = ", ".join(entity_type.value for entity_type in EntityType)
        raise ValueError(f"Unknown entity type {name!r} (expected one of: {known})") from None


def select_entity_types(
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
) -> tuple[EntityType, ...]:
    """Resolve include/exclude filters into entity types in deployment order."""

    included = {parse_entity_type(name) for name in include or ()}
    excluded = {parse_entity_type(name) for name in exclude or ()}
    return tuple(
        entity_type
        for entity_type in DEPLOYMENT_ORDER
        if (not included or entity_type in included) and entity_type not in excluded
    )


def ensure_unique_keys(family: EntityFamily, entities: Iterable[EntitySnapshot]) -> None:
    """Reject a batch whose natural keys repeat, before any network call."""

    counts = Counter(family.key_of(entity) for entity in entities)
    duplicates = [key for key, count in counts.items() if count > 1]
    if duplicates:
        raise EntityValidationError(
            f"Duplicate entity identifiers found in {family.entity_type}: "
            + ", ".join(duplicates),
            field=family.key_field,
        )
