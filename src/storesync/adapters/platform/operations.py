"""GraphQL documents for every entity family, built from a small description."""

from __future__ import annotations

from dataclasses import dataclass

from storesync.domain.entities import EntityType

_MUTATION_ERRORS = "errors { field message code }"
_PAGE_INFO = "pageInfo { hasNextPage endCursor }"


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityOperations:
    entity_type: EntityType
    fields: str
    list_root: str
    create_root: str
    update_root: str
    delete_root: str
    # field of the mutation payload holding the entity
    result_field: str
    create_input_type: str
    update_input_type: str
    paginated: bool = True
    # root query that fetches one entity by slug; families without one are
    # looked up through the list query
    lookup_root: str | None = None

    @property
    def list_query(self) -> str:
        if not self.paginated:
            return f"query List {{ {self.list_root} {{ {self.fields} }} }}"
        return (
            "query List($first: Int!, $after: String) { "
            f"{self.list_root}(first: $first, after: $after) {{ "
            f"edges {{ node {{ {self.fields} }} }} {_PAGE_INFO} }} }}"
        )

    @property
    def search_query(self) -> str:
        return (
            "query Search($first: Int!, $search: String!) { "
            f"{self.list_root}(first: $first, filter: {{ search: $search }}) {{ "
            f"edges {{ node {{ {self.fields} }} }} {_PAGE_INFO} }} }}"
        )

    @property
    def lookup_query(self) -> str | None:
        if self.lookup_root is None:
            return None
        return (
            "query Lookup($slug: String!) { "
            f"{self.lookup_root}(slug: $slug) {{ {self.fields} }} }}"
        )

    @property
    def create_mutation(self) -> str:
        return (
            f"mutation Create($input: {self.create_input_type}!) {{ "
            f"{self.create_root}(input: $input) {{ "
            f"{self.result_field} {{ {self.fields} }} {_MUTATION_ERRORS} }} }}"
        )

    @property
    def update_mutation(self) -> str:
        return (
            f"mutation Update($id: ID!, $input: {self.update_input_type}!) {{ "
            f"{self.update_root}(id: $id, input: $input) {{ "
            f"{self.result_field} {{ {self.fields} }} {_MUTATION_ERRORS} }} }}"
        )

    @property
    def delete_mutation(self) -> str:
        return (
            "mutation Delete($id: ID!) { "
            f"{self.delete_root}(id: $id) {{ {_MUTATION_ERRORS} }} }}"
        )


OPERATIONS: dict[EntityType, EntityOperations] = {
    EntityType.CHANNELS: EntityOperations(
        entity_type=EntityType.CHANNELS,
        fields=(
            "id name slug currencyCode defaultCountry { code } isActive "
            "stockSettings { allocationStrategy }"
        ),
        list_root="channels",
        paginated=False,
        lookup_root="channel",
        create_root="channelCreate",
        update_root="channelUpdate",
        delete_root="channelDelete",
        result_field="channel",
        create_input_type="ChannelCreateInput",
        update_input_type="ChannelUpdateInput",
    ),
    EntityType.WAREHOUSES: EntityOperations(
        entity_type=EntityType.WAREHOUSES,
        fields=(
            "id name slug email isPrivate clickAndCollectOption "
            "address { streetAddress1 city postalCode country { code } }"
        ),
        list_root="warehouses",
        create_root="createWarehouse",
        update_root="updateWarehouse",
        delete_root="deleteWarehouse",
        result_field="warehouse",
        create_input_type="WarehouseCreateInput",
        update_input_type="WarehouseUpdateInput",
    ),
    EntityType.ATTRIBUTES: EntityOperations(
        entity_type=EntityType.ATTRIBUTES,
        fields="id name slug type inputType entityType",
        list_root="attributes",
        create_root="attributeCreate",
        update_root="attributeUpdate",
        delete_root="attributeDelete",
        result_field="attribute",
        create_input_type="AttributeCreateInput",
        update_input_type="AttributeUpdateInput",
    ),
    EntityType.PRODUCT_TYPES: EntityOperations(
        entity_type=EntityType.PRODUCT_TYPES,
        fields="id name slug isShippingRequired kind",
        list_root="productTypes",
        create_root="productTypeCreate",
        update_root="productTypeUpdate",
        delete_root="productTypeDelete",
        result_field="productType",
        create_input_type="ProductTypeInput",
        update_input_type="ProductTypeInput",
    ),
    EntityType.CATEGORIES: EntityOperations(
        entity_type=EntityType.CATEGORIES,
        fields="id name slug description parent { slug }",
        list_root="categories",
        lookup_root="category",
        create_root="categoryCreate",
        update_root="categoryUpdate",
        delete_root="categoryDelete",
        result_field="category",
        create_input_type="CategoryInput",
        update_input_type="CategoryInput",
    ),
    EntityType.PRODUCTS: EntityOperations(
        entity_type=EntityType.PRODUCTS,
        fields="id name slug description productType { name } category { slug }",
        list_root="products",
        lookup_root="product",
        create_root="productCreate",
        update_root="productUpdate",
        delete_root="productDelete",
        result_field="product",
        create_input_type="ProductCreateInput",
        update_input_type="ProductInput",
    ),
}


def operations_for(entity_type: EntityType) -> EntityOperations:
    return OPERATIONS[entity_type]
