import pytest

from resourcegraph import (
    AttributeSpec,
    CapabilityRegistry,
    FilterSpec,
    ResourceType,
    SchemaConfigError,
    belongs_to,
    has_many,
)
from resourcegraph.core.utils import pluralize, singularize, to_camel_case, to_snake_case


def test_build_resolves_every_type_and_variant(registry):
    snapshot = registry.build()

    assert "Employee" in snapshot.types
    assert {"Visa", "GoldVisa", "Mastercard"} <= set(snapshot.types)
    assert snapshot.get("Visa").parent == "CreditCard"
    assert [v.name for v in snapshot.variants_of(snapshot.get("CreditCard"))] == ["Visa", "GoldVisa", "Mastercard"]


def test_discriminant_defaults_to_snake_plural(registry):
    snapshot = registry.build()

    assert snapshot.get("CreditCard").type == "credit_cards"
    assert snapshot.get("GoldVisa").type == "gold_visas"
    assert snapshot.get("Mastercard").type == "mastercards"


def test_implicit_id_attribute(registry):
    employee = registry.build().get("Employee")

    assert employee.attributes[0].name == "id"
    assert employee.attributes[0].kind == "integer_id"


def test_graphql_names_are_camelized(registry):
    employee = registry.build().get("Employee")

    assert employee.attribute("firstName").name == "first_name"
    assert employee.relationship("creditCards").name == "credit_cards"


def test_camelize_disabled_keeps_names():
    snapshot = CapabilityRegistry([ResourceType("Book", attributes=[AttributeSpec("page_count", kind="integer")])], camelize=False).build()

    assert snapshot.get("Book").attribute("page_count") is not None


def test_derived_filters_and_sorts(registry):
    employee = registry.build().get("Employee")

    assert employee.filter("firstName").operators[:3] == ("eq", "not_eq", "eql")
    assert employee.filter("lastName").operators == ("prefix",)
    assert employee.filter("age").operators == ("eq", "not_eq", "gt", "gte", "lt", "lte")
    assert employee.filter("id").operators == ("eq", "not_eq")
    assert employee.sort("firstName") is not None


def test_variants_inherit_and_override(registry):
    snapshot = registry.build()
    visa = snapshot.get("Visa")

    assert visa.attribute("number") is not None
    assert visa.relationship("transactions") is not None
    assert visa.relationship("visaRewards") is not None
    assert snapshot.get("Mastercard").relationship("visaRewards") is None
    assert visa.attribute_named("description").getter({}) == "visa description"


def test_inherited_relationship_keeps_parent_link(registry):
    visa = registry.build().get("Visa")

    assert visa.relationship("transactions").link.child_field == "credit_card_id"


def test_default_links(registry):
    snapshot = registry.build()

    assert snapshot.get("Employee").relationship("positions").link.child_field == "employee_id"
    assert snapshot.get("Position").relationship("department").link.parent_field == "department_id"

    notable = snapshot.get("Note").relationship("notable").link
    assert (notable.parent_field, notable.parent_type_field) == ("notable_id", "notable_type")

    notes = snapshot.get("Team").relationship("notes").link
    assert (notes.child_field, notes.child_type_field, notes.child_type_value) == ("notable_id", "notable_type", "teams")


def test_variants_are_not_exposed_without_entrypoint(registry):
    roots = {t.name for t in registry.build().roots()}

    assert "CreditCard" in roots
    assert "Visa" not in roots


def test_duplicate_type_name():
    registry = CapabilityRegistry([ResourceType("Book"), ResourceType("Book")])

    with pytest.raises(SchemaConfigError, match="Duplicate"):
        registry.build()


def test_duplicate_discriminant():
    registry = CapabilityRegistry([ResourceType("Book"), ResourceType("Volume", type="books")])

    with pytest.raises(SchemaConfigError, match="share discriminant"):
        registry.build()


def test_unknown_relationship_target():
    registry = CapabilityRegistry([ResourceType("Book", relationships=[belongs_to("author", "Author")])])

    with pytest.raises(SchemaConfigError, match="unknown type 'Author'"):
        registry.build()


def test_reserved_attribute_name():
    registry = CapabilityRegistry([ResourceType("Book", attributes=[AttributeSpec("_type")])])

    with pytest.raises(SchemaConfigError, match="reserved"):
        registry.build()


def test_unknown_kind():
    registry = CapabilityRegistry([ResourceType("Book", attributes=[AttributeSpec("title", kind="blob")])])

    with pytest.raises(SchemaConfigError, match="Unknown attribute kind"):
        registry.build()


def test_nested_variants_rejected():
    inner = ResourceType("Paperback", variants=[ResourceType("PocketBook")])
    registry = CapabilityRegistry([ResourceType("Book", variants=[inner])])

    with pytest.raises(SchemaConfigError, match="cannot declare variants"):
        registry.build()


def test_explicit_filter_without_attribute_has_no_kind():
    snapshot = CapabilityRegistry([ResourceType("Book", filters=[FilterSpec("missing")])]).build()

    assert snapshot.get("Book").filter("missing").kind is None


def test_snapshot_dump(registry):
    dump = registry.build().to_dict()
    employee = dump["types"]["Employee"]

    assert employee["entrypoints"] == ["employees", "employee"]
    assert employee["attributes"]["salary"]["readable"] == "dynamic"
    assert employee["attributes"]["ssn"]["readable"] is False
    assert employee["relationships"]["positions"] == {"cardinality": "many", "targets": ["Position"], "readable": True}


def test_each_build_gets_a_new_version(registry):
    assert registry.build().version < registry.build().version


def test_register_keeps_order():
    registry = CapabilityRegistry()
    registry.register(ResourceType("Author", relationships=[has_many("books", "Book")]))
    registry.register(ResourceType("Book"))

    assert [r.name for r in registry.resources] == ["Author", "Book"]


@pytest.mark.parametrize(
    "word, plural",
    [("employee", "employees"), ("company", "companies"), ("address", "addresses"), ("key", "keys")],
)
def test_inflection(word, plural):
    assert pluralize(word) == plural
    assert singularize(plural) == word


def test_case_conversion():
    assert to_snake_case("GoldVisa") == "gold_visa"
    assert to_snake_case("notEq") == "not_eq"
    assert to_camel_case("first_name") == "firstName"
    assert to_camel_case("_type") == "_type"
