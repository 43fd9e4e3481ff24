import pytest
from graphql import GraphQLInterfaceType, GraphQLNonNull, GraphQLObjectType, get_named_type

from resourcegraph import (
    AttributeSpec,
    CapabilityRegistry,
    FilterSpec,
    ResourceType,
    SchemaBuilder,
    SchemaConfigError,
    SchemaHolder,
    has_many,
)
from resourcegraph.core.types import register_kind, unregister_kind


def test_root_fields(descriptor):
    query = descriptor.schema.query_type.fields

    assert "employees" in query
    assert "employee" in query
    assert "creditCards" in query
    assert "visas" not in query
    assert list(query["employee"].args) == ["id"]
    assert set(query["employees"].args) == {"filter", "sort", "page"}
    assert descriptor.root_field("employee").single is True
    assert descriptor.root_field("employees").resource == "Employee"


def test_unreadable_attribute_is_absent(descriptor):
    employee = descriptor.schema.get_type("Employee")

    assert "ssn" not in employee.fields
    assert "salary" in employee.fields
    assert "_type" in employee.fields
    assert isinstance(employee.fields["id"].type, GraphQLNonNull)


def test_polymorphic_resource_is_an_interface(descriptor):
    schema = descriptor.schema
    credit_card = schema.get_type("CreditCard")
    visa = schema.get_type("Visa")

    assert isinstance(credit_card, GraphQLInterfaceType)
    assert isinstance(visa, GraphQLObjectType)
    assert credit_card in visa.interfaces
    assert "visaRewards" in visa.fields
    assert "visaRewards" not in credit_card.fields
    assert {t.name for t in schema.get_possible_types(credit_card)} == {"Visa", "GoldVisa", "Mastercard"}


def test_polymorphic_relationship_interface(descriptor):
    schema = descriptor.schema
    notable = schema.get_type("NoteNotable")

    assert isinstance(notable, GraphQLInterfaceType)
    assert set(notable.fields) == {"id", "_type"}
    assert get_named_type(schema.get_type("Note").fields["notable"].type) is notable
    assert {t.name for t in schema.get_possible_types(notable)} == {"Employee", "Team"}


def test_polymorphic_relationship_takes_no_arguments(descriptor):
    note = descriptor.schema.get_type("Note")

    assert note.fields["notable"].args == {}
    assert set(note.fields["edits"].args) == {"filter", "sort", "page"}


def test_many_relationships_are_non_null_lists(descriptor):
    positions = descriptor.schema.get_type("Employee").fields["positions"]

    assert str(positions.type) == "[Position!]!"
    assert str(descriptor.schema.get_type("Position").fields["department"].type) == "Department"


def test_filter_inputs_only_carry_declared_operators(descriptor):
    schema = descriptor.schema

    assert set(schema.get_type("EmployeeFilterLastName").fields) == {"prefix"}
    assert set(schema.get_type("EmployeeFilterId").fields) == {"eq", "notEq"}
    assert "notPrefix" in schema.get_type("EmployeeFilterFirstName").fields
    assert str(schema.get_type("EmployeeFilterAge").fields["gte"].type) == "Int"


def test_sort_input(descriptor):
    schema = descriptor.schema
    sort = schema.get_type("EmployeeSort")

    assert str(sort.fields["att"].type) == "EmployeeSortAtt!"
    assert str(sort.fields["dir"].type) == "SortDir!"
    assert "firstName" in schema.get_type("EmployeeSortAtt").values
    assert str(schema.query_type.fields["employees"].args["sort"].type) == "[EmployeeSort!]"


def test_sdl_contains_generated_types(descriptor):
    sdl = descriptor.sdl()

    assert "interface CreditCard" in sdl
    assert "type Visa implements CreditCard" in sdl
    assert "input Page" in sdl


def test_custom_entrypoint():
    registry = CapabilityRegistry([ResourceType("Employee", entrypoint="exemplaryEmployees")])
    query = SchemaBuilder().build(registry).schema.query_type.fields

    assert set(query) == {"exemplaryEmployees", "exemplaryEmployee"}


def test_entrypoint_selection(registry):
    descriptor = SchemaBuilder().build(registry, entrypoints=["Employee", "creditCards"])

    assert set(descriptor.root_fields) == {"employees", "employee", "creditCards", "creditCard"}
    # Unexposed types are still reachable through relationships
    assert descriptor.schema.get_type("Position") is not None


def test_entrypoint_collision():
    registry = CapabilityRegistry([
        ResourceType("Writer", entrypoint="people"),
        ResourceType("Reader", entrypoint="people"),
    ])

    with pytest.raises(SchemaConfigError, match="collides"):
        SchemaBuilder().build(registry)


def test_filter_on_unknown_attribute():
    registry = CapabilityRegistry([ResourceType("Book", filters=[FilterSpec("missing")])])

    with pytest.raises(SchemaConfigError, match="unknown attribute 'missing'"):
        SchemaBuilder().build(registry)


def test_standalone_filter_with_kind():
    registry = CapabilityRegistry([ResourceType("Book", filters=[FilterSpec("published_after", kind="date")])])
    schema = SchemaBuilder().build(registry).schema

    assert str(schema.get_type("BookFilterPublishedAfter").fields["gt"].type) == "Date"


def test_empty_query_type():
    registry = CapabilityRegistry([ResourceType("Book", exposed=False)])

    with pytest.raises(SchemaConfigError, match="Query type would be empty"):
        SchemaBuilder().build(registry)


def test_required_filter_is_non_null():
    registry = CapabilityRegistry([
        ResourceType("Book", attributes=[AttributeSpec("title")], filters=[FilterSpec("title", required=True)]),
    ])
    schema = SchemaBuilder().build(registry).schema

    assert str(schema.query_type.fields["books"].args["filter"].type) == "BookFilter!"
    assert str(schema.get_type("BookFilter").fields["title"].type) == "BookFilterTitle!"


def test_statically_denied_capabilities_are_omitted():
    registry = CapabilityRegistry([
        ResourceType(
            "Book",
            attributes=[
                AttributeSpec("title", filterable=False, sortable=False),
                AttributeSpec("isbn"),
            ],
            relationships=[has_many("chapters", "Chapter", readable=False)],
        ),
        ResourceType("Chapter"),
    ])
    schema = SchemaBuilder().build(registry).schema
    book = schema.get_type("Book")

    assert "chapters" not in book.fields
    assert "title" not in schema.get_type("BookFilter").fields
    assert "title" not in schema.get_type("BookSortAtt").values
    assert "isbn" in schema.get_type("BookFilter").fields


def test_custom_kind_maps_through_canonical():
    register_kind("money", "big_decimal")
    try:
        registry = CapabilityRegistry([ResourceType("Invoice", attributes=[AttributeSpec("total", kind="money")])])
        schema = SchemaBuilder().build(registry).schema
    finally:
        unregister_kind("money")

    assert str(schema.get_type("Invoice").fields["total"].type) == "Float"
    assert set(schema.get_type("InvoiceFilterTotal").fields) == {"eq", "notEq", "gt", "gte", "lt", "lte"}


def test_holder_publishes_atomically(registry):
    builder = SchemaBuilder()
    first = builder.build(registry)
    holder = SchemaHolder(first)

    in_flight = holder.current
    second = holder.publish(builder.build(registry))

    assert holder.current is second
    assert in_flight is first
    assert second.version > first.version


def test_empty_holder():
    with pytest.raises(SchemaConfigError):
        SchemaHolder().current
