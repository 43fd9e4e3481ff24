import datetime as dt

from graphql import parse

from resourcegraph import (
    AttributeSpec,
    CapabilityRegistry,
    ResourceType,
    ResultAssembler,
    SchemaBuilder,
    SelectionPlanner,
)


def plan_for(planner, query, context):
    operation = planner.plan_operation(parse(query), context)
    return next(iter(operation.resource_roots.values()))


def test_keeps_selection_order_and_only_requested_keys(planner, admin):
    node = plan_for(planner, "{ employees { lastName firstName } }", admin)
    entity = {"id": 1, "_type": "employees", "first_name": "Stephen", "last_name": "King", "age": 60}

    data = ResultAssembler().assemble(node, [entity])

    assert data == [{"lastName": "King", "firstName": "Stephen"}]
    assert list(data[0]) == ["lastName", "firstName"]


def test_does_not_reorder_lists(planner, admin):
    node = plan_for(planner, "{ employees(sort: [{ att: firstName, dir: asc }]) { firstName } }", admin)
    entities = [{"id": 1, "first_name": "Stephen"}, {"id": 2, "first_name": "Agatha"}]

    assert ResultAssembler().assemble(node, entities) == [{"firstName": "Stephen"}, {"firstName": "Agatha"}]


def test_missing_many_relationship_is_an_empty_list(planner, admin):
    node = plan_for(planner, "{ employees { positions { title } } }", admin)

    assert ResultAssembler().assemble(node, [{"id": 1, "positions": None}]) == [{"positions": []}]
    assert ResultAssembler().assemble(node, None) == []


def test_missing_one_relationship_is_null(planner, admin):
    node = plan_for(planner, "{ positions { department { name } } }", admin)

    assert ResultAssembler().assemble(node, [{"id": 1}]) == [{"department": None}]


def test_singular_root_takes_the_first_entity(planner, admin):
    node = plan_for(planner, '{ employee(id: "1") { firstName } }', admin)

    assert ResultAssembler().assemble(node, [{"id": 1, "first_name": "Stephen"}]) == {"firstName": "Stephen"}
    assert ResultAssembler().assemble(node, []) is None


def test_variant_keys_only_for_matching_discriminant(planner, admin):
    node = plan_for(planner, "{ creditCards { id ... on Mastercard { number } } }", admin)
    entities = [
        {"id": 1, "_type": "visas", "number": 1},
        {"id": 3, "_type": "mastercards", "number": 3},
    ]

    assert ResultAssembler().assemble(node, entities) == [{"id": "1"}, {"id": "3", "number": 3}]


def test_variant_relationship_uses_the_variant_child(planner, admin):
    node = plan_for(planner, "{ creditCards { _type ... on Visa { visaRewards { points } } } }", admin)
    entities = [
        {"id": 1, "_type": "visas", "visaRewards": [{"id": 1, "_type": "visa_rewards", "points": 5}]},
        {"id": 3, "_type": "mastercards", "visaRewards": [{"id": 9, "points": 1}]},
    ]

    assert ResultAssembler().assemble(node, entities) == [
        {"_type": "visas", "visaRewards": [{"points": 5}]},
        {"_type": "mastercards"},
    ]


def test_serializes_by_kind(admin):
    registry = CapabilityRegistry([
        ResourceType(
            "Event",
            attributes=[
                AttributeSpec("starts_on", kind="date"),
                AttributeSpec("created_at", kind="datetime"),
                AttributeSpec("tags", kind="array_of_strings"),
            ],
        ),
    ])
    planner = SelectionPlanner(SchemaBuilder().build(registry))
    node = plan_for(planner, "{ events { id startsOn createdAt tags } }", admin)
    entity = {
        "id": 5,
        "starts_on": dt.date(2024, 1, 2),
        "created_at": dt.datetime(2024, 1, 2, 3, 4, 5),
        "tags": ["a", "b"],
    }

    assert ResultAssembler().assemble(node, [entity]) == [
        {"id": "5", "startsOn": "2024-01-02", "createdAt": "2024-01-02T03:04:05", "tags": ["a", "b"]}
    ]
