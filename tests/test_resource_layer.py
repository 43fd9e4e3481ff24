import asyncio

from graphql import parse

from resourcegraph import InMemoryResourceLayer, PlanNode


def resolve(layer, planner, query, context):
    node = next(iter(planner.plan_operation(parse(query), context).resource_roots.values()))
    return asyncio.run(layer.resolve(node, context))


def test_entities_carry_id_type_and_requested_fields(layer, planner, admin):
    entities = resolve(layer, planner, "{ employees { firstName } }", admin)

    assert entities[0] == {"id": 1, "_type": "employees", "first_name": "Stephen"}


def test_extra_fields_are_only_fetched_when_requested(layer, planner, admin):
    plain = resolve(layer, planner, "{ employees { firstName } }", admin)
    extra = resolve(layer, planner, "{ employees { bio } }", admin)

    assert "bio" not in plain[0]
    assert extra[0]["bio"] == "Horror"


def test_variant_collection_reads_parent_records(layer, planner, admin):
    visa = planner.descriptor.registry.get("Visa")
    entities = asyncio.run(layer.resolve(PlanNode(resource=visa, path=("visas",), fields=["number"]), admin))

    assert entities == [{"id": 1, "_type": "visas", "number": 1}]


def test_variant_fields_are_fetched_per_discriminant(layer, planner, admin):
    entities = resolve(layer, planner, "{ creditCards { ... on Visa { number } } }", admin)

    assert entities[0]["number"] == 1
    assert "number" not in entities[2]


def test_custom_filter_handler(data, planner, admin):
    def surname_length(record, op, value):
        return len(record["last_name"]) == len(value)

    layer = InMemoryResourceLayer(data, filters={("employees", "last_name"): surname_length})
    entities = resolve(layer, planner, '{ employees(filter: { lastName: { prefix: "Abcd" } }) { id } }', admin)

    assert [e["id"] for e in entities] == [1]


def test_nulls_sort_last(planner, admin):
    layer = InMemoryResourceLayer({
        "employees": [
            {"id": 1, "first_name": None},
            {"id": 2, "first_name": "Zed"},
            {"id": 3, "first_name": "Amy"},
        ],
    })
    ascending = resolve(layer, planner, "{ employees(sort: [{ att: firstName, dir: asc }]) { id } }", admin)
    descending = resolve(layer, planner, "{ employees(sort: [{ att: firstName, dir: desc }]) { id } }", admin)

    assert [e["id"] for e in ascending] == [3, 2, 1]
    assert [e["id"] for e in descending] == [2, 3, 1]


def test_multi_key_sort(planner, admin):
    layer = InMemoryResourceLayer({
        "positions": [
            {"id": 1, "title": "B", "rank": 1},
            {"id": 2, "title": "A", "rank": 2},
            {"id": 3, "title": "A", "rank": 1},
        ],
    })
    query = "{ positions(sort: [{ att: title, dir: asc }, { att: rank, dir: desc }]) { id } }"

    assert [e["id"] for e in resolve(layer, planner, query, admin)] == [2, 3, 1]


def test_list_filter_values_match_any(planner, admin):
    layer = InMemoryResourceLayer({
        "positions": [{"id": 1, "rank": 1}, {"id": 2, "rank": 2}, {"id": 3, "rank": 3}],
    })
    query = "query Q($ranks: Int) { positions(filter: { rank: { eq: $ranks } }) { id } }"
    node = next(iter(planner.plan_operation(parse(query), admin, {"ranks": 2}).resource_roots.values()))
    node.filters[0] = node.filters[0].model_copy(update={"value": [1, 3]})

    assert [e["id"] for e in asyncio.run(layer.resolve(node, admin))] == [1, 3]


def test_records_calls(layer, planner, admin):
    resolve(layer, planner, "{ employees { id } }", admin)

    assert [node.path for node in layer.calls] == [("employees",)]
