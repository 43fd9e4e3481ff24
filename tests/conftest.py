import asyncio
from copy import deepcopy

import pytest
from fastapi.testclient import TestClient

from resourcegraph import (
    AttributeSpec,
    CapabilityRegistry,
    FilterSpec,
    Gateway,
    GraphSettings,
    InMemoryResourceLayer,
    LinkSpec,
    OperationExecutor,
    Principal,
    ResourceType,
    SchemaBuilder,
    SelectionPlanner,
    SortSpec,
    belongs_to,
    has_many,
    polymorphic_belongs_to,
    polymorphic_has_many,
)


def is_admin(ctx):
    return ctx.has_role("admin")


EMPLOYEE = ResourceType(
    "Employee",
    attributes=[
        AttributeSpec("first_name"),
        AttributeSpec("last_name"),
        AttributeSpec("age", kind="integer"),
        AttributeSpec("salary", kind="integer", readable=is_admin),
        AttributeSpec("ssn", readable=False),
        AttributeSpec("bio", extra=True),
    ],
    filters=[
        FilterSpec("last_name", only=("prefix",)),
        FilterSpec("age", guard=is_admin),
    ],
    sorts=[SortSpec("age", guard=is_admin)],
    relationships=[
        has_many("positions", "Position"),
        has_many("credit_cards", "CreditCard", readable=lambda ctx: not ctx.extra.get("hide_cards")),
        polymorphic_has_many("notes", "Note", as_="notable"),
    ],
)

POSITION = ResourceType(
    "Position",
    attributes=[AttributeSpec("title"), AttributeSpec("rank", kind="integer")],
    relationships=[belongs_to("employee", "Employee"), belongs_to("department", "Department")],
)

DEPARTMENT = ResourceType(
    "Department",
    attributes=[AttributeSpec("name")],
    relationships=[has_many("teams", "Team")],
)

TEAM = ResourceType(
    "Team",
    attributes=[AttributeSpec("name")],
    relationships=[
        belongs_to("department", "Department"),
        polymorphic_has_many("notes", "Note", as_="notable"),
    ],
)

VISA_REWARDS = has_many("visa_rewards", "VisaReward", link=LinkSpec(parent_field="id", child_field="visa_id"))

CREDIT_CARD = ResourceType(
    "CreditCard",
    attributes=[
        AttributeSpec("number", kind="integer"),
        AttributeSpec("description", getter=lambda record: "credit card"),
    ],
    relationships=[has_many("transactions", "Transaction")],
    variants=[
        ResourceType(
            "Visa",
            attributes=[AttributeSpec("description", getter=lambda record: "visa description")],
            relationships=[VISA_REWARDS],
        ),
        ResourceType(
            "GoldVisa",
            attributes=[AttributeSpec("description", getter=lambda record: "visa description")],
            relationships=[VISA_REWARDS],
        ),
        ResourceType(
            "Mastercard",
            attributes=[AttributeSpec("description", getter=lambda record: "mastercard description")],
            relationships=[has_many("mastercard_miles", "MastercardMile")],
        ),
    ],
)

TRANSACTION = ResourceType("Transaction", attributes=[AttributeSpec("amount", kind="integer")])

VISA_REWARD = ResourceType(
    "VisaReward",
    attributes=[AttributeSpec("points", kind="integer")],
    relationships=[has_many("reward_transactions", "VisaRewardTransaction")],
)

VISA_REWARD_TRANSACTION = ResourceType(
    "VisaRewardTransaction",
    attributes=[AttributeSpec("amount", kind="integer")],
)

MASTERCARD_MILE = ResourceType("MastercardMile", attributes=[AttributeSpec("amount", kind="integer")])

NOTE = ResourceType(
    "Note",
    attributes=[AttributeSpec("body")],
    relationships=[
        polymorphic_belongs_to("notable", ["Employee", "Team"]),
        has_many("edits", "NoteEdit"),
    ],
)

NOTE_EDIT = ResourceType("NoteEdit", attributes=[AttributeSpec("modification")])

RESOURCES = [
    EMPLOYEE,
    POSITION,
    DEPARTMENT,
    TEAM,
    CREDIT_CARD,
    TRANSACTION,
    VISA_REWARD,
    VISA_REWARD_TRANSACTION,
    MASTERCARD_MILE,
    NOTE,
    NOTE_EDIT,
]

DATA = {
    "employees": [
        {"id": 1, "first_name": "Stephen", "last_name": "King", "age": 60, "salary": 100, "bio": "Horror"},
        {"id": 2, "first_name": "Agatha", "last_name": "Christie", "age": 70, "salary": 200, "bio": "Crime"},
    ],
    "positions": [
        {"id": 1, "employee_id": 1, "department_id": 1, "title": "Author", "rank": 1},
        {"id": 2, "employee_id": 2, "department_id": 1, "title": "Detective", "rank": 2},
        {"id": 3, "employee_id": 2, "department_id": 2, "title": "Novelist", "rank": 1},
    ],
    "departments": [
        {"id": 1, "name": "Fiction"},
        {"id": 2, "name": "Mystery"},
    ],
    "teams": [
        {"id": 1, "name": "Writers", "department_id": 1},
    ],
    "credit_cards": [
        {"id": 1, "_type": "visas", "number": 1, "employee_id": 2},
        {"id": 2, "_type": "gold_visas", "number": 2, "employee_id": None},
        {"id": 3, "_type": "mastercards", "number": 3, "employee_id": None},
    ],
    "transactions": [
        {"id": 1, "credit_card_id": 3, "amount": 100},
    ],
    "visa_rewards": [
        {"id": 1, "visa_id": 2, "points": 5},
        {"id": 2, "visa_id": 2, "points": 10},
    ],
    "visa_reward_transactions": [
        {"id": 1, "visa_reward_id": 1, "amount": 100},
        {"id": 2, "visa_reward_id": 1, "amount": 200},
    ],
    "mastercard_miles": [
        {"id": 1, "mastercard_id": 999, "amount": 1},
        {"id": 2, "mastercard_id": 3, "amount": 50},
    ],
    "notes": [
        {"id": 1, "body": "Prolific", "notable_id": 1, "notable_type": "employees"},
        {"id": 2, "body": "Team note", "notable_id": 1, "notable_type": "teams"},
    ],
    "note_edits": [
        {"id": 1, "note_id": 1, "modification": "typo"},
    ],
}


@pytest.fixture()
def registry():
    return CapabilityRegistry(RESOURCES)


@pytest.fixture()
def descriptor(registry):
    return SchemaBuilder().build(registry)


@pytest.fixture()
def data():
    return deepcopy(DATA)


@pytest.fixture()
def layer(data):
    return InMemoryResourceLayer(data)


@pytest.fixture()
def admin():
    return Principal(id=1, roles=("admin",))


@pytest.fixture()
def viewer():
    return Principal(id=2, roles=("viewer",))


@pytest.fixture()
def planner(descriptor):
    return SelectionPlanner(descriptor)


@pytest.fixture()
def run(descriptor, layer, admin):
    """Execute an operation against the in-memory graph, as admin by default."""

    def _run(query, variables=None, context=admin, settings=None):
        executor = OperationExecutor(descriptor, layer, settings)
        return asyncio.run(executor.execute(query, variables, context))

    return _run


@pytest.fixture()
def gateway(registry, layer):
    def context_getter(request):
        roles = request.headers.get("X-Roles", "")
        return Principal(roles=tuple(r for r in roles.split(",") if r))

    return Gateway(registry, layer, GraphSettings(max_page_size=50), context_getter=context_getter)


@pytest.fixture()
def client(gateway):
    return TestClient(gateway.app)


@pytest.fixture()
def admin_headers():
    return {"X-Roles": "admin"}
