"""
HR gateway - minimal configuration example.

Run:
    resourcegraph serve example.hr.main:gateway
    resourcegraph schema example.hr.main:registry

Then open http://127.0.0.1:8000/playground and send the header
``X-Roles: admin`` to see salaries.
"""

from fastapi import Request

from resourcegraph import (
    AttributeSpec,
    CapabilityRegistry,
    FilterSpec,
    Gateway,
    InMemoryResourceLayer,
    Principal,
    ResourceType,
    belongs_to,
    has_many,
    load_settings,
)

registry = CapabilityRegistry([
    ResourceType(
        "Employee",
        attributes=[
            AttributeSpec("first_name"),
            AttributeSpec("last_name"),
            AttributeSpec("salary", kind="integer", readable=lambda ctx: ctx.has_role("admin")),
        ],
        filters=[FilterSpec("last_name", only=("eq", "prefix"))],
        relationships=[has_many("positions", "Position")],
    ),
    ResourceType(
        "Position",
        attributes=[AttributeSpec("title")],
        relationships=[belongs_to("department", "Department")],
    ),
    ResourceType("Department", attributes=[AttributeSpec("name")]),
])

layer = InMemoryResourceLayer({
    "employees": [
        {"id": 1, "first_name": "Stephen", "last_name": "King", "salary": 100},
        {"id": 2, "first_name": "Agatha", "last_name": "Christie", "salary": 200},
    ],
    "positions": [
        {"id": 1, "employee_id": 1, "department_id": 1, "title": "Author"},
        {"id": 2, "employee_id": 2, "department_id": 2, "title": "Detective"},
    ],
    "departments": [
        {"id": 1, "name": "Fiction"},
        {"id": 2, "name": "Mystery"},
    ],
})


def principal_from_headers(request: Request) -> Principal:
    roles = request.headers.get("X-Roles", "")
    return Principal(roles=tuple(r.strip() for r in roles.split(",") if r.strip()))


gateway = Gateway(registry, layer, load_settings(), context_getter=principal_from_headers)

app = gateway.app
