import asyncio
import json

import httpx
import pytest
from graphql import parse

from resourcegraph import OperationExecutor, ResourceLayerError, ServiceResourceLayer
from resourcegraph.core.errors import ServiceError


def employees_plan(planner, admin):
    query = '{ employees(filter: { firstName: { eq: "Agatha" } }) { firstName positions { title } } }'
    return planner.plan_operation(parse(query), admin).roots["employees"]


def layer_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ServiceResourceLayer({"employees": "http://hr:8002/"}, client=client)


def test_posts_the_plan_and_returns_entities(planner, admin):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"id": 2, "_type": "employees", "first_name": "Agatha", "positions": []}]})

    layer = layer_with(handler)
    entities = asyncio.run(layer.resolve(employees_plan(planner, admin), admin))

    assert seen["url"] == "http://hr:8002/internal/resolve"
    assert seen["body"]["resource"] == "employees"
    assert seen["body"]["filters"] == [{"field": "first_name", "op": "eq", "value": "Agatha"}]
    assert seen["body"]["relations"]["positions"]["fields"] == ["title"]
    assert entities[0]["first_name"] == "Agatha"


def test_error_status_becomes_service_error(planner, admin):
    layer = layer_with(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ServiceError) as exc:
        asyncio.run(layer.resolve(employees_plan(planner, admin), admin))

    assert exc.value.status_code == 500
    assert exc.value.path == ("employees",)


def test_unreachable_service(planner, admin):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceError) as exc:
        asyncio.run(layer_with(handler).resolve(employees_plan(planner, admin), admin))

    assert exc.value.status_code == 0


def test_malformed_response(planner, admin):
    layer = layer_with(lambda request: httpx.Response(200, json={"data": "nope"}))

    with pytest.raises(ResourceLayerError, match="Malformed response"):
        asyncio.run(layer.resolve(employees_plan(planner, admin), admin))


def test_unknown_service(planner, admin):
    layer = ServiceResourceLayer({})

    with pytest.raises(ResourceLayerError, match="No service registered for 'employees'"):
        layer.service_url(employees_plan(planner, admin))


def test_end_to_end_through_the_executor(descriptor, admin):
    def handler(request):
        return httpx.Response(200, json={"data": [{"id": 2, "_type": "employees", "first_name": "Agatha", "positions": [
            {"id": 3, "_type": "positions", "title": "Novelist"},
        ]}]})

    executor = OperationExecutor(descriptor, layer_with(handler))
    query = '{ employees(filter: { firstName: { eq: "Agatha" } }) { firstName positions { title } } }'

    result = asyncio.run(executor.execute(query, context=admin))

    assert result == {"data": {"employees": [{"firstName": "Agatha", "positions": [{"title": "Novelist"}]}]}}
