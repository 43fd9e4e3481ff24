from resourcegraph import AttributeSpec, ResourceType


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_graphql_query(client, admin_headers):
    r = client.post(
        "/graphql",
        json={"query": '{ employees(filter: { firstName: { eq: "Agatha" } }) { firstName salary } }'},
        headers=admin_headers,
    )

    assert r.status_code == 200
    assert r.json() == {"data": {"employees": [{"firstName": "Agatha", "salary": 200}]}}


def test_variables_and_operation_name(client):
    r = client.post(
        "/graphql",
        json={
            "query": "query One($id: String!) { employee(id: $id) { lastName } } query Two { employees { id } }",
            "variables": {"id": "1"},
            "operationName": "One",
        },
    )

    assert r.status_code == 200
    assert r.json() == {"data": {"employee": {"lastName": "King"}}}


def test_access_denied_is_403_without_data(client):
    r = client.post("/graphql", json={"query": "{ employees { firstName salary } }"})

    body = r.json()
    assert r.status_code == 403
    assert "data" not in body
    assert body["errors"][0]["extensions"]["code"] == "accessDenied"
    assert body["errors"][0]["path"] == ["employees", "salary"]


def test_shape_error_is_400(client):
    r = client.post("/graphql", json={"query": "{ employees { ssn } }"})

    assert r.status_code == 400
    assert "ssn" in r.json()["errors"][0]["message"]


def test_page_size_error_is_400(client, admin_headers):
    r = client.post("/graphql", json={"query": "{ employees(page: { size: 51 }) { id } }"}, headers=admin_headers)

    assert r.status_code == 400
    assert r.json()["errors"][0]["extensions"] == {"code": "pageSizeExceeded", "size": 51, "maxSize": 50}


def test_schema_sdl(client):
    r = client.get("/__schema.graphql")

    assert r.status_code == 200
    assert "type Employee" in r.text
    assert "ssn" not in r.text


def test_graph_dump(client):
    r = client.get("/__graph")

    assert r.status_code == 200
    assert r.json()["types"]["CreditCard"]["variants"] == ["Visa", "GoldVisa", "Mastercard"]


def test_refresh_publishes_a_new_schema(client, gateway):
    before = client.get("/__status").json()

    gateway.registry.register(ResourceType("Project", attributes=[AttributeSpec("name")]))
    refreshed = client.post("/__refresh").json()
    after = client.get("/__status").json()

    assert refreshed["status"] == "ok"
    assert after["version"] > before["version"]
    assert "projects" in after["rootFields"]
    assert "projects" not in before["rootFields"]


def test_failed_refresh_keeps_the_old_schema(client, gateway):
    version = gateway.descriptor.version

    gateway.registry.register(ResourceType("Employee"))
    refreshed = client.post("/__refresh").json()

    assert refreshed["status"] == "error"
    assert gateway.descriptor.version == version
    r = client.post("/graphql", json={"query": "{ employees { id } }"})
    assert r.status_code == 200


def test_playground(client):
    r = client.get("/playground")

    assert r.status_code == 200
    assert "graphiql" in r.text.lower()
    assert '"/graphql"' in r.text
