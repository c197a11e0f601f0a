def test_head_creates_project_with_defaults(client, head):
    r = client.post(
        "/projects",
        json={"name": "Apollo", "startDate": "2024-03-01", "endDate": ""},
        headers=head.headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "PLANNING"
    assert body["endDate"] is None
    assert body["creatorId"] == head.id


def test_only_head_creates_projects(client, manager, employee):
    for account in (manager, employee):
        r = client.post(
            "/projects", json={"name": "Nope", "startDate": "2024-03-01"}, headers=account.headers
        )
        assert r.status_code == 403


def test_project_validation(client, head):
    r = client.post("/projects", json={"name": "  ", "startDate": "2024-03-01"}, headers=head.headers)
    assert r.status_code == 400

    r = client.post(
        "/projects",
        json={"name": "Odd", "startDate": "2024-03-01", "status": "DREAMING"},
        headers=head.headers,
    )
    assert r.status_code == 400


def test_project_template_is_head_only(client, head, manager):
    r = client.get("/projects/new", headers=head.headers)
    assert r.status_code == 200
    assert r.json()["defaultStatus"] == "PLANNING"
    assert client.get("/projects/new", headers=manager.headers).status_code == 403


def test_list_and_filter_projects(api, client, head, manager, employee):
    api.project(head, name="Apollo")
    api.project(head, name="Gemini", status="ACTIVE")

    r = client.get("/projects", headers=manager.headers)
    assert r.status_code == 200
    assert {p["name"] for p in r.json()} == {"Apollo", "Gemini"}

    r = client.get("/projects", params={"status": "ACTIVE"}, headers=head.headers)
    assert [p["name"] for p in r.json()] == ["Gemini"]

    assert client.get("/projects", headers=employee.headers).status_code == 403


def test_employee_sees_project_only_through_a_team(api, client, head, employee, outsider):
    project = api.project(head)
    api.team(head, leader=employee, project_ids=[project["id"]])

    assert client.get(f"/projects/{project['id']}", headers=employee.headers).status_code == 200
    assert client.get(f"/projects/{project['id']}", headers=outsider.headers).status_code == 403
    assert client.get("/projects/9999", headers=head.headers).status_code == 404


def test_update_and_delete_project(api, client, head, manager):
    project = api.project(head)

    r = client.put(
        f"/projects/{project['id']}", json={"status": "COMPLETED"}, headers=manager.headers
    )
    assert r.status_code == 403

    r = client.put(f"/projects/{project['id']}", json={"status": "COMPLETED"}, headers=head.headers)
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"

    assert client.delete(f"/projects/{project['id']}", headers=manager.headers).status_code == 403
    assert client.delete(f"/projects/{project['id']}", headers=head.headers).status_code == 200
    assert client.get(f"/projects/{project['id']}", headers=head.headers).status_code == 404
