def test_create_issue_requires_title_and_description(client, employee):
    r = client.post("/issues", json={"title": "Only title"}, headers=employee.headers)
    assert r.status_code == 400

    r = client.post("/issues", json={"title": "T", "description": "D", "taskId": 9999}, headers=employee.headers)
    assert r.status_code == 404


def test_issue_defaults(api, employee):
    issue = api.issue(employee)
    assert issue["status"] == "OPEN"
    assert issue["creator"]["id"] == employee.id
    assert issue["task"] is None


def test_issue_list_scoping(api, client, head, manager, employee, outsider):
    eves = api.issue(employee, title="Eve's")
    oscars = api.issue(outsider, title="Oscar's")

    r = client.get("/issues", headers=head.headers)
    assert {i["id"] for i in r.json()} == {eves["id"], oscars["id"]}

    r = client.get("/issues", headers=manager.headers)
    assert [i["id"] for i in r.json()] == [eves["id"]]

    r = client.get("/issues", headers=outsider.headers)
    assert [i["id"] for i in r.json()] == [oscars["id"]]


def test_open_issues_of_a_user(api, client, manager, employee):
    still_open = api.issue(employee, title="Open")
    closed = api.issue(employee, title="Closed")
    r = client.patch(f"/issues/{closed['id']}", json={"status": "CLOSED"}, headers=manager.headers)
    assert r.status_code == 200

    r = client.get("/issues", params={"userId": employee.id}, headers=manager.headers)
    assert [i["id"] for i in r.json()] == [still_open["id"]]


def test_issue_access(api, client, head, manager, employee, outsider):
    issue = api.issue(employee)

    assert client.get(f"/issues/{issue['id']}", headers=employee.headers).status_code == 200
    assert client.get(f"/issues/{issue['id']}", headers=manager.headers).status_code == 200
    assert client.get(f"/issues/{issue['id']}", headers=outsider.headers).status_code == 403

    r = client.patch(f"/issues/{issue['id']}", json={"status": "RESOLVED"}, headers=outsider.headers)
    assert r.status_code == 403
    r = client.patch(f"/issues/{issue['id']}", json={"status": "WONTFIX"}, headers=employee.headers)
    assert r.status_code == 400


def test_only_head_deletes_issues(api, client, head, employee):
    issue = api.issue(employee)

    assert client.delete(f"/issues/{issue['id']}", headers=employee.headers).status_code == 403
    assert client.delete(f"/issues/{issue['id']}", headers=head.headers).status_code == 200
    assert client.delete(f"/issues/{issue['id']}", headers=head.headers).status_code == 404


def test_mark_notification_read(api, client, head, employee, outsider):
    project = api.project(head)
    team = api.team(head, leader=employee, project_ids=[project["id"]], members=[outsider])
    client.post(f"/teams/{team['id']}/update-requests", json={"message": "ping"}, headers=employee.headers)

    note = client.get("/notifications", headers=outsider.headers).json()[0]
    assert note["isRead"] is False

    assert client.post(f"/notifications/{note['id']}/read", headers=employee.headers).status_code == 403
    r = client.post(f"/notifications/{note['id']}/read", headers=outsider.headers)
    assert r.status_code == 200
    assert r.json()["isRead"] is True


def test_status_filter_narrows_a_users_open_issues(api, client, manager, employee):
    api.issue(employee, title="Fresh")
    working = api.issue(employee, title="Working")
    client.patch(f"/issues/{working['id']}", json={"status": "IN_PROGRESS"}, headers=manager.headers)

    params = {"userId": employee.id, "status": "IN_PROGRESS"}
    r = client.get("/issues", params=params, headers=manager.headers)
    assert [i["id"] for i in r.json()] == [working["id"]]

    params["status"] = "CLOSED"
    assert client.get("/issues", params=params, headers=manager.headers).json() == []
