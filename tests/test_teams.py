import pytest


@pytest.fixture
def project(api, head):
    return api.project(head)


@pytest.fixture
def team(api, head, employee, outsider, project):
    # employee leads, outsider is a plain member
    return api.team(head, leader=employee, project_ids=[project["id"]], members=[outsider])


def test_create_team_adds_leader_as_member(client, head, employee, team):
    r = client.get(f"/teams/{team['id']}/members", headers=head.headers)
    assert r.status_code == 200
    assert employee.id in {m["userId"] for m in r.json()}
    assert team["leaderId"] == employee.id


def test_create_team_validation(client, head, manager, employee, project):
    body = {"name": "X", "projectIds": [], "leaderId": employee.id}
    assert client.post("/teams", json=body, headers=head.headers).status_code == 400

    body = {"name": "X", "projectIds": [9999], "leaderId": employee.id}
    assert client.post("/teams", json=body, headers=head.headers).status_code == 404

    body = {"name": "X", "projectIds": [project["id"]], "leaderId": head.id}
    assert client.post("/teams", json=body, headers=head.headers).status_code == 400

    body = {"name": "X", "projectIds": [project["id"]], "leaderId": employee.id}
    assert client.post("/teams", json=body, headers=manager.headers).status_code == 403


def test_team_permissions_for_member(client, outsider, team):
    r = client.get(f"/teams/{team['id']}/permissions", headers=outsider.headers)
    assert r.status_code == 200
    assert r.json() == {
        "isLeader": False,
        "isHead": False,
        "isManager": False,
        "isMember": True,
        "canManageTasks": False,
    }


def test_team_permissions_for_leader_and_head(client, head, employee, team):
    leader = client.get(f"/teams/{team['id']}/permissions", headers=employee.headers).json()
    assert leader["isLeader"] and leader["canManageTasks"]

    as_head = client.get(f"/teams/{team['id']}/permissions", headers=head.headers).json()
    assert as_head["isHead"] and not as_head["isMember"]


def test_team_list_scoping(api, client, head, manager, employee, outsider, project, team):
    other = api.team(head, leader=manager, project_ids=[project["id"]], name="Ops")

    r = client.get("/teams", headers=head.headers)
    assert {t["id"] for t in r.json()} == {team["id"], other["id"]}

    r = client.get("/teams", headers=outsider.headers)
    assert [t["id"] for t in r.json()] == [team["id"]]

    r = client.get("/teams", headers=manager.headers)
    assert [t["id"] for t in r.json()] == [other["id"]]

    r = client.get("/teams", params={"projectId": 9999}, headers=head.headers)
    assert r.json() == []


def test_team_page_visible_to_manager_of_member(api, client, head, manager, employee, team):
    stranger = api.account("Sam Stranger", role="MANAGER", by=head)

    # manager manages the team's leader
    assert client.get(f"/teams/{team['id']}", headers=manager.headers).status_code == 200
    assert client.get(f"/teams/{team['id']}", headers=stranger.headers).status_code == 403


def test_leader_updates_details_but_not_leader(client, head, employee, outsider, team):
    r = client.put(f"/teams/{team['id']}", json={"name": "Renamed"}, headers=employee.headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Renamed"

    r = client.put(f"/teams/{team['id']}", json={"leaderId": outsider.id}, headers=employee.headers)
    assert r.status_code == 403

    r = client.put(f"/teams/{team['id']}", json={"name": "Nope"}, headers=outsider.headers)
    assert r.status_code == 403


def test_head_changes_leader_and_new_leader_joins(api, client, head, manager, team):
    newcomer = api.account("Nina Newcomer", role="EMPLOYEE", by=head)

    r = client.put(f"/teams/{team['id']}", json={"leaderId": newcomer.id}, headers=head.headers)
    assert r.status_code == 200, r.text
    assert r.json()["leaderId"] == newcomer.id
    assert newcomer.id in {m["userId"] for m in r.json()["members"]}


def test_member_management(api, client, head, employee, outsider, team):
    newcomer = api.account("Nina Newcomer", role="EMPLOYEE", by=head)

    r = client.post(f"/teams/{team['id']}/members", json={"userId": newcomer.id}, headers=outsider.headers)
    assert r.status_code == 403

    r = client.post(f"/teams/{team['id']}/members", json={"userId": newcomer.id}, headers=employee.headers)
    assert r.status_code == 201

    r = client.post(f"/teams/{team['id']}/members", json={"userId": newcomer.id}, headers=employee.headers)
    assert r.status_code == 400

    assert client.delete(f"/teams/{team['id']}/members/{employee.id}", headers=head.headers).status_code == 400
    assert client.delete(f"/teams/{team['id']}/members/{newcomer.id}", headers=head.headers).status_code == 200


def test_request_update_from_one_member(client, head, employee, outsider, team):
    r = client.post(
        f"/teams/{team['id']}/update-requests",
        json={"message": "status please", "memberId": outsider.id},
        headers=employee.headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["notificationsCount"] == 1

    notes = client.get("/notifications", headers=outsider.headers).json()
    assert len(notes) == 1
    assert notes[0]["type"] == "TASK_UPDATE_REQUESTED"
    assert notes[0]["message"] == "Eve Employee requested an update: status please"


def test_request_update_fans_out_to_everyone_but_requester(client, head, employee, outsider, team):
    r = client.post(
        f"/teams/{team['id']}/update-requests", json={"message": "weekly sync"}, headers=head.headers
    )
    assert r.status_code == 201
    # head is not a member, so both members are notified
    assert r.json()["notificationsCount"] == 2

    r = client.post(
        f"/teams/{team['id']}/update-requests", json={"message": "again"}, headers=employee.headers
    )
    assert r.json()["notificationsCount"] == 1


def test_request_update_rules(client, head, manager, employee, outsider, team):
    url = f"/teams/{team['id']}/update-requests"

    assert client.post(url, json={"message": ""}, headers=employee.headers).status_code == 400
    assert client.post(url, json={"message": "hi"}, headers=outsider.headers).status_code == 403
    assert client.post(url, json={"message": "hi"}, headers=manager.headers).status_code == 403
    r = client.post(url, json={"message": "hi", "memberId": manager.id}, headers=head.headers)
    assert r.status_code == 400
    assert client.post("/teams/9999/update-requests", json={"message": "hi"}, headers=head.headers).status_code == 404


def test_view_update_requests(client, head, manager, employee, outsider, team):
    client.post(f"/teams/{team['id']}/update-requests", json={"message": "sync"}, headers=employee.headers)

    r = client.get(f"/teams/{team['id']}/update-requests", headers=outsider.headers)
    assert r.status_code == 200
    assert len(r.json()) == 1
    assert r.json()[0]["user"]["id"] == outsider.id

    assert client.get(f"/teams/{team['id']}/update-requests", headers=head.headers).status_code == 200
    assert client.get(f"/teams/{team['id']}/update-requests", headers=manager.headers).status_code == 403


def test_overview_statistics(api, client, head, employee, team):
    done = api.task(head, title="Done", assigneeId=employee.id, teamId=team["id"])
    task = api.task(head, title="Late", teamId=team["id"], dueDate="2000-01-01", priority="HIGH")
    r = client.patch(f"/tasks/{done['id']}", json={"status": "FINISHED"}, headers=head.headers)
    assert r.status_code == 200, r.text

    r = client.get("/teams/overview", headers=employee.headers)
    assert r.status_code == 200, r.text
    item = r.json()["teams"][0]
    assert item["taskStats"]["total"] == 2
    assert item["taskStats"]["completed"] == 1
    assert item["taskStats"]["overdue"] == 1
    assert item["taskStats"]["highPriority"] == 1
    assert item["completionPercentage"] == 50
    assert item["isUserLeader"] is True
    assert r.json()["summary"]["teamsAsLeader"] == 1
    assert task["taskOrigin"] == "TEAM"


def test_overview_rounds_half_up(api, client, head, employee, team):
    tasks = [api.task(head, title=f"Step {n}", teamId=team["id"]) for n in range(8)]
    r = client.patch(f"/tasks/{tasks[0]['id']}", json={"status": "FINISHED"}, headers=head.headers)
    assert r.status_code == 200, r.text

    r = client.get("/teams/overview", headers=employee.headers)
    assert r.status_code == 200, r.text
    # 1 of 8 is 12.5%
    assert r.json()["teams"][0]["completionPercentage"] == 13
    assert r.json()["summary"]["averageCompletionRate"] == 13


def test_delete_team_detaches_tasks(api, client, head, employee, team):
    task = api.task(head, teamId=team["id"])

    assert client.delete(f"/teams/{team['id']}", headers=employee.headers).status_code == 403
    assert client.delete(f"/teams/{team['id']}", headers=head.headers).status_code == 200

    r = client.get(f"/tasks/{task['id']}", headers=head.headers)
    assert r.status_code == 200
    assert r.json()["teamId"] is None
