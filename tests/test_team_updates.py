import pytest


@pytest.fixture
def team(api, head, employee, outsider):
    project = api.project(head)
    return api.team(head, leader=employee, project_ids=[project["id"]], members=[outsider])


def post_update(client, account, team_id, content="Shipped the parser", **extra):
    return client.post(
        "/team-updates",
        json={"content": content, "teamId": team_id, **extra},
        headers=account.headers,
    )


def test_members_post_updates(client, head, outsider, team):
    r = post_update(client, outsider, team["id"])
    assert r.status_code == 201, r.text
    assert r.json()["author"]["id"] == outsider.id

    # HEAD is not a member of the team
    assert post_update(client, head, team["id"]).status_code == 403
    assert post_update(client, head, 9999).status_code == 404


def test_update_linked_to_task_must_belong_to_team(api, client, head, outsider, team):
    team_task = api.task(head, teamId=team["id"])
    loose_task = api.task(head, title="Loose")

    assert post_update(client, outsider, team["id"], taskId=team_task["id"]).status_code == 201
    assert post_update(client, outsider, team["id"], taskId=loose_task["id"]).status_code == 400
    assert post_update(client, outsider, team["id"], taskId=9999).status_code == 404


def test_list_updates(api, client, head, manager, employee, outsider, team):
    team_task = api.task(head, teamId=team["id"])
    post_update(client, outsider, team["id"], content="first")
    post_update(client, employee, team["id"], content="second", taskId=team_task["id"])

    r = client.get("/team-updates", params={"teamId": team["id"]}, headers=manager.headers)
    assert r.status_code == 200
    assert [u["content"] for u in r.json()] == ["second", "first"]

    r = client.get("/team-updates", params={"taskId": team_task["id"]}, headers=head.headers)
    assert [u["content"] for u in r.json()] == ["second"]

    r = client.get("/team-updates", params={"userId": outsider.id}, headers=head.headers)
    assert [u["content"] for u in r.json()] == ["first"]


def test_employees_only_see_their_teams_updates(api, client, head, outsider, team):
    loner = api.account("Lou Loner", role="EMPLOYEE", by=head)
    post_update(client, outsider, team["id"])

    assert client.get("/team-updates", headers=loner.headers).json() == []
    r = client.get("/team-updates", params={"teamId": team["id"]}, headers=loner.headers)
    assert r.status_code == 403


def test_edit_and_delete_updates(client, head, employee, outsider, team):
    update = post_update(client, outsider, team["id"]).json()
    url = f"/team-updates/{update['id']}"

    # only the author edits
    assert client.put(url, json={"content": "hijacked"}, headers=employee.headers).status_code == 403
    r = client.put(url, json={"content": "revised"}, headers=outsider.headers)
    assert r.status_code == 200
    assert r.json()["content"] == "revised"

    # the leader may delete someone else's update
    assert client.delete(url, headers=employee.headers).status_code == 200
    assert client.get(url, headers=head.headers).status_code == 404
