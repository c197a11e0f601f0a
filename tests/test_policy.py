import pytest

from policy import Action, Caller, Facts, evaluate, team_permission_flags

HEAD = Caller(id=1, role="HEAD")
MANAGER = Caller(id=2, role="MANAGER")
OTHER_MANAGER = Caller(id=3, role="MANAGER")
EMPLOYEE = Caller(id=4, role="EMPLOYEE")


def test_only_head_creates_projects():
    assert evaluate(HEAD, Action.PROJECT_CREATE).allowed
    assert not evaluate(MANAGER, Action.PROJECT_CREATE).allowed
    assert not evaluate(EMPLOYEE, Action.PROJECT_CREATE).allowed


def test_report_download_requires_managing_relationship():
    reports_to_manager = Facts(target_user_id=4, target_manager_id=MANAGER.id)

    assert evaluate(HEAD, Action.REPORT_DOWNLOAD, reports_to_manager).allowed
    assert evaluate(MANAGER, Action.REPORT_DOWNLOAD, reports_to_manager).allowed

    denied = evaluate(OTHER_MANAGER, Action.REPORT_DOWNLOAD, reports_to_manager)
    assert not denied.allowed
    assert "direct reports" in denied.reason

    assert not evaluate(EMPLOYEE, Action.REPORT_DOWNLOAD, Facts(target_user_id=4)).allowed


def test_team_permission_flags_for_plain_member():
    caller = Caller(id=2, role="EMPLOYEE")
    facts = Facts(team_leader_id=1, team_member_ids=frozenset({1, 2}))

    flags = team_permission_flags(evaluate(caller, Action.TEAM_PERMISSIONS, facts))

    assert flags == {
        "is_leader": False,
        "is_head": False,
        "is_manager": False,
        "is_member": True,
        "can_manage_tasks": False,
    }


def test_team_permission_flags_for_leader_and_manager():
    facts = Facts(team_leader_id=4, team_member_ids=frozenset({4}))

    leader_flags = team_permission_flags(evaluate(EMPLOYEE, Action.TEAM_PERMISSIONS, facts))
    assert leader_flags["is_leader"] and leader_flags["can_manage_tasks"]

    # Any manager may manage tasks, even without a relationship to the team
    manager_flags = team_permission_flags(evaluate(MANAGER, Action.TEAM_PERMISSIONS, facts))
    assert manager_flags["is_manager"] and manager_flags["can_manage_tasks"]
    assert not manager_flags["is_member"]


def test_update_requests_need_head_or_leader():
    facts = Facts(team_leader_id=4, team_member_ids=frozenset({4, 5}))

    assert evaluate(HEAD, Action.TEAM_REQUEST_UPDATES, facts).allowed
    assert evaluate(EMPLOYEE, Action.TEAM_REQUEST_UPDATES, facts).allowed
    assert not evaluate(Caller(id=5, role="EMPLOYEE"), Action.TEAM_REQUEST_UPDATES, facts).allowed
    assert not evaluate(MANAGER, Action.TEAM_REQUEST_UPDATES, facts).allowed


def test_viewing_update_requests_needs_membership():
    facts = Facts(team_leader_id=9, team_member_ids=frozenset({4}))

    assert evaluate(EMPLOYEE, Action.TEAM_VIEW_UPDATE_REQUESTS, facts).allowed
    assert evaluate(HEAD, Action.TEAM_VIEW_UPDATE_REQUESTS, facts).allowed
    assert not evaluate(MANAGER, Action.TEAM_VIEW_UPDATE_REQUESTS, facts).allowed


def test_team_list_scope():
    assert "scope:all" in evaluate(HEAD, Action.TEAM_LIST).capabilities
    assert "scope:related" in evaluate(MANAGER, Action.TEAM_LIST).capabilities
    assert "scope:related" in evaluate(EMPLOYEE, Action.TEAM_LIST).capabilities


def test_user_list_scope():
    assert "scope:all" in evaluate(HEAD, Action.USER_LIST).capabilities
    assert "scope:reports" in evaluate(MANAGER, Action.USER_LIST).capabilities
    assert not evaluate(EMPLOYEE, Action.USER_LIST).allowed


@pytest.mark.parametrize(
    "caller, role, allowed",
    [
        (HEAD, "MANAGER", True),
        (HEAD, "HEAD", True),
        (HEAD, "EMPLOYEE", True),
        (MANAGER, "MANAGER", False),
        (MANAGER, "HEAD", False),
        (MANAGER, "EMPLOYEE", True),
        (EMPLOYEE, "EMPLOYEE", False),
    ],
)
def test_account_creation(caller, role, allowed):
    decision = evaluate(caller, Action.USER_CREATE, Facts(requested_role=role))
    assert decision.allowed is allowed


def test_manager_creating_employee_becomes_its_manager():
    decision = evaluate(MANAGER, Action.USER_CREATE, Facts(requested_role="EMPLOYEE"))
    assert "become-manager" in decision.capabilities
    assert "become-manager" not in evaluate(HEAD, Action.USER_CREATE, Facts(requested_role="EMPLOYEE")).capabilities


def test_team_view_by_manager_of_a_member():
    facts = Facts(
        team_leader_id=7,
        team_member_ids=frozenset({7, 8}),
        team_member_manager_ids=frozenset({MANAGER.id}),
    )
    assert evaluate(MANAGER, Action.TEAM_VIEW, facts).allowed
    assert not evaluate(OTHER_MANAGER, Action.TEAM_VIEW, facts).allowed
    assert not evaluate(EMPLOYEE, Action.TEAM_VIEW, facts).allowed
    assert evaluate(Caller(id=8, role="EMPLOYEE"), Action.TEAM_VIEW, facts).allowed


def test_managers_assign_tasks_only_to_their_reports_and_teams():
    assert evaluate(MANAGER, Action.TASK_ASSIGN, Facts(target_manager_id=MANAGER.id)).allowed
    assert not evaluate(MANAGER, Action.TASK_ASSIGN, Facts(target_manager_id=OTHER_MANAGER.id)).allowed
    assert evaluate(HEAD, Action.TASK_ASSIGN, Facts(target_manager_id=None)).allowed

    assert evaluate(MANAGER, Action.TASK_ASSIGN_TEAM, Facts(team_leader_id=MANAGER.id)).allowed
    assert not evaluate(MANAGER, Action.TASK_ASSIGN_TEAM, Facts(team_leader_id=9)).allowed


def test_task_patch_capabilities():
    facts = Facts(creator_id=MANAGER.id, assignee_id=EMPLOYEE.id, assignee_manager_id=MANAGER.id)

    employee_decision = evaluate(EMPLOYEE, Action.TASK_PATCH, facts)
    assert employee_decision.allowed
    assert "edit-fields" not in employee_decision.capabilities

    assert "edit-fields" in evaluate(MANAGER, Action.TASK_PATCH, facts).capabilities
    assert not evaluate(OTHER_MANAGER, Action.TASK_PATCH, facts).allowed
    assert not evaluate(EMPLOYEE, Action.TASK_EDIT, facts).allowed


def test_task_delete_by_employee_only_when_assignee():
    assert evaluate(EMPLOYEE, Action.TASK_DELETE, Facts(assignee_id=EMPLOYEE.id)).allowed
    assert not evaluate(EMPLOYEE, Action.TASK_DELETE, Facts(assignee_id=99)).allowed


def test_unknown_role_is_denied():
    assert not evaluate(Caller(id=1, role="INTERN"), Action.TEAM_PERMISSIONS).allowed
