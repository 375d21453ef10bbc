from playbookd.roles import (
    can_create_content,
    can_manage_coaching_requests,
    can_switch_roles,
    dashboard_route_for,
    default_permissions,
    is_athlete,
    is_coach,
    normalize_role,
)


def test_dashboard_routes():
    assert dashboard_route_for("superadmin") == "/dashboard/overview"
    assert dashboard_route_for("admin") == "/dashboard/overview"
    assert dashboard_route_for("creator") == "/dashboard/overview"
    assert dashboard_route_for("coach") == "/dashboard/coaching"
    assert dashboard_route_for("assistant") == "/dashboard/coaching"
    assert dashboard_route_for("athlete") == "/dashboard"
    assert dashboard_route_for("user") == "/dashboard"
    assert dashboard_route_for("mystery") == "/dashboard"
    assert dashboard_route_for(None) == "/"


def test_legacy_roles_normalize():
    assert normalize_role("user") == "athlete"
    assert normalize_role("Creator") == "coach"
    assert normalize_role("assistant_coach") == "assistant"
    assert normalize_role(None) == "athlete"
    assert normalize_role("guest") == "athlete"
    assert normalize_role("hacker") == "athlete"
    assert normalize_role("superadmin") == "superadmin"


def test_predicates_accept_legacy_names():
    assert is_coach({"role": "creator"})
    assert is_coach("coach")
    assert not is_coach("admin")
    assert is_athlete({"role": "user"})
    assert not is_athlete("coach")


def test_default_permissions():
    coach = default_permissions("coach")
    assert coach["canCreateContent"] and coach["canManageAthletes"]
    assert not coach["canManageUsers"]

    assistant = default_permissions("assistant")
    assert assistant["canAccessAnalytics"]
    assert not assistant["canCreateContent"]

    assert all(default_permissions("admin").values())
    assert not any(default_permissions("athlete").values())


def test_capability_checks():
    assert can_create_content({"role": "coach"})
    assert can_create_content({"role": "athlete", "permissions": {"canCreateContent": True}})
    assert not can_create_content({"role": "athlete"})
    assert not can_create_content(None)

    assert can_manage_coaching_requests({"role": "assistant"})
    assert not can_manage_coaching_requests({"role": "athlete"})

    assert can_switch_roles({"role": "admin"})
    assert not can_switch_roles({"role": "admin", "permissions": {"canSwitchRoles": False}})
    assert not can_switch_roles({"role": "coach"})
