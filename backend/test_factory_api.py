"""
API tests for the Assembly Factory backend
"""

import pytest

from assembly_factory.core.delete_confirmation import DeleteConfirmation

ASSEMBLIES = "/api/factory/assemblies"
PARTS = "/api/factory/parts"
STAGING = "/api/factory/staging"


def create_assembly(client, name="Athlete View", codes=("schedule", "scoring"), role="ATHLETE"):
    response = client.post(
        ASSEMBLIES,
        json={"name": name, "target_role": role, "parts": [{"part_code": code} for code in codes]},
    )
    assert response.status_code == 201, response.text
    return response.json()


def assert_error(response, status_code, error_code):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == error_code
    assert body["error"]
    assert isinstance(body["details"], dict)
    return body


# ─────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────
def test_health(client):
    response = client.get("/api/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_readiness_reports_catalog(client):
    data = client.get("/api/health/ready").json()
    assert data["status"] == "ready"
    assert data["catalog_loaded"] is True
    assert data["catalog_parts"] == 23


def test_request_id_header(client):
    response = client.get("/api/health/", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert client.get("/api/health/").headers["X-Request-ID"]


# ─────────────────────────────────────────────────────────────
# Parts
# ─────────────────────────────────────────────────────────────
def test_list_and_filter_parts(client):
    parts = client.get(PARTS).json()
    assert len(parts) == 23

    widgets = client.get(PARTS, params={"type": "WIDGET"}).json()
    assert {part["code"] for part in widgets} == {"stats_card", "chart_line", "chart_bar", "recent_activity", "quick_actions"}

    found = client.get(PARTS, params={"q": "qr"}).json()
    assert [part["code"] for part in found] == ["qr_scanner"]


def test_get_part_and_schema(client):
    assert client.get(f"{PARTS}/scoring").json()["functional_type"] == "FULLSTACK"
    assert_error(client.get(f"{PARTS}/missing"), 404, "NOT_FOUND")

    schema = client.get(f"{PARTS}/score_input/schema").json()
    assert schema["has_specific_schema"] is True
    assert [field["name"] for field in schema["fields"]] == ["label", "max_score", "allow_x", "visible", "class_name"]
    assert schema["defaults"]["max_score"] == 10

    fallback = client.get(f"{PARTS}/attendance/schema").json()
    assert fallback["has_specific_schema"] is False
    assert fallback["defaults"] == {"title": "Untitled", "visible": True, "class_name": ""}


def test_part_admin(client):
    created = client.post(
        PARTS, json={"code": "leaderboard", "name": "Leaderboard", "category": "SPORT", "functional_type": "WIDGET"}
    )
    assert created.status_code == 201
    assert_error(
        client.post(PARTS, json={"code": "leaderboard", "name": "X", "category": "SPORT", "functional_type": "WIDGET"}),
        409,
        "RESOURCE_CONFLICT",
    )
    assert client.put(f"{PARTS}/leaderboard", json={"name": "Top Archers"}).json()["name"] == "Top Archers"

    assert client.delete(f"{PARTS}/leaderboard").json()["status"] == "DEPRECATED"
    assert "leaderboard" not in {part["code"] for part in client.get(PARTS).json()}
    assert_error(client.delete(f"{PARTS}/scoring"), 400, "VALIDATION_ERROR")


# ─────────────────────────────────────────────────────────────
# Assemblies
# ─────────────────────────────────────────────────────────────
def test_create_assembly(client):
    data = create_assembly(client)

    assert data["status"] == "DRAFT"
    assert data["code"] == "athlete_view_v1"
    assert [(part["part_code"], part["sort_order"]) for part in data["parts"]] == [("schedule", 0), ("scoring", 1)]
    assert data["parts"][1]["config"]["default_distance"] == 70
    assert "approve" in data["available_actions"]

    listed = client.get(ASSEMBLIES, params={"target_role": "ATHLETE"}).json()
    assert [item["id"] for item in listed] == [data["id"]]
    assert client.get(ASSEMBLIES, params={"status": "DEPLOYED"}).json() == []


@pytest.mark.parametrize(
    "body,status_code,error_code",
    [
        ({"name": "X", "target_role": "COACH", "parts": []}, 400, "VALIDATION_ERROR"),
        ({"name": "X", "target_role": "COACH", "parts": [{"part_code": "ghost"}]}, 400, "VALIDATION_ERROR"),
        ({"name": "X", "target_role": "COACH", "parts": [{"part_code": "scoring"}, {"part_code": "scoring"}]},
         409, "RESOURCE_CONFLICT"),
    ],
)
def test_create_assembly_errors(client, body, status_code, error_code):
    assert_error(client.post(ASSEMBLIES, json=body), status_code, error_code)


def test_duplicate_code_conflicts(client):
    create_assembly(client)
    body = assert_error(
        client.post(ASSEMBLIES, json={"name": "athlete view", "target_role": "COACH", "parts": [{"part_code": "scoring"}]}),
        409,
        "RESOURCE_CONFLICT",
    )
    assert body["details"]["conflicting_resource"] == "athlete_view_v1"


def test_unknown_assembly_is_404(client):
    assert_error(client.get(f"{ASSEMBLIES}/nope"), 404, "NOT_FOUND")
    assert_error(client.post(f"{ASSEMBLIES}/nope/approve"), 404, "NOT_FOUND")


def test_patch_cannot_set_status(client):
    data = create_assembly(client)
    assert_error(client.put(f"{ASSEMBLIES}/{data['id']}", json={"status": "DEPLOYED"}), 400, "VALIDATION_ERROR")

    renamed = client.put(f"{ASSEMBLIES}/{data['id']}", json={"name": "Athlete Home"}).json()
    assert renamed["name"] == "Athlete Home"
    assert renamed["status"] == "DRAFT"


def test_membership_endpoints(client):
    data = create_assembly(client)
    assembly_id = data["id"]

    added = client.post(f"{ASSEMBLIES}/{assembly_id}/parts", json={"part_code": "stats_card"})
    assert added.status_code == 201
    parts = added.json()["parts"]
    assert [part["sort_order"] for part in parts] == [0, 1, 2]

    body = assert_error(client.post(f"{ASSEMBLIES}/{assembly_id}/parts", json={"part_code": "scoring"}), 409, "RESOURCE_CONFLICT")
    assert body["error"] == "Part already exists"

    ids = [part["id"] for part in parts]
    reordered = client.put(f"{ASSEMBLIES}/{assembly_id}/order", json={"instance_ids": list(reversed(ids))}).json()
    assert [part["part_code"] for part in reordered["parts"]] == ["stats_card", "scoring", "schedule"]
    assert_error(client.put(f"{ASSEMBLIES}/{assembly_id}/order", json={"instance_ids": ids[:1]}), 400, "VALIDATION_ERROR")

    configured = client.patch(
        f"{ASSEMBLIES}/{assembly_id}/parts/{ids[2]}/config", json={"values": {"title": "Archers"}}
    ).json()
    stats = next(part for part in configured["parts"] if part["id"] == ids[2])
    assert stats["config"]["title"] == "Archers"

    removed = client.delete(f"{ASSEMBLIES}/{assembly_id}/parts/{ids[0]}").json()
    assert [part["sort_order"] for part in removed["parts"]] == [0, 1]


def test_oversized_number_config_is_rejected(client):
    assembly = create_assembly(client, codes=("recent_activity",))
    instance_id = assembly["parts"][0]["id"]
    url = f"{ASSEMBLIES}/{assembly['id']}/parts/{instance_id}/config"

    body = assert_error(client.patch(url, json={"values": {"limit": 10**400}}), 400, "VALIDATION_ERROR")
    assert body["details"]["field"] == "limit"
    assert client.patch(url, json={"values": {"limit": 5}}).json()["parts"][0]["config"]["limit"] == 5


def test_lifecycle_endpoints(client):
    assembly_id = create_assembly(client)["id"]

    tested = client.post(f"{ASSEMBLIES}/{assembly_id}/test", json={"test_notes": "pilot"}).json()
    assert tested["status"] == "TESTING"
    assert tested["test_notes"] == "pilot"

    approved = client.post(f"{ASSEMBLIES}/{assembly_id}/approve", json={"actor": "admin-1"}).json()
    assert approved["status"] == "APPROVED"
    assert approved["approved_by"] == "admin-1"

    deployed = client.post(f"{ASSEMBLIES}/{assembly_id}/deploy").json()
    assert deployed["status"] == "DEPLOYED"
    assert deployed["available_actions"] == ["rollback"]

    body = assert_error(client.post(f"{ASSEMBLIES}/{assembly_id}/approve"), 409, "INVALID_TRANSITION")
    assert body["details"]["current_status"] == "DEPLOYED"

    ids = [part["id"] for part in deployed["parts"]]
    assert_error(
        client.put(f"{ASSEMBLIES}/{assembly_id}/order", json={"instance_ids": list(reversed(ids))}),
        409,
        "ASSEMBLY_LOCKED",
    )
    assert_error(client.post(f"{ASSEMBLIES}/{assembly_id}/parts", json={"part_code": "chart_bar"}), 409, "ASSEMBLY_LOCKED")

    assert client.post(f"{ASSEMBLIES}/{assembly_id}/rollback").json()["status"] == "APPROVED"
    reordered = client.put(f"{ASSEMBLIES}/{assembly_id}/order", json={"instance_ids": list(reversed(ids))})
    assert reordered.status_code == 200

    reverted = client.post(f"{ASSEMBLIES}/{assembly_id}/revert").json()
    assert reverted["status"] == "DRAFT"
    assert reverted["version"] == 2


def test_render_endpoint(client):
    assembly_id = create_assembly(client, codes=("scoring", "score_input"))["id"]

    data = client.get(f"{ASSEMBLIES}/{assembly_id}/render").json()
    assert data["error_count"] == 0
    assert [block["template"] for block in data["blocks"]] == ["composite_block", "score_input"]


# ─────────────────────────────────────────────────────────────
# Two-phase delete
# ─────────────────────────────────────────────────────────────
def test_two_phase_delete(client):
    assembly_id = create_assembly(client)["id"]

    first = client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()
    assert first["outcome"] == "ARMED"
    assert first["deleted"] is False
    assert client.get(f"{ASSEMBLIES}/{assembly_id}").status_code == 200

    second = client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()
    assert second["outcome"] == "CONFIRMED"
    assert second["deleted"] is True
    assert_error(client.get(f"{ASSEMBLIES}/{assembly_id}"), 404, "NOT_FOUND")


def test_delete_request_expires(client, fake_clock):
    client.app.state.delete_confirmation = DeleteConfirmation(3.0, clock=fake_clock)
    assembly_id = create_assembly(client)["id"]

    client.post(f"{ASSEMBLIES}/{assembly_id}/delete")
    fake_clock.advance(4)
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"
    assert client.get(f"{ASSEMBLIES}/{assembly_id}").status_code == 200


def test_other_mutation_disarms_delete(client):
    assembly_id = create_assembly(client)["id"]
    other_id = create_assembly(client, name="Coach View", role="COACH")["id"]

    client.post(f"{ASSEMBLIES}/{assembly_id}/delete")
    client.post(f"{ASSEMBLIES}/{other_id}/approve")
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"

    client.post(f"{ASSEMBLIES}/{other_id}/delete")
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["deleted"] is True


def test_delete_unknown_id_does_not_arm(client):
    assert_error(client.post(f"{ASSEMBLIES}/nope/delete"), 404, "NOT_FOUND")
    assert client.app.state.delete_confirmation.armed_id is None


def test_delete_unknown_id_cancels_pending_delete(client):
    assembly_id = create_assembly(client)["id"]

    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"
    assert_error(client.post(f"{ASSEMBLIES}/nope/delete"), 404, "NOT_FOUND")
    assert client.app.state.delete_confirmation.armed_id is None

    again = client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()
    assert again["outcome"] == "ARMED"
    assert again["deleted"] is False
    assert client.get(f"{ASSEMBLIES}/{assembly_id}").status_code == 200


def test_part_admin_disarms_delete(client):
    assembly_id = create_assembly(client)["id"]

    client.post(f"{ASSEMBLIES}/{assembly_id}/delete")
    client.post(
        PARTS, json={"code": "leaderboard", "name": "Leaderboard", "category": "SPORT", "functional_type": "WIDGET"}
    )
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"

    client.put(f"{PARTS}/leaderboard", json={"name": "Top Archers"})
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"

    client.delete(f"{PARTS}/leaderboard")
    assert client.post(f"{ASSEMBLIES}/{assembly_id}/delete").json()["outcome"] == "ARMED"
    assert client.get(f"{ASSEMBLIES}/{assembly_id}").status_code == 200


# ─────────────────────────────────────────────────────────────
# Staging
# ─────────────────────────────────────────────────────────────
def test_staging_flow_and_commit(client):
    session_id = client.post(STAGING).json()["session_id"]

    state = client.post(f"{STAGING}/{session_id}/parts", json={"part_code": "scoring"}).json()
    assert state["applied"] is True
    state = client.post(f"{STAGING}/{session_id}/parts", json={"part_code": "schedule"}).json()
    duplicate = client.post(f"{STAGING}/{session_id}/parts", json={"part_code": "schedule"}).json()
    assert duplicate["applied"] is False
    assert duplicate["state"] == state["state"]

    ids = [instance["instance_id"] for instance in state["state"]["instances"]]
    rejected = client.put(f"{STAGING}/{session_id}/order", json={"instance_ids": ids[:1]}).json()
    assert rejected["applied"] is False
    reordered = client.put(f"{STAGING}/{session_id}/order", json={"instance_ids": list(reversed(ids))}).json()
    assert [i["part_code"] for i in reordered["state"]["instances"]] == ["schedule", "scoring"]

    assert client.put(f"{STAGING}/{session_id}/selection", json={"instance_id": ids[0]}).json()["applied"] is True
    editor = client.get(f"{STAGING}/{session_id}/editor").json()
    assert editor["surface"]["part_code"] == "scoring"

    configured = client.patch(
        f"{STAGING}/{session_id}/parts/{ids[0]}/config", json={"values": {"arrows_per_end": "3"}}
    ).json()
    scoring = next(i for i in configured["state"]["instances"] if i["instance_id"] == ids[0])
    assert scoring["config"]["arrows_per_end"] == 3

    preview = client.get(f"{STAGING}/{session_id}/preview").json()
    assert [block["part_code"] for block in preview["blocks"]] == ["schedule", "scoring"]

    committed = client.post(f"{STAGING}/{session_id}/commit", json={"name": "Athlete View", "target_role": "ATHLETE"})
    assert committed.status_code == 200
    data = committed.json()
    assert data["status"] == "DRAFT"
    assert [part["part_code"] for part in data["parts"]] == ["schedule", "scoring"]
    assert data["parts"][1]["config"]["arrows_per_end"] == 3
    assert_error(client.get(f"{STAGING}/{session_id}"), 404, "NOT_FOUND")
    assert len(client.app.state.staging_store) == 0


def test_failed_commit_keeps_staging(client):
    create_assembly(client)
    session_id = client.post(STAGING).json()["session_id"]
    client.post(f"{STAGING}/{session_id}/parts", json={"part_code": "scoring"})

    assert_error(
        client.post(f"{STAGING}/{session_id}/commit", json={"name": "Athlete View", "target_role": "ATHLETE"}),
        409,
        "RESOURCE_CONFLICT",
    )
    assert len(client.get(f"{STAGING}/{session_id}").json()["state"]["instances"]) == 1


def test_load_deployed_assembly_is_refused(client):
    assembly_id = create_assembly(client)["id"]
    client.post(f"{ASSEMBLIES}/{assembly_id}/approve")
    client.post(f"{ASSEMBLIES}/{assembly_id}/deploy")
    session_id = client.post(STAGING).json()["session_id"]

    assert_error(client.post(f"{STAGING}/{session_id}/load/{assembly_id}"), 409, "ASSEMBLY_LOCKED")

    client.post(f"{ASSEMBLIES}/{assembly_id}/rollback")
    loaded = client.post(f"{STAGING}/{session_id}/load/{assembly_id}").json()
    assert [i["part_code"] for i in loaded["state"]["instances"]] == ["schedule", "scoring"]


def test_unknown_staging_session(client):
    assert_error(client.get(f"{STAGING}/temp-missing"), 404, "NOT_FOUND")
