"""Tests for the automation rule admin API."""

from models import ActivityLog, AutomationRule, RoundRobinState
from extensions import db
from services.automation_engine import dispatch, MatchedRule
from tests.factories import make_rule

VALID_RULE = {
    "name": "Welcome web leads",
    "trigger": "contact_created",
    "conditions": [{"field": "contact.source", "operator": "eq", "value": "web_form"}],
    "action": "create_task",
    "action_params": {"title": "Welcome call"},
    "priority": 1,
}


class TestAuth:

    def test_health_is_public(self, client):
        assert client.get("/api/automation/health").status_code == 200

    def test_token_required(self, client):
        assert client.get("/api/automation-rules").status_code == 401

    def test_agents_cannot_write(self, client, agent_headers):
        response = client.post("/api/automation-rules", json=VALID_RULE, headers=agent_headers)
        assert response.status_code == 403

    def test_agents_can_read(self, client, agent_headers):
        assert client.get("/api/automation-rules", headers=agent_headers).status_code == 200


class TestCreateRule:

    def test_create(self, client, admin_headers, admin_user):
        response = client.post("/api/automation-rules", json=VALID_RULE, headers=admin_headers)

        assert response.status_code == 201
        rule = response.get_json()["rule"]
        assert rule["trigger"] == "contact_created"
        assert rule["is_active"] is True
        assert rule["created_by_id"] == admin_user.id

        log = ActivityLog.query.filter_by(entity_type="automation_rule").one()
        assert (log.action, log.user_id) == ("create", admin_user.id)

    def test_list_values_are_joined(self, client, admin_headers):
        data = dict(VALID_RULE, conditions=[
            {"field": "contact.source", "operator": "in", "value": ["web_form", "whatsapp"]}
        ])
        response = client.post("/api/automation-rules", json=data, headers=admin_headers)

        assert response.get_json()["rule"]["conditions"][0]["value"] == "web_form,whatsapp"

    def test_field_must_fit_trigger(self, client, admin_headers):
        data = dict(VALID_RULE, conditions=[{"field": "deal.value", "operator": "gt", "value": "10"}])
        response = client.post("/api/automation-rules", json=data, headers=admin_headers)

        assert response.status_code == 400
        assert "conditions.0.field" in response.get_json()["fields"]

    def test_unknown_action_and_trigger(self, client, admin_headers):
        data = dict(VALID_RULE, action="launch_rockets", trigger="contact_deleted", conditions=[])
        response = client.post("/api/automation-rules", json=data, headers=admin_headers)

        assert response.status_code == 400
        assert set(response.get_json()["fields"]) == {"action", "trigger"}

    def test_negative_priority(self, client, admin_headers):
        response = client.post("/api/automation-rules", json=dict(VALID_RULE, priority=-1), headers=admin_headers)
        assert response.status_code == 400
        assert AutomationRule.query.count() == 0


class TestReadRules:

    def test_list_with_filters(self, client, admin_headers):
        make_rule(trigger="contact_created", name="Welcome")
        make_rule(trigger="deal_created", name="Qualify")
        make_rule(trigger="deal_created", name="Inactive", is_active=False)

        body = client.get("/api/automation-rules?trigger=deal_created&is_active=true", headers=admin_headers).get_json()
        assert body["total"] == 1
        assert [r["name"] for r in body["entries"]] == ["Qualify"]

    def test_get_one_and_missing(self, client, admin_headers):
        rule = make_rule()

        assert client.get(f"/api/automation-rules/{rule.id}", headers=admin_headers).get_json()["id"] == rule.id
        assert client.get("/api/automation-rules/ghost", headers=admin_headers).status_code == 404

    def test_fields_metadata(self, client, admin_headers):
        body = client.get("/api/automation/fields", headers=admin_headers).get_json()

        assert "contact.source" in body["fields"]["contact_created"]
        assert "create_deal" in body["actions"]
        assert "not_in" in body["operators"]


class TestUpdateRule:

    def test_patch(self, client, admin_headers):
        rule = make_rule()
        response = client.patch(f"/api/automation-rules/{rule.id}", json={"priority": 7}, headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()["rule"]["priority"] == 7

    def test_changing_trigger_revalidates_conditions(self, client, admin_headers):
        rule = make_rule(conditions=[{"field": "contact.source", "operator": "eq", "value": "web_form"}])
        response = client.patch(f"/api/automation-rules/{rule.id}", json={"trigger": "task_completed"},
                                headers=admin_headers)

        assert response.status_code == 400
        assert db.session.get(AutomationRule, rule.id).trigger == "contact_created"

    def test_patch_missing(self, client, admin_headers):
        assert client.patch("/api/automation-rules/ghost", json={"priority": 1}, headers=admin_headers).status_code == 404

    def test_toggle(self, client, admin_headers):
        rule = make_rule()
        response = client.put(f"/api/automation/rules/{rule.id}/toggle", headers=admin_headers)

        assert response.get_json()["is_active"] is False
        assert db.session.get(AutomationRule, rule.id).is_active is False


class TestDeleteRule:

    def test_delete_drops_round_robin_state(self, client, admin_headers):
        rule = make_rule(action="assign_agent", action_params={"mode": "round_robin"})
        db.session.add(RoundRobinState(rule_id=rule.id, last_index=0, last_agent_id="a"))
        db.session.commit()

        response = client.delete(f"/api/automation-rules/{rule.id}", headers=admin_headers)

        assert response.status_code == 200
        assert db.session.get(AutomationRule, rule.id) is None
        assert RoundRobinState.query.count() == 0


class TestLogs:

    def test_filter_by_status(self, client, admin_headers):
        dispatch(MatchedRule(id="r1", name="Broken", action="launch_rockets"), {}, trigger="contact_created")

        body = client.get("/api/automation/logs?status=failed", headers=admin_headers).get_json()
        assert [(l["rule_id"], l["error"]) for l in body] == [("r1", "Unknown action type: launch_rockets")]
        assert client.get("/api/automation/logs?status=success", headers=admin_headers).get_json() == []
