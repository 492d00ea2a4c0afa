"""End-to-end tests for the automation engine entry point."""

from structlog.testing import capture_logs

from extensions import db
from models import AutomationLog, Contact, Deal, Task
from services.automation_engine import handle_trigger, init_automation_engine, process
from services.events import EventBus, Trigger, emit_contact_created, event_bus
from tests.factories import make_contact, make_pipeline, make_rule


class TestProcess:

    def test_web_form_contact_gets_welcome_call(self, app):
        make_contact(id="c1", source="web_form")
        rule = make_rule(
            name="Welcome web leads",
            conditions=[{"field": "contact.source", "operator": "eq", "value": "web_form"}],
            action="create_task",
            action_params={"title": "Welcome call"},
        )

        results = process("contact_created", {"contact": {"id": "c1", "source": "web_form"}})

        assert [r.to_dict() for r in results] == [{
            "success": True, "action": "create_task", "ruleId": rule.id, "ruleName": "Welcome web leads"
        }]
        task = Task.query.one()
        assert (task.title, task.contact_id) == ("Welcome call", "c1")

    def test_no_match_returns_empty_list(self, app):
        make_rule(conditions=[{"field": "contact.source", "operator": "eq", "value": "whatsapp"}])

        assert process("contact_created", {"contact": {"id": "c1", "source": "web_form"}}) == []
        assert Task.query.count() == 0

    def test_results_follow_priority(self, app):
        make_contact(id="c1")
        make_rule(name="later", priority=2, action_params={"title": "B"})
        make_rule(name="first", priority=1, action_params={"title": "A"})

        results = process("contact_created", {"contactId": "c1"})
        assert [r.rule_name for r in results] == ["first", "later"]

    def test_failing_rule_does_not_stop_the_rest(self, app):
        make_contact(id="c1")
        make_rule(name="broken", priority=1, action="send_message", action_params={"content": "hi"})
        make_rule(name="task", priority=2, action_params={"title": "Call"})

        results = process("contact_created", {"contactId": "c1"})

        assert [(r.rule_name, r.success) for r in results] == [("broken", False), ("task", True)]
        assert "no conversation" in results[0].error
        assert Task.query.count() == 1
        assert AutomationLog.query.filter_by(status="failed").count() == 1

    def test_disabled_engine_does_nothing(self, app):
        app.config["AUTOMATION_ENABLED"] = False
        make_contact(id="c1")
        make_rule()

        assert process("contact_created", {"contactId": "c1"}) == []
        assert Task.query.count() == 0


class TestChaining:

    def test_created_deal_triggers_deal_rules(self, app):
        make_pipeline()
        make_contact(id="c1")
        make_rule(trigger="contact_created", action="create_deal", action_params={"title": "Inbound"})
        make_rule(
            trigger="deal_created",
            conditions=[{"field": "deal.value", "operator": "gte", "value": "0"}],
            action="create_task",
            action_params={"title": "Qualify deal"},
        )

        process("contact_created", {"contactId": "c1"})

        deal = Deal.query.one()
        task = Task.query.one()
        assert task.title == "Qualify deal"
        assert task.deal_id == deal.id

    def test_runaway_chain_is_cut_off(self, app):
        app.config["AUTOMATION_MAX_CHAIN_DEPTH"] = 3
        make_pipeline()
        make_contact(id="c1")
        make_rule(trigger="deal_created", action="create_deal", action_params={"title": "Again"})

        with capture_logs() as logs:
            process("deal_created", {"contactId": "c1"})

        assert Deal.query.count() == 3
        assert any(e["event"] == "automation.chain_depth_exceeded" for e in logs)

    def test_depth_resets_after_a_chain(self, app):
        app.config["AUTOMATION_MAX_CHAIN_DEPTH"] = 1
        make_contact(id="c1")
        make_rule(action_params={"title": "Call"})

        process("contact_created", {"contactId": "c1"})
        process("contact_created", {"contactId": "c1"})
        assert Task.query.count() == 2


class TestCallerSession:

    def test_flushed_caller_work_survives_a_failing_rule(self, app):
        make_rule(name="broken", action="send_message", action_params={"content": "hi"})
        contact = Contact(id="c9", name="Pending", source="web_form")
        db.session.add(contact)
        db.session.flush()

        with capture_logs() as logs:
            emit_contact_created(contact)
        db.session.commit()

        assert Contact.query.filter_by(id="c9").count() == 1
        assert AutomationLog.query.count() == 0
        assert any(e["event"] == "automation.uncommitted_session" for e in logs)

    def test_pending_caller_work_is_not_committed_early(self, app):
        make_rule(action_params={"title": "Call"})
        db.session.add(Contact(id="c9", name="Pending"))

        assert process("contact_created", {"contactId": "c9"}) == []
        db.session.rollback()

        assert Contact.query.count() == 0
        assert Task.query.count() == 0

    def test_runs_once_the_caller_has_committed(self, app):
        make_rule(action_params={"title": "Call"})
        db.session.add(Contact(id="c9", name="Saved"))
        db.session.flush()
        db.session.commit()

        assert [r.success for r in process("contact_created", {"contactId": "c9"})] == [True]


class TestWiring:

    def test_engine_listens_on_global_bus(self, app):
        contact = make_contact(id="c1", source="web_form")
        make_rule(conditions=[{"field": "contact.source", "operator": "eq", "value": "web_form"}],
                  action_params={"title": "Welcome call"})

        emit_contact_created(contact)

        assert Task.query.one().contact_id == "c1"

    def test_init_is_idempotent(self, app):
        bus = EventBus()
        init_automation_engine(bus)
        init_automation_engine(bus)

        for trigger in Trigger:
            assert bus.listeners(trigger) == [handle_trigger]
        assert event_bus.listeners(Trigger.CONTACT_CREATED).count(handle_trigger) == 1

    def test_handle_trigger_swallows_bad_input(self, app):
        with capture_logs() as logs:
            assert handle_trigger("not_a_trigger", {}) == []
        assert logs[0]["event"] == "automation.trigger_failed"
