"""Tests for intent dispatch and the session SDK."""

import asyncio
import logging

from skillgraph.models.intent import SKILL_EXECUTED
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import Skill
from skillgraph.sdk.dispatcher import CancellationToken
from skillgraph.sdk.session import build_session, open_session


def _intent(*stages, kind="test"):
    return {
        "kind": kind,
        "stages": [{"skillId": skill_id, "params": params} for skill_id, params in stages],
    }


class TestDispatch:
    """Test running intents stage by stage."""

    def test_runs_stages_in_order(self, session, graph_api):
        outcome = asyncio.run(session.dispatcher.dispatch(_intent(
            ("struct.createNodes", {"nodes": [{"id": "a"}, {"id": "b"}]}),
            ("struct.createEdges", {"edges": [{"source": "a", "target": "b"}]}),
        )))
        assert outcome.success
        assert [stage.skill_id for stage in outcome.stages] == ["struct.createNodes", "struct.createEdges"]
        assert len(graph_api.get_edges()) == 1

    def test_stops_at_failed_stage(self, session, graph_api):
        outcome = asyncio.run(session.dispatcher.dispatch(_intent(
            ("struct.createEdges", {"edges": [{"source": "a", "target": "b"}]}),
            ("struct.createNodes", {"nodes": [{"id": "a"}]}),
        )))
        assert not outcome.success
        assert len(outcome.stages) == 1
        assert graph_api.get_nodes() == []

    def test_emits_skill_executed(self, session, bus):
        asyncio.run(session.dispatcher.dispatch(_intent(("validation.orphans", {}), kind="check")))
        (event,) = bus.named(SKILL_EXECUTED)
        assert event.payload["skillId"] == "validation.orphans"
        assert event.payload["intent"] == "check"
        assert event.payload["success"] is True
        assert event.payload["timestamp"]

    def test_run_skill(self, session):
        result = asyncio.run(session.dispatcher.run_skill("struct.createNodes", {"nodes": [{"id": "a"}]}))
        assert result.success


class TestCancellation:
    """Test cooperative cancellation between stages."""

    def test_cancel_between_stages(self, session, graph_api, caplog):
        """A stage that cancels the intent still completes; the next one never starts."""
        dispatcher = session.dispatcher

        def cancel_intent(ctx, params):
            dispatcher.cancel()
            return OperationResult.ok({"cancelled": True})

        session.registry.register(Skill(id="test.cancel", title="Cancel", run=cancel_intent))
        with caplog.at_level(logging.INFO, logger="skillgraph.sdk.dispatcher"):
            outcome = asyncio.run(dispatcher.dispatch(_intent(
                ("struct.createNodes", {"nodes": [{"id": "a"}]}),
                ("test.cancel", {}),
                ("struct.createNodes", {"nodes": [{"id": "b"}]}),
            )))
        assert outcome.cancelled
        assert not outcome.success
        assert [stage.skill_id for stage in outcome.stages] == ["struct.createNodes", "test.cancel"]
        assert [node.id for node in graph_api.get_nodes()] == ["a"]
        assert any("cancelled before stage 2" in record.getMessage() for record in caplog.records)

    def test_new_dispatch_cancels_previous_token(self, session):
        dispatcher = session.dispatcher
        asyncio.run(dispatcher.dispatch(_intent(("validation.orphans", {}))))
        first = dispatcher.token
        asyncio.run(dispatcher.dispatch(_intent(("validation.orphans", {}))))
        assert first.cancelled
        assert not dispatcher.token.cancelled

    def test_token(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        assert token.cancelled


class TestSession:
    """Test session construction helpers."""

    def test_build_from_payload(self):
        session = build_session({"nodes": [{"id": "a"}], "edges": [], "groups": []})
        assert [node.id for node in session.graph_api.get_nodes()] == ["a"]

    def test_open_session_cancels_on_exit(self):
        with open_session() as session:
            asyncio.run(session.dispatcher.dispatch(_intent(("validation.orphans", {}))))
            token = session.dispatcher.token
            assert not token.cancelled
        assert token.cancelled
