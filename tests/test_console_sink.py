"""Tests for the console sink."""

import json

import pytest

from analytics_core.envelope import EnrichedEvent
from analytics_core.events import ApiRequest, ApplicationError
from analytics_core.sinks.console import ConsoleSink, summarize


class TestConsoleSink:
    @pytest.mark.asyncio
    async def test_summary_lines(self, enricher, login_event, user_id, capsys):
        batch = [
            enricher.enrich(login_event),
            enricher.enrich(ApiRequest(
                service="billing",
                endpoint="/invoices",
                method="GET",
                status_code=200,
                duration_ms=12,
            )),
        ]

        assert await ConsoleSink().send(batch) is True

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "[ANALYTICS] batch of 2 events"
        assert "auth_login_attempt" in lines[1]
        assert f"user={user_id}" in lines[1]
        assert "host=test-host" in lines[1]
        assert "api_request" in lines[2]
        assert "service=billing" in lines[2]
        assert "user=" not in lines[2]

    @pytest.mark.asyncio
    async def test_payload_matches_wire_body(self, enricher, login_event, capsys):
        envelope = enricher.enrich(login_event)

        assert await ConsoleSink(payload=True).send([envelope]) is True

        out = capsys.readouterr().out.strip()
        assert out.startswith("[ANALYTICS] ")
        body = json.loads(out[len("[ANALYTICS] "):])
        assert body == [envelope.to_dict()]

    @pytest.mark.asyncio
    async def test_empty_batch_prints_nothing(self, capsys):
        assert await ConsoleSink().send([]) is True
        assert capsys.readouterr().out == ""

    @pytest.mark.asyncio
    async def test_unserializable_payload(self, enricher, capsys, caplog):
        event = ApplicationError(
            service="api",
            error_type="Boom",
            error_message="boom",
            context={"handle": object()},
        )

        assert await ConsoleSink(payload=True).send([enricher.enrich(event)]) is False
        assert capsys.readouterr().out == ""
        assert "Failed to print analytics events" in caplog.text

    def test_summarize_without_hostname(self, fixed_timestamp, login_event):
        envelope = EnrichedEvent(timestamp=fixed_timestamp, event=login_event)
        assert summarize(envelope).endswith("host=-")
        assert summarize(envelope).startswith("2024-01-15T12:00:00+00:00 auth_login_attempt")
