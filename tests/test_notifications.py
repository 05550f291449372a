"""
Tests for notification sinks
"""
import asyncio
import logging

from raceledger.services.notifications import (
    ORPHANED_SESSION,
    SESSION_COMPLETED,
    LoggingNotifier,
    WebSocketNotifier,
)
from raceledger.services.orphans import OrphanHandler
from raceledger.services.session_importer import SessionImporter


class FakeWebSocket:
    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, message):
        self.sent.append(message)


class TestLoggingNotifier:
    def test_logs_event_without_results(self, caplog):
        with caplog.at_level(logging.INFO, logger="raceledger.services.notifications"):
            LoggingNotifier().publish(SESSION_COMPLETED, {"raceId": 4, "results": [{"id": 1}]})

        assert "sessionCompleted" in caplog.text
        assert "raceId=4" in caplog.text
        assert "results" not in caplog.text

    def test_importer_works_with_logging_sink(self, session_factory, settings, race, make_session, caplog):
        notifier = LoggingNotifier()
        importer = SessionImporter(session_factory, notifier, OrphanHandler(session_factory, notifier), settings)
        info, drivers = make_session()

        with caplog.at_level(logging.INFO, logger="raceledger.services.notifications"):
            importer.import_session(info, drivers, race_id=race.id)

        assert SESSION_COMPLETED in caplog.text


class TestWebSocketNotifier:
    def test_publish_without_loop_is_dropped(self):
        WebSocketNotifier().publish(ORPHANED_SESSION, {"orphanId": 1})

    def test_broadcast_reaches_connected_clients(self):
        notifier = WebSocketNotifier()
        websocket = FakeWebSocket()

        async def _run():
            notifier.attach_loop(asyncio.get_running_loop())
            await notifier.connect(websocket)
            notifier.publish(ORPHANED_SESSION, {"orphanId": 1})
            await asyncio.sleep(0)

        asyncio.run(_run())

        assert websocket.sent == [{"event": ORPHANED_SESSION, "data": {"orphanId": 1}}]
