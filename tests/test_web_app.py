import os
import tempfile
import unittest
from datetime import datetime, timezone
from unittest import mock

import openai

from carebrief.briefs.weekly_digest import DigestRun
from carebrief.config import Settings
from carebrief.curation.pipeline import CurationReport, CurationResult
from carebrief.errors import DeliveryError
from carebrief.storage.destinations import JsonDestinationRegistry
from web_app import create_app


def _curation():
    return CurationResult(domestic=[], overseas=[], report=CurationReport(since=datetime(2025, 1, 1, tzinfo=timezone.utc)))


class TestWebApp(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = Settings(
            openai_api_key="k",
            line_channel_access_token="t",
            destinations_path=os.path.join(self.tmp.name, "destinations.json"),
        )
        self.registry = JsonDestinationRegistry(self.settings.destinations_path)
        self.digest = mock.Mock()
        self.digest.collect.return_value = _curation()
        self.digest.build.return_value = DigestRun(
            curation=_curation(), domestic=[], overseas=[], messages=[{"type": "text", "text": "x"}]
        )
        self.line = mock.Mock()
        app = create_app(self.settings, digest=self.digest, line_client=self.line, registry=self.registry)
        self.client = app.test_client()

    def tearDown(self):
        self.tmp.cleanup()

    def test_health(self):
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "healthy")

    def test_broadcast_weekly_defaults_to_broadcast(self):
        body = self.client.get("/broadcast-weekly").get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["mode"], "broadcast")
        self.line.broadcast.assert_called_once()

    def test_broadcast_weekly_dry_run(self):
        body = self.client.get("/broadcast-weekly?send=0&to=C1").get_json()
        self.assertEqual(body["mode"], "push:single")
        self.assertFalse(body["sent"])
        self.line.push.assert_not_called()

    def test_all_groups_without_groups(self):
        resp = self.client.get("/broadcast-weekly?to=all-groups")
        self.assertEqual(resp.status_code, 400)
        self.digest.build.assert_not_called()

    def test_broadcast_failure_returns_502(self):
        self.line.broadcast.side_effect = DeliveryError("unauthorized", 401)
        resp = self.client.get("/broadcast-weekly")
        self.assertEqual(resp.status_code, 502)

    def test_debug_collect(self):
        body = self.client.get("/debug/collect?n=2").get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["domestic_count"], 0)
        self.assertEqual(body["since_iso"], "2025-01-01T00:00:00+00:00")

    def test_webhook_records_group_and_replies(self):
        payload = {
            "events": [
                {
                    "type": "message",
                    "replyToken": "r1",
                    "timestamp": 1736125200000,
                    "source": {"type": "group", "groupId": "Cgroup"},
                    "message": {"type": "text", "text": "こんにちは"},
                }
            ]
        }
        resp = self.client.post("/webhook", json=payload)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.registry.list_destinations("group"), ["Cgroup"])
        self.line.reply.assert_called_once()
        groups = self.client.get("/groups").get_json()
        self.assertEqual(groups["defaultTo"], "Cgroup")

    def test_set_default_and_test_push(self):
        self.assertEqual(self.client.get("/groups/test").status_code, 400)
        self.assertEqual(self.client.post("/groups/default").status_code, 400)
        body = self.client.post("/groups/default?to=Cnew").get_json()
        self.assertEqual(body["defaultTo"], "Cnew")
        self.assertEqual(self.client.get("/groups/test").get_json()["to"], "Cnew")
        self.line.push.assert_called_once()

    def test_test_message_push(self):
        body = self.client.get("/test-message?to=Cx").get_json()
        self.assertEqual(body["to"], "Cx")
        self.line.push.assert_called_once()

    def test_webhook_tolerates_malformed_events(self):
        payload = {"events": [{"type": "message", "source": "x", "message": "hi"}, "junk"]}
        resp = self.client.post("/webhook", json=payload)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.registry.list_destinations(), [])
        self.line.reply.assert_not_called()

    def test_debug_openai(self):
        self.digest.generator.backend.ping.return_value = "ok"
        body = self.client.get("/debug/openai").get_json()
        self.assertEqual(body, {"ok": True, "output": "ok"})

    def test_debug_openai_failure(self):
        self.digest.generator.backend.ping.side_effect = openai.OpenAIError("invalid api key")
        resp = self.client.get("/debug/openai")
        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.get_json()["ok"])

    def test_debug_line_push(self):
        self.assertEqual(self.client.get("/debug/line-push").status_code, 400)
        self.assertTrue(self.client.get("/debug/line-push?to=U1").get_json()["ok"])
        self.line.push.assert_called_once_with("U1", [{"type": "text", "text": "LINE push ok"}])

    def test_unknown_route(self):
        self.assertEqual(self.client.get("/nope").status_code, 404)


if __name__ == "__main__":
    unittest.main()
