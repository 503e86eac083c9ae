import dataclasses
import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests


sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import approval_gate.cli as cli  # noqa: E402
import approval_gate.poller as poller  # noqa: E402
from approval_gate.client import ApprovalClient  # noqa: E402
from approval_gate.config import GateConfig  # noqa: E402


def fake_response(status_code=200, body=""):
    response = mock.Mock()
    response.status_code = status_code
    response.text = body
    response.json.side_effect = lambda: json.loads(body)
    return response


def status_body(data, status_code=200):
    return json.dumps({"status_info": {"status_code": status_code}, "data": data})


class StopPolling(Exception):
    pass


class PollerScenarioTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.token_path = self.root / "token"
        self.refresh_path = self.root / "refresh"
        self.token_path.write_text("oldtoken", encoding="utf-8")
        self.refresh_path.write_text("refresh-1", encoding="utf-8")
        self.config = GateConfig(
            generation_path=str(self.root),
            pod_uid="pod-1",
            api_url="http://api.local",
            api_log_token="oldtoken",
            token_path=str(self.token_path),
            refresh_token_path=str(self.refresh_path),
        )
        self.session = mock.Mock()
        self.sleep = mock.Mock()
        self.client = ApprovalClient.from_config(self.config, session=self.session, sleep=self.sleep)

    def tearDown(self):
        self._tmp.cleanup()

    def _approved_path(self):
        return self.root / "_approved_pod-1"

    def _canceled_path(self):
        return self.root / "_canceled_pod-1"

    def test_scenario_a_approval_writes_sentinel_and_exits_0(self):
        self.session.get.return_value = fake_response(200, status_body([{"status": "complete", "is_approved": True}]))

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 0)
        self.assertTrue(self._approved_path().exists())
        self.assertEqual(self._approved_path().stat().st_size, 0)
        self.assertFalse(self._canceled_path().exists())

    def test_scenario_b_cancellation_writes_sentinel_and_exits_1(self):
        self.session.get.return_value = fake_response(200, status_body([{"status": "complete", "is_approved": False}]))

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 1)
        self.assertTrue(self._canceled_path().exists())
        self.assertFalse(self._approved_path().exists())

    def test_scenario_c_empty_data_keeps_waiting(self):
        self.session.get.return_value = fake_response(200, status_body([]))
        self.sleep.side_effect = StopPolling()

        with self.assertRaises(StopPolling):
            poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.sleep.assert_called_once_with(30.0)
        self.assertFalse(self._approved_path().exists())
        self.assertFalse(self._canceled_path().exists())

    def test_scenario_d_http_401_refreshes_and_repolls_immediately(self):
        approved = status_body([{"status": "complete", "is_approved": True}])
        self.session.get.side_effect = [fake_response(401, ""), fake_response(200, approved)]
        self.session.post.return_value = fake_response(200, '{"data": ["newtoken"]}')

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 0)
        self.assertEqual(self.client.tokens.access_token, "newtoken")
        self.sleep.assert_not_called()
        second_call = self.session.get.call_args_list[1]
        self.assertEqual(second_call.kwargs["headers"], {"Token": "newtoken"})

    def test_body_level_401_also_refreshes(self):
        approved = status_body([{"status": "complete", "is_approved": True}])
        self.session.get.side_effect = [
            fake_response(200, status_body([], status_code=401)),
            fake_response(200, approved),
        ]
        self.token_path.write_text("rotated", encoding="utf-8")

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 0)
        self.assertEqual(self.client.tokens.access_token, "rotated")
        self.session.post.assert_not_called()

    def test_rotated_token_with_newline_keeps_polling(self):
        approved = status_body([{"status": "complete", "is_approved": True}])
        self.session.get.side_effect = [fake_response(401, ""), fake_response(200, approved)]
        self.token_path.write_text("rotated\n", encoding="utf-8")

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 0)
        self.assertEqual(self.session.get.call_args_list[1].kwargs["headers"], {"Token": "rotated"})

    def test_refresh_exhaustion_is_fatal_without_sentinel(self):
        self.session.get.return_value = fake_response(401, "")
        self.session.post.side_effect = requests.ConnectionError("down")

        with mock.patch.object(poller, "audit") as audit_mock:
            rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 1)
        self.assertEqual(self.session.post.call_count, 7)
        self.assertFalse(self._approved_path().exists())
        self.assertFalse(self._canceled_path().exists())
        statuses = [call.args[2] for call in audit_mock.call_args_list]
        self.assertIn("CRITICAL", statuses)

    def test_refresh_disabled_makes_401_fatal(self):
        config = dataclasses.replace(self.config, refresh_enabled=False)
        self.session.get.return_value = fake_response(401, "")

        rc = poller.run_poller(config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 1)
        self.session.post.assert_not_called()

    def test_transport_error_is_pending_on_normal_cadence(self):
        approved = status_body([{"status": "complete", "is_approved": True}])
        self.session.get.side_effect = [requests.Timeout("slow"), fake_response(200, approved)]

        rc = poller.run_poller(self.config, client=self.client, sleep=self.sleep)

        self.assertEqual(rc, 0)
        self.sleep.assert_called_once_with(30.0)

    def test_missing_url_or_token_skips_check(self):
        for overrides in ({"api_url": ""}, {"api_log_token": ""}):
            with self.subTest(overrides=overrides):
                config = dataclasses.replace(self.config, **overrides)
                rc = poller.run_poller(config, client=self.client, sleep=self.sleep)
                self.assertEqual(rc, 0)
        self.session.get.assert_not_called()


class PollCommandTests(unittest.TestCase):
    def test_scenario_e_missing_required_config_fails_before_network(self):
        env = {"TFO_API_URL": "http://api.local", "TFO_API_LOG_TOKEN": "tok", "TFO_GENERATION_PATH": "/gen"}
        with (
            mock.patch.dict(os.environ, env, clear=True),
            mock.patch.object(cli, "run_poller") as run_mock,
            mock.patch("requests.Session") as session_cls,
            mock.patch("builtins.print") as print_mock,
        ):
            rc = cli.main(["poll"])

        self.assertEqual(rc, cli.EXIT_CONFIG_ERROR)
        run_mock.assert_not_called()
        session_cls.assert_not_called()
        rendered = " ".join(str(call.args[0]) for call in print_mock.call_args_list)
        self.assertIn("POD_UID", rendered)

    def test_poll_command_runs_poller(self):
        env = {"TFO_GENERATION_PATH": "/gen", "POD_UID": "pod-1"}
        with (
            mock.patch.dict(os.environ, env, clear=True),
            mock.patch.object(cli, "run_poller", return_value=0) as run_mock,
        ):
            rc = cli.main(["poll"])

        self.assertEqual(rc, 0)
        self.assertEqual(run_mock.call_args.args[0].pod_uid, "pod-1")


if __name__ == "__main__":
    unittest.main()
