"""Tests for jsw.core.jira_client with the HTTP session mocked out."""

import unittest
from unittest.mock import Mock

import requests

import fakes  # noqa: F401


def _response(status=200, payload=None, error=None):
    resp = Mock(status_code=status)
    resp.json.return_value = payload or {}
    if error is not None:
        resp.raise_for_status.side_effect = error
    return resp


class TestJiraClient(unittest.TestCase):

    def setUp(self):
        from jsw.core.jira_client import JiraClient
        self.client = JiraClient("https://jira.example.com/")
        self.client.session.get = Mock(return_value=_response(200))
        self.client.session.request = Mock(return_value=_response(204))

    def _login(self):
        self.client.authenticate("alice", "hunter2")

    def test_base_url_is_normalized(self):
        self.assertEqual(self.client.base_url, "https://jira.example.com")

    def test_authenticate_success(self):
        self._login()
        self.assertTrue(self.client.is_authenticated)
        self.assertEqual(self.client.session.auth, ("alice", "hunter2"))
        url = self.client.session.get.call_args.args[0]
        self.assertEqual(url, "https://jira.example.com/rest/api/2/myself")

    def test_authenticate_rejected(self):
        from jsw.core.errors import AuthError
        self.client.session.get.return_value = _response(401)
        with self.assertRaises(AuthError):
            self._login()
        self.assertFalse(self.client.is_authenticated)

    def test_authenticate_network_error(self):
        from jsw.core.errors import AuthError
        self.client.session.get.side_effect = requests.exceptions.ConnectionError("down")
        with self.assertRaises(AuthError):
            self._login()

    def test_authenticate_without_url(self):
        from jsw.core.errors import AuthError
        self.client.base_url = ""
        with self.assertRaises(AuthError):
            self._login()
        self.client.session.get.assert_not_called()

    def test_changing_url_logs_out(self):
        self._login()
        self.client.base_url = "https://other.example.com"
        self.assertFalse(self.client.is_authenticated)
        self.assertIsNone(self.client.session.auth)

    def test_report_requires_login(self):
        from jsw.core.errors import ReportError
        with self.assertRaises(ReportError):
            self.client.report_elapsed("ABC-1", 10)
        self.client.session.request.assert_not_called()

    def test_report_elapsed_puts_cumulative_value(self):
        self._login()
        self.client.report_elapsed("ABC-1", 125.9)
        method, url = self.client.session.request.call_args.args
        self.assertEqual(method, "PUT")
        self.assertEqual(url, "https://jira.example.com/rest/api/2/issue/ABC-1/properties/jsw-elapsed")
        self.assertEqual(self.client.session.request.call_args.kwargs["json"], {"elapsedSeconds": 125})

    def test_report_http_error(self):
        from jsw.core.errors import ReportError
        self._login()
        error = requests.exceptions.HTTPError("boom", response=Mock(status_code=500))
        self.client.session.request.return_value = _response(500, error=error)
        with self.assertRaises(ReportError):
            self.client.report_elapsed("ABC-1", 10)

    def test_report_timeout(self):
        from jsw.core.errors import ReportError
        self._login()
        self.client.session.request.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(ReportError):
            self.client.report_elapsed("ABC-1", 10)

    def test_get_issue_summary(self):
        self._login()
        self.client.session.request.return_value = _response(200, {"fields": {"summary": "Fix the thing"}})
        self.assertEqual(self.client.get_issue_summary("ABC-1"), "Fix the thing")

    def test_post_worklog_minimum_one_minute(self):
        self._login()
        self.client.post_worklog("ABC-1", 12, comment="pairing")
        kwargs = self.client.session.request.call_args.kwargs
        self.assertEqual(kwargs["json"], {"timeSpentSeconds": 60, "comment": "pairing"})


if __name__ == "__main__":
    unittest.main()
