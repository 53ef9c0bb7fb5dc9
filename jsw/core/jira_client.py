"""Thin Jira REST client: login check plus the calls the timers need."""

import requests

from jsw.common.logger import log
from jsw.core.errors import AuthError, ReportError

REQUEST_TIMEOUT = 10
ELAPSED_PROPERTY = "jsw-elapsed"


class JiraClient:

    def __init__(self, base_url=""):
        self.base_url = base_url
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self.username = None

    @property
    def base_url(self):
        return self._base_url

    # Changing servers drops whatever login we had
    @base_url.setter
    def base_url(self, value):
        self._base_url = (value or "").strip().rstrip("/")
        if getattr(self, "session", None) is not None:
            self.session.auth = None
            self.username = None

    @property
    def is_authenticated(self):
        return self.username is not None

    def _url(self, path):
        return f"{self.base_url}/rest/api/2/{path.lstrip('/')}"

    # Checks the credentials against /myself and keeps them on the session if they work.
    def authenticate(self, username, password):
        if not self.base_url:
            raise AuthError("No Jira base URL configured")
        if not username or not password:
            raise AuthError("Username and password are required")

        self.session.auth = None
        self.username = None
        try:
            r = self.session.get(self._url("myself"), auth=(username, password), timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Couldn't reach Jira at {self.base_url}: {e}") from e

        if r.status_code in (401, 403):
            raise AuthError(f"Jira rejected the credentials for '{username}' (HTTP {r.status_code})")
        if r.status_code != 200:
            raise AuthError(f"Unexpected HTTP {r.status_code} from Jira during login")

        self.session.auth = (username, password)
        self.username = username
        log.info(f"Authenticated against '{self.base_url}' as '{username}'")

    def _request(self, method, path, **kwargs):
        if not self.is_authenticated:
            raise ReportError("Not logged in to Jira")
        try:
            r = self.session.request(method, self._url(path), timeout=REQUEST_TIMEOUT, **kwargs)
            r.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "N/A"
            raise ReportError(f"HTTP {status} for {method} {path}") from e
        except requests.exceptions.RequestException as e:
            raise ReportError(f"{method} {path} failed: {e}") from e
        return r

    # Stores the cumulative time on the issue as an entity property. Sending the same value twice is harmless, so a
    # failed report just gets resent on the next tick.
    def report_elapsed(self, issue_key, seconds):
        self._request(
            "PUT",
            f"issue/{issue_key}/properties/{ELAPSED_PROPERTY}",
            json={"elapsedSeconds": int(seconds)},
        )

    def get_issue_summary(self, issue_key):
        r = self._request("GET", f"issue/{issue_key}", params={"fields": "summary"})
        try:
            return r.json()["fields"]["summary"]
        except (ValueError, KeyError, TypeError) as e:
            raise ReportError(f"Unexpected issue payload for '{issue_key}'") from e

    # Jira won't take worklogs under a minute
    def post_worklog(self, issue_key, seconds, comment=""):
        payload = {"timeSpentSeconds": max(60, int(seconds))}
        if comment:
            payload["comment"] = comment
        self._request("POST", f"issue/{issue_key}/worklog", json=payload)
        log.info(f"Posted worklog of {payload['timeSpentSeconds']}s to '{issue_key}'")
