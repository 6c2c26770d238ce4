"""API clients for Jira and Rapports."""

import requests

from errors import UpstreamError

PEP_FIELD = "customfield_10120"
RAPPORTS_API_BASE = "https://apis-intranet.seidor.com"
PAGE_SIZE = 100


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        401: f"{service}: Authentication failed. Check your API token!",
        403: f"{service}: Access denied. Check your permissions or API token!",
        404: f"{service}: Resource not found. Check the URL in config.json!",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    if status in messages:
        return messages[status]
    # Validation errors (400, 409, 422...) carry the useful part in the body
    body = response.text.strip()[:300]
    return f"{service}: HTTP {status} - {body or response.reason}"


def _send(method: str, url: str, service: str, timeout: int = 10, **kwargs) -> requests.Response:
    """Send a request, turning network problems into UpstreamError."""
    host = url.split("/")[2] if "://" in url else url
    try:
        r = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.ConnectionError:
        raise UpstreamError(f"{service}: Cannot connect to {host}. Check your network!", service)
    except requests.exceptions.Timeout:
        raise UpstreamError(f"{service}: Connection timed out. The server may be slow.", service)
    except requests.exceptions.RequestException as e:
        raise UpstreamError(f"{service}: {e}", service)

    if not r.ok:
        raise UpstreamError(_handle_api_error(r, service), service, r.status_code, r.text)
    return r


def _json(r: requests.Response, service: str) -> dict:
    """Decode a JSON body; an empty body decodes to {}."""
    if not r.content:
        return {}
    try:
        return r.json()
    except ValueError:
        raise UpstreamError(
            f"{service}: Unexpected response (HTTP {r.status_code}) - {r.text.strip()[:300]}",
            service,
            r.status_code,
            r.text,
        )


class JiraClient:
    """Client for Jira REST API."""

    def __init__(self, config: dict):
        self.base_url = config["jira"]["base_url"].rstrip("/")
        self.email = config["jira"]["user_email"]
        self.token = config["jira"]["api_token"]
        self.pep_field = config["jira"].get("pep_field", PEP_FIELD)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        r = _send(
            method,
            f"{self.base_url}/rest/api/3{path}",
            "Jira",
            auth=(self.email, self.token),
            headers={"Accept": "application/json"},
            **kwargs,
        )
        return _json(r, "Jira")

    def get_my_account_id(self) -> str:
        """Get the current user's Jira account ID."""
        return self._request("GET", "/myself")["accountId"]

    def search_issues(self, jql: str) -> list[dict]:
        """Search issues, returning id, key and the PEP field of each."""
        issues = []
        payload = {"jql": jql, "maxResults": PAGE_SIZE, "fields": ["key", self.pep_field]}

        while True:
            data = self._request("POST", "/search/jql", json=payload, timeout=30)
            issues.extend(data.get("issues", []))

            # Handle pagination
            next_token = data.get("nextPageToken")
            if not next_token or data.get("isLast", True):
                break
            payload = {**payload, "nextPageToken": next_token}

        return issues

    def get_issue_worklogs(self, issue_id: str) -> list[dict]:
        """Fetch all worklogs of one issue."""
        worklogs = []
        start_at = 0

        while True:
            data = self._request(
                "GET",
                f"/issue/{issue_id}/worklog",
                params={"startAt": start_at, "maxResults": 5000},
                timeout=30,
            )
            page = data.get("worklogs", [])
            worklogs.extend(page)
            start_at += len(page)
            if not page or start_at >= data.get("total", 0):
                break

        return worklogs


class RapportsClient:
    """Client for the Rapports (intranet imputation) REST API."""

    def __init__(self, config: dict):
        self.base_url = config.get("rapports", {}).get("api_base", RAPPORTS_API_BASE).rstrip("/")

    def _request(self, method: str, path: str, token: str, **kwargs) -> dict:
        r = _send(
            method,
            f"{self.base_url}{path}",
            "Rapports",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            **kwargs,
        )
        return _json(r, "Rapports")

    def get_user_profile(self, token: str) -> dict:
        """Get the current user's Rapports profile (``id`` is the user id)."""
        return self._request("GET", "/authorizationv2/user-profile", token)

    def get_projects(self, token: str) -> list[dict]:
        """Get all projects as ``{"label": ..., "value": ...}`` dicts."""
        payload = {
            "multiSortedColumns": [{"active": "label", "direction": "asc"}],
            "filterMap": {"moduleId": "2"},
            "pagination": {"pageNumber": 1, "pageSize": 100000},
        }
        data = self._request("POST", "/authorizationv2/paginated-projects", token, json=payload, timeout=30)
        return data.get("data", [])

    def get_sub_projects(self, project_id: str, token: str) -> list[dict]:
        """Get the active sub-projects of a project."""
        payload = {
            "filterMap": {"projectId": project_id, "isActive": "true"},
            "pagination": {"pageNumber": 1, "pageSize": 100000},
        }
        data = self._request("POST", "/collections/paginated-subprojects", token, json=payload, timeout=30)
        return data.get("data", [])

    def post_imputation(self, payload: dict, token: str) -> dict:
        """Create one imputation."""
        return self._request("POST", "/rapports/imputations", token, json=payload, timeout=30)
