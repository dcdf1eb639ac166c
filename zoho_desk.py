"""Zoho Desk API access: OAuth token cache, rate-limited retried GETs and offset pagination."""
import logging
import threading
import time

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from aggregator import is_agent_id, is_unassigned_assignee

logger = logging.getLogger(__name__)


class DeskError(Exception):
    pass


class AuthError(DeskError):
    """Refresh-token exchange failed."""


class UpstreamError(DeskError):
    """A ticket or user fetch failed, after retries where they apply."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class TransientError(UpstreamError):
    """429 or 5xx answer, retried before escalating to UpstreamError."""


class TokenCache:
    """Holds one bearer token and refreshes it through the refresh-token grant once expired."""

    def __init__(self, client_id, client_secret, refresh_token, accounts_url="https://accounts.zoho.com",
                 session=None, clock=time.time, margin=60):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.accounts_url = accounts_url.rstrip("/")
        self.session = session or requests.Session()
        self.margin = margin
        self._clock = clock
        self._token = None
        self._expiry = None

    def get_token(self) -> str:
        now = self._clock()
        if self._token and self._expiry is not None and now < self._expiry:
            return self._token
        return self._refresh(now)

    def invalidate(self):
        self._token = None
        self._expiry = None

    def _refresh(self, now) -> str:
        url = f"{self.accounts_url}/oauth/v2/token"
        data = {
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }
        logger.info("POST %s (refresh token grant)", url)
        try:
            r = self.session.post(url, data=data, timeout=30)
        except requests.RequestException as err:
            raise AuthError(f"Token exchange failed: {err}") from err
        logger.info("<- %s %s", r.status_code, url)
        if not r.ok:
            raise AuthError(f"Token exchange failed with status {r.status_code}")
        try:
            body = r.json()
        except ValueError as err:
            raise AuthError("Token exchange returned a non-JSON body") from err

        # Zoho answers some grant failures with 200 and an "error" field
        if not isinstance(body, dict) or body.get("error") or not body.get("access_token"):
            detail = body.get("error") if isinstance(body, dict) else None
            raise AuthError(f"Token exchange rejected: {detail or 'no access_token in response'}")

        expires_in = body.get("expires_in") or 3600
        self._token = body["access_token"]
        self._expiry = now + (float(expires_in) - self.margin)
        logger.info("Access token refreshed, valid for %ss", expires_in)
        return self._token


class RateLimiter:
    """Spaces call starts at least min_interval seconds apart, across threads."""

    def __init__(self, min_interval, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_start = None

    def wait(self):
        with self._lock:
            now = self._clock()
            if self._next_start is not None and now < self._next_start:
                self._sleep(self._next_start - now)
                now = self._next_start
            self._next_start = now + self.min_interval


class ZohoDeskClient:
    def __init__(self, base_url, token_cache, session=None, org_id=None, min_interval=1.1, max_retries=4,
                 backoff=1.0, page_size=100, timeout=60, sleep=time.sleep, clock=time.monotonic):
        self.base_url = base_url.rstrip("/")
        self.token_cache = token_cache
        self.session = session or requests.Session()
        self.org_id = org_id
        self.max_retries = max_retries
        self.backoff = backoff
        self.page_size = page_size
        self.timeout = timeout
        self.limiter = RateLimiter(min_interval, clock=clock, sleep=sleep)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings):
        session = settings.make_session()
        token_cache = TokenCache(
            settings.client_id,
            settings.client_secret,
            settings.refresh_token,
            accounts_url=settings.accounts_url,
            session=session,
        )
        return cls(
            settings.desk_base_url,
            token_cache,
            session=session,
            org_id=settings.org_id,
            min_interval=settings.min_interval,
            max_retries=settings.max_retries,
            page_size=settings.page_size,
            timeout=settings.timeout,
        )

    def headers(self):
        headers = {"Authorization": f"Zoho-oauthtoken {self.token_cache.get_token()}"}
        if self.org_id:
            headers["orgId"] = str(self.org_id)
        return headers

    def get(self, path, params=None):
        url = f"{self.base_url}/api/v1/{path.lstrip('/')}"
        try:
            return self._get_with_retries(url, params)
        except UpstreamError as err:
            if err.status_code != 401:
                raise
        # token revoked or rotated before its expiry: one more try with a fresh one
        logger.warning("GET %s answered 401, refreshing access token", url)
        self.token_cache.invalidate()
        return self._get_with_retries(url, params)

    def _get_with_retries(self, url, params):
        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff, max=30),
            retry=retry_if_exception_type(TransientError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            return retrying(self._send, url, params)
        except TransientError as err:
            raise UpstreamError(
                f"GET {url} still failing after {self.max_retries} retries (status {err.status_code})",
                status_code=err.status_code,
            ) from err

    def _send(self, url, params):
        headers = self.headers()
        self.limiter.wait()
        logger.info("GET %s params=%s", url, params)
        try:
            r = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as err:
            raise UpstreamError(f"GET {url} failed: {err}") from err
        logger.info("<- %s %s", r.status_code, url)

        if r.status_code == 429 or r.status_code >= 500:
            raise TransientError(f"GET {url} answered {r.status_code}", status_code=r.status_code)
        if not r.ok:
            raise UpstreamError(f"GET {url} answered {r.status_code}", status_code=r.status_code)
        if r.status_code == 204 or not r.content:
            return {}
        try:
            return r.json()
        except ValueError as err:
            raise UpstreamError(f"GET {url} returned a non-JSON body", status_code=r.status_code) from err

    def _log_retry(self, retry_state):
        err = retry_state.outcome.exception()
        logger.warning("Retrying after attempt %s: %s", retry_state.attempt_number, err)

    def fetch_all(self, resource, filters=None):
        """Reads every page of a list resource; a page shorter than the limit is the last one."""
        out = []
        offset = 1
        while True:
            params = {k: v for k, v in (filters or {}).items() if v}
            params.update({"from": offset, "limit": self.page_size})
            data = self.get(resource, params)
            if isinstance(data, dict):
                page = data.get("data") or []
            elif isinstance(data, list):
                page = data
            else:
                page = []

            out.extend(page)
            logger.info("%s page from=%s: %s records, accumulated %s", resource, offset, len(page), len(out))
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return out

    def fetch_tickets(self, department_id=None, agent_id=None):
        return self.fetch_all("tickets", {"departmentId": department_id, "agentId": agent_id})

    def fetch_users(self):
        return self.fetch_all("users")

    def fetch_user(self, user_id):
        return self.get(f"users/{user_id}")

    def fetch_users_by_ids(self, ids):
        users = []
        for user_id in ids:
            try:
                user = self.fetch_user(user_id)
            except UpstreamError as err:
                logger.warning("Could not fetch user ID %s: %s", user_id, err)
                continue
            if user:
                users.append(user)
        return users


def missing_assignee_ids(tickets, users):
    known = {
        user.get("id") for user in users
        if isinstance(user, dict) and is_agent_id(user.get("id"))
    }
    missing = []
    for ticket in tickets:
        if not isinstance(ticket, dict):
            continue
        assignee_id = ticket.get("assigneeId")
        if is_unassigned_assignee(assignee_id) or assignee_id in known or assignee_id in missing:
            continue
        missing.append(assignee_id)
    return missing
