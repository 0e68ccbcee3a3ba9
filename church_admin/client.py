"""HTTP client for the Church Admin API, one instance per role dashboard.

Runs outside a Frappe site, so it logs through the standard ``logging`` module.

Every request carries the role's access token. When the server answers 401 the
client refreshes once: the first request to see the 401 performs the refresh and
every other request that failed meanwhile waits on the same future, then retries
with the new token. If the refresh fails the role's tokens are dropped and all of
them get ``SessionExpired`` pointing at the role's login route.
"""

import abc
import json
import logging
import threading
from concurrent.futures import Future

import requests

logger = logging.getLogger(__name__)

LOGIN_ROUTES = {
    "super_admin": "/admin-login",
    "church_admin": "/church-admin-login",
    "unit_admin": "/unit-admin-login",
    "kutayima_admin": "/kutayima-admin-login",
    "member": "/member-login",
}

LOGIN_METHOD = "church_admin.auth.login"
REFRESH_METHOD = "church_admin.auth.refresh_access_token"

MALFORMED_TOKENS = ("undefined", "null")


class SessionExpired(Exception):
    """The role must log in again at login_route."""

    def __init__(self, role, login_route):
        super().__init__(f"Session for {role} expired. Log in again at {login_route}.")
        self.role = role
        self.login_route = login_route


class ApiError(Exception):
    """Non-auth error returned by the server."""

    def __init__(self, status_code, message, exc_type=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.exc_type = exc_type


def is_malformed(token):
    return not token or token in MALFORMED_TOKENS or len(token) < 20


class TokenStore(abc.ABC):
    """Where access and refresh tokens live, namespaced by role."""

    @abc.abstractmethod
    def get(self, role, kind):
        """Stored token of kind "access" or "refresh", or None."""

    @abc.abstractmethod
    def set(self, role, kind, value):
        """Store a token. None removes it."""

    @abc.abstractmethod
    def clear(self, role):
        """Drop both tokens of the role."""


class MemoryTokenStore(TokenStore):
    def __init__(self):
        self._tokens = {}
        self._lock = threading.Lock()

    def get(self, role, kind):
        with self._lock:
            return self._tokens.get((role, kind))

    def set(self, role, kind, value):
        with self._lock:
            if value is None:
                self._tokens.pop((role, kind), None)
            else:
                self._tokens[(role, kind)] = value

    def clear(self, role):
        with self._lock:
            for kind in ("access", "refresh"):
                self._tokens.pop((role, kind), None)


def parse_error_message(response):
    """Pull the user-facing message out of a Frappe error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason, None

    exc_type = body.get("exc_type")
    server_messages = body.get("_server_messages")
    if server_messages:
        try:
            messages = [json.loads(m).get("message", m) for m in json.loads(server_messages)]
            return "\n".join(str(m) for m in messages), exc_type
        except (ValueError, AttributeError):
            pass
    return body.get("message") or body.get("exception") or response.reason, exc_type


class ChurchAdminClient:
    def __init__(self, base_url, role, store=None, session=None, timeout=30):
        if role not in LOGIN_ROUTES:
            raise ValueError(f"Unknown role '{role}'. Expected one of {', '.join(LOGIN_ROUTES)}.")
        self.base_url = base_url.rstrip("/")
        self.role = role
        self.store = store or MemoryTokenStore()
        self.session = session or requests.Session()
        self.timeout = timeout

        self._lock = threading.Lock()
        self._refresh_future = None

    @property
    def login_route(self):
        return LOGIN_ROUTES[self.role]

    def _url(self, method):
        return f"{self.base_url}/api/method/{method}"

    def _access_token(self):
        token = self.store.get(self.role, "access")
        if token is not None and is_malformed(token):
            logger.warning("Discarding malformed %s access token", self.role)
            self.store.set(self.role, "access", None)
            return None
        return token

    def _store_tokens(self, message):
        self.store.set(self.role, "access", message["access_token"])
        self.store.set(self.role, "refresh", message["refresh_token"])

    def _expire(self):
        self.store.clear(self.role)
        return SessionExpired(self.role, self.login_route)

    def login(self, usr, pwd):
        response = self.session.post(
            self._url(LOGIN_METHOD),
            json={"usr": usr, "pwd": pwd, "role": self.role},
            timeout=self.timeout,
        )
        if not response.ok:
            message, exc_type = parse_error_message(response)
            raise ApiError(response.status_code, message, exc_type)
        message = response.json()["message"]
        self._store_tokens(message)
        return message

    def logout(self):
        self.store.clear(self.role)

    def _send(self, http_method, method, token, params=None, data=None):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self.session.request(
            http_method,
            self._url(method),
            params=params,
            json=data,
            headers=headers,
            timeout=self.timeout,
        )

    def _refresh(self):
        refresh_token = self.store.get(self.role, "refresh")
        if is_malformed(refresh_token):
            raise self._expire()

        try:
            response = self.session.post(
                self._url(REFRESH_METHOD),
                json={"refresh_token": refresh_token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Token refresh for %s failed: %s", self.role, exc)
            raise self._expire() from exc

        if not response.ok:
            logger.warning("Token refresh for %s rejected with %s", self.role, response.status_code)
            raise self._expire()

        message = response.json()["message"]
        self._store_tokens(message)
        logger.info("Refreshed %s access token", self.role)
        return message["access_token"]

    def _refreshed_token(self, failed_token):
        """Return a fresh access token, refreshing at most once across concurrent callers."""
        with self._lock:
            current = self._access_token()
            if current and current != failed_token:
                return current
            future = self._refresh_future
            leader = future is None
            if leader:
                future = self._refresh_future = Future()

        if leader:
            try:
                token = self._refresh()
            except Exception as exc:
                with self._lock:
                    self._refresh_future = None
                future.set_exception(exc)
            else:
                with self._lock:
                    self._refresh_future = None
                future.set_result(token)

        return future.result()

    def request(self, http_method, method, params=None, data=None):
        """Call a whitelisted method and return its ``message``."""
        token = self._access_token()
        response = self._send(http_method, method, token, params, data)

        if response.status_code == 401:
            token = self._refreshed_token(token)
            response = self._send(http_method, method, token, params, data)
            if response.status_code == 401:
                raise self._expire()

        if not response.ok:
            message, exc_type = parse_error_message(response)
            raise ApiError(response.status_code, message, exc_type)
        return response.json().get("message")

    def get(self, method, **params):
        return self.request("GET", method, params=params)

    def post(self, method, **data):
        return self.request("POST", method, data=data)

    # Ledger shortcuts

    def contribute_to_campaign(self, campaign, amount, member=None, house=None, payment_method="Cash"):
        return self.post(
            "church_admin.api.contribute_to_campaign",
            campaign=campaign, amount=amount, member=member, house=house,
            payment_method=payment_method,
        )

    def contribute_to_stothrakazhcha(self, stothrakazhcha, amount, member=None, house=None, payment_method="Cash"):
        return self.post(
            "church_admin.api.contribute_to_stothrakazhcha",
            stothrakazhcha=stothrakazhcha, amount=amount, member=member, house=house,
            payment_method=payment_method,
        )

    def process_dues(self, due_type, event=None):
        return self.post(f"church_admin.api.process_{due_type}_dues", **{due_type: event})

    def pay_due(self, due, due_type, amount, payment_method="Cash"):
        return self.post(
            "church_admin.api.pay_due",
            due=due, due_type=due_type, amount=amount, payment_method=payment_method,
        )

    def get_dues(self, **filters):
        return self.get("church_admin.api.get_dues", **filters)
