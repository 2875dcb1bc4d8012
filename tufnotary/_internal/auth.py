# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Docker registry token authentication for requests.

Both the notary server and the registry answer unauthenticated requests with
``401`` and a ``WWW-Authenticate: Bearer realm=...,service=...,scope=...``
challenge. ``TokenAuth`` fetches a token from the realm (with basic
credentials when configured) and replays the request once.
"""

import logging
import re
from typing import Dict, Optional, Tuple
from urllib import parse

import requests
from requests.auth import AuthBase, HTTPBasicAuth

logger = logging.getLogger(__name__)

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_bearer_challenge(header: str) -> Optional[Dict[str, str]]:
    """Parse a ``WWW-Authenticate`` Bearer challenge into its parameters.

    Returns None for other authentication schemes.
    """
    scheme, _, params = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return dict(_CHALLENGE_PARAM.findall(params))


class TokenAuth(AuthBase):
    """Bearer token authentication with token caching per realm and scope.

    Args:
        username: Optional user name for the token endpoint.
        password: Optional password or access token for the token endpoint.
        timeout: Timeout in seconds for token requests.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
    ) -> None:
        self.username = username
        self.password = password
        self.timeout = timeout
        self._tokens: Dict[Tuple[str, str, str], str] = {}
        # most recent token per host, sent preemptively
        self._host_tokens: Dict[str, str] = {}

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        token = self._host_tokens.get(parse.urlparse(r.url).netloc)
        if token is not None:
            r.headers["Authorization"] = f"Bearer {token}"
        r.register_hook("response", self.handle_401)
        return r

    def handle_401(
        self, r: requests.Response, **kwargs: object
    ) -> requests.Response:
        """Response hook: answer a Bearer challenge and replay the request."""
        if r.status_code != 401 or getattr(r.request, "_token_retry", False):
            return r

        challenge = parse_bearer_challenge(
            r.headers.get("WWW-Authenticate", "")
        )
        if not challenge or "realm" not in challenge:
            return r

        sent = r.request.headers.get("Authorization")
        token = self._get_token(
            challenge["realm"],
            challenge.get("service", ""),
            challenge.get("scope", ""),
            stale=sent[len("Bearer ") :] if sent else None,
        )
        self._host_tokens[parse.urlparse(r.request.url).netloc] = token

        # Consume content and release the original connection
        r.content  # noqa: B018
        r.close()
        prep = r.request.copy()
        prep.headers["Authorization"] = f"Bearer {token}"
        prep._token_retry = True  # type: ignore[attr-defined]  # noqa: SLF001

        _r = r.connection.send(prep, **kwargs)
        _r.history.append(r)
        _r.request = prep
        return _r

    def _get_token(
        self, realm: str, service: str, scope: str, stale: Optional[str]
    ) -> str:
        """Return a cached token for the challenge or request a new one.

        A cached token equal to ``stale`` was just rejected and is refreshed.
        """
        index = (realm, service, scope)
        cached = self._tokens.get(index)
        if cached is not None and cached != stale:
            return cached

        params = {"service": service}
        if scope:
            params["scope"] = scope
        auth = None
        if self.username is not None:
            auth = HTTPBasicAuth(self.username, self.password or "")

        logger.debug("Requesting token from %s for %s", realm, scope)
        response = requests.get(
            realm, params=params, auth=auth, timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise ValueError(f"No token in response from {realm}")

        self._tokens[index] = token
        return token
