# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Configuration options for ``Publisher`` class."""

import os
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Mapping, Optional

ENV_PREFIX = "TUFNOTARY_"


@dataclass
class PublisherConfig:
    """Used to store ``Publisher`` configuration.

    Args:
        notary_url: Base URL of the notary server.
        registry_url: Base URL of the registry serving image manifests.
        timeout: Timeout in seconds for every network request.
        targets_expiry: Validity period of published targets metadata.
        certificate_validity: Validity period of minted root certificates,
            used to derive the start of the validity window from its end.
        manifest_max_length: Maximum length of an image manifest.
        metadata_max_length: Maximum length of a metadata file or key.
        username: User name for token authentication.
        password: Password or access token for token authentication.
        app_user_agent: Application user agent, e.g. "MyApp/1.0.0". This will
            be prefixed to the default user agent.
    """

    notary_url: str = "https://notary.docker.io"
    registry_url: str = "https://registry-1.docker.io"
    timeout: int = 30  # seconds
    targets_expiry: timedelta = timedelta(days=3 * 365)
    certificate_validity: timedelta = timedelta(days=10 * 365)
    manifest_max_length: int = 4000000  # bytes
    metadata_max_length: int = 5000000  # bytes
    username: Optional[str] = None
    password: Optional[str] = None
    app_user_agent: Optional[str] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: object
    ) -> "PublisherConfig":
        """Build a config from ``TUFNOTARY_*`` environment variables.

        String and integer fields are read from e.g. ``TUFNOTARY_NOTARY_URL``
        or ``TUFNOTARY_TIMEOUT``. Keyword arguments that are not None take
        precedence over the environment.

        Raises:
            ValueError: An integer variable does not hold an integer.
        """
        if environ is None:
            environ = os.environ

        config = cls()
        values = {}
        for field in fields(cls):
            name = f"{ENV_PREFIX}{field.name.upper()}"
            if name not in environ:
                continue
            default = getattr(config, field.name)
            if isinstance(default, int):
                values[field.name] = int(environ[name])
            elif default is None or isinstance(default, str):
                values[field.name] = environ[name]

        values.update({k: v for k, v in overrides.items() if v is not None})
        return replace(config, **values)
