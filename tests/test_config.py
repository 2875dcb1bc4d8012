# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Unit tests for PublisherConfig"""

import sys
import unittest
from datetime import timedelta
from unittest.mock import patch

from tests import utils
from tufnotary.config import PublisherConfig


class TestPublisherConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = PublisherConfig.from_env({})
        self.assertEqual(config, PublisherConfig())
        self.assertEqual(config.notary_url, "https://notary.docker.io")
        self.assertEqual(config.targets_expiry, timedelta(days=3 * 365))
        self.assertIsNone(config.username)

    def test_environment(self) -> None:
        environ = {
            "TUFNOTARY_NOTARY_URL": "https://notary.example.com",
            "TUFNOTARY_TIMEOUT": "5",
            "TUFNOTARY_USERNAME": "user",
            "TUFNOTARY_PASSWORD": "secret",
            "TUFNOTARY_TARGETS_EXPIRY": "10",
            "NOTARY_URL": "https://ignored.example.com",
        }
        config = PublisherConfig.from_env(environ)

        self.assertEqual(config.notary_url, "https://notary.example.com")
        self.assertEqual(config.timeout, 5)
        self.assertEqual(config.username, "user")
        self.assertEqual(config.password, "secret")
        # durations are not read from the environment
        self.assertEqual(config.targets_expiry, timedelta(days=3 * 365))

    def test_overrides(self) -> None:
        environ = {"TUFNOTARY_TIMEOUT": "5", "TUFNOTARY_USERNAME": "user"}
        config = PublisherConfig.from_env(
            environ, timeout=10, username=None, registry_url="http://r:5000"
        )
        self.assertEqual(config.timeout, 10)
        self.assertEqual(config.username, "user")
        self.assertEqual(config.registry_url, "http://r:5000")

    def test_invalid_integer(self) -> None:
        with self.assertRaises(ValueError):
            PublisherConfig.from_env({"TUFNOTARY_TIMEOUT": "soon"})

    def test_os_environ(self) -> None:
        with patch.dict("os.environ", {"TUFNOTARY_APP_USER_AGENT": "CI/2"}):
            config = PublisherConfig.from_env()
        self.assertEqual(config.app_user_agent, "CI/2")


# Run unit test.
if __name__ == "__main__":
    utils.configure_test_logging(sys.argv)
    unittest.main()
