# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Tests for the tufnotary_publish.py command line tool"""

import io
import os
import shutil
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from typing import List
from unittest.mock import patch

from cryptography.hazmat.primitives import serialization

from tests import utils
from tests.notary_simulator import NotarySimulator
from tufnotary.scripts import tufnotary_publish

SHA256 = "abcd" * 16
GUN = "example.com/org/app"


class TestPublishCommand(unittest.TestCase):
    """Run main() against a simulated notary server and registry."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.mkdtemp(dir=os.getcwd())
        self.private_key = utils.generate_private_key()
        self.key_path = self._write(
            "key.pem",
            self.private_key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            ),
        )
        self.digest_path = self._write(
            "digests.txt", f"sha256:{SHA256} 123 latest\n".encode()
        )

        self.sim = NotarySimulator(GUN)
        patcher = patch.object(
            tufnotary_publish, "RequestsFetcher", return_value=self.sim
        )
        self.mock_fetcher = patcher.start()
        self.addCleanup(patcher.stop)

        env = patch.dict("os.environ", {}, clear=True)
        env.start()
        self.addCleanup(env.stop)

    def tearDown(self) -> None:
        shutil.rmtree(self.temp_dir)

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def _run(self, *args: str) -> int:
        self.stdout = io.StringIO()
        argv: List[str] = [GUN, "--key", self.key_path, *args]
        with redirect_stdout(self.stdout):
            return tufnotary_publish.main(argv)

    def test_publish_digest_file(self) -> None:
        code = self._run(
            "--expires", "2031-01-01", "--digest-file", self.digest_path
        )

        self.assertEqual(code, 0)
        output = self.stdout.getvalue()
        self.assertIn("Published root v1 and targets v1", output)
        self.assertIn("FULL_RESET", output)
        targets = self.sim.get_published("targets").signed.targets
        self.assertEqual(list(targets), ["latest"])
        self.assertEqual(targets["latest"].get_hexdigest(), SHA256)
        self.assertEqual(self.mock_fetcher.call_args[1]["socket_timeout"], 30)

        # same input again is a no-op
        code = self._run(
            "--expires", "2031-01-01", "--digest-file", self.digest_path
        )
        self.assertEqual(code, 0)
        self.assertIn("is up to date", self.stdout.getvalue())
        self.assertEqual(len(self.sim.uploads), 1)

    def test_publish_tags(self) -> None:
        self.sim.add_manifest("org/app", "latest", b'{"schemaVersion": 2}')
        self.sim.add_manifest("org/app", "1.0", b'{"schemaVersion": 2} ')

        code = self._run(
            "--expires",
            "2031-01-01T00:00:00Z",
            "--registry",
            "https://registry.example.com",
            "--tags",
            "latest",
            "1.0",
        )

        self.assertEqual(code, 0)
        targets = self.sim.get_published("targets").signed.targets
        self.assertEqual(sorted(targets), ["1.0", "latest"])
        self.assertIn(
            ("GET", "/v2/org/app/manifests/1.0"), self.sim.requests
        )

    def test_certificate(self) -> None:
        identity = utils.make_identity(self.private_key, GUN)
        cert_path = self._write(
            "cert.pem",
            identity.certificate.public_bytes(serialization.Encoding.PEM),
        )

        code = self._run("--cert", cert_path, "--digest-file", self.digest_path)

        self.assertEqual(code, 0)
        root = self.sim.get_published("root").signed
        root_keys = root.get_role_keys("root")
        self.assertEqual(root_keys, [identity.certificate_key()])
        self.assertEqual(root.expires, utils.EXPIRES)

    def test_encrypted_key(self) -> None:
        self.key_path = self._write(
            "encrypted.pem",
            self.private_key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.BestAvailableEncryption(b"hunter2"),
            ),
        )
        args = ["--expires", "2031-01-01", "--digest-file", self.digest_path]

        with redirect_stderr(io.StringIO()):
            self.assertEqual(self._run(*args), 1)

        with patch.dict("os.environ", {"TUFNOTARY_KEY_PASSPHRASE": "hunter2"}):
            self.assertEqual(self._run(*args), 0)

    def test_config_from_environment(self) -> None:
        environ = {"TUFNOTARY_TIMEOUT": "7", "TUFNOTARY_USERNAME": "ci"}
        with patch.dict("os.environ", environ):
            code = self._run(
                "--expires",
                "2031-01-01",
                "--timeout",
                "3",
                "--digest-file",
                self.digest_path,
            )

        self.assertEqual(code, 0)
        kwargs = self.mock_fetcher.call_args[1]
        self.assertEqual(kwargs["socket_timeout"], 3)
        self.assertEqual(kwargs["auth"].username, "ci")

    def test_usage_errors(self) -> None:
        # mutually exclusive target sources
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self._run(
                    "--expires",
                    "2031-01-01",
                    "--tags",
                    "latest",
                    "--digest-file",
                    self.digest_path,
                )
        self.assertEqual(ctx.exception.code, 2)

        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self._run("--expires", "someday", "--tags", "latest")
        self.assertEqual(ctx.exception.code, 2)

        # --expires is required without --cert
        with redirect_stderr(io.StringIO()):
            code = self._run("--digest-file", self.digest_path)
        self.assertEqual(code, 2)
        self.assertEqual(self.sim.requests, [])

    def test_failures(self) -> None:
        args = ["--expires", "2031-01-01", "--digest-file"]

        with redirect_stderr(io.StringIO()):
            missing = os.path.join(self.temp_dir, "missing.txt")
            self.assertEqual(self._run(*args, missing), 1)

            invalid = self._write("invalid.txt", b"sha256:abcd 1 latest\n")
            self.assertEqual(self._run(*args, invalid), 1)

            self.sim.errors[f"{self.sim.trust_path}root.json"] = 500
            self.assertEqual(self._run(*args, self.digest_path), 1)

        self.assertEqual(self.sim.mutations, [])


# Run unit test.
if __name__ == "__main__":
    utils.configure_test_logging(sys.argv)
    unittest.main()
