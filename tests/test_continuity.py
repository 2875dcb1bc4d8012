# Copyright 2021, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Test KeyContinuityResolver against a simulated notary server"""

import base64
import sys
import unittest
from datetime import datetime, timezone

from tests import utils
from tests.notary_simulator import NotarySimulator, generate_key_record
from tufnotary.api.exceptions import (
    DownloadHTTPError,
    FormatError,
    UnsupportedKeyTypeError,
)
from tufnotary.api.identity import PrivateKey, SigningIdentity
from tufnotary.api.metadata import Key, Metadata, Role, Root, TargetFile
from tufnotary.api.serialization import DeserializationError
from tufnotary.api.signer import NotarySigner
from tufnotary.repository import Continuity, KeyContinuityResolver, Publisher


class TestKeyContinuity(unittest.TestCase):
    """Decisions of KeyContinuityResolver.resolve()"""

    def setUp(self) -> None:
        self.sim = NotarySimulator()
        self.resolver = KeyContinuityResolver(self.sim.client())
        self.private_key = utils.generate_private_key()

    def _publish(
        self, private_key: PrivateKey, identity: SigningIdentity
    ) -> Root:
        signer = NotarySigner.from_private_key(
            private_key, identity.certificate_key().keyid
        )
        target = TargetFile.from_data("latest", b"manifest")
        Publisher(self.sim.client(), signer).publish(
            identity, {"latest": target}
        )
        self.sim.requests.clear()
        return self.sim.get_published("root").signed

    def _set_root(self, root_key: Key) -> None:
        keys = {
            role: generate_key_record()
            for role in ["targets", "snapshot", "timestamp"]
        }
        keys["root"] = root_key
        root = Root(
            1,
            datetime(2031, 1, 1, tzinfo=timezone.utc),
            {key.keyid: key for key in keys.values()},
            {role: Role([key.keyid], 1) for role, key in keys.items()},
        )
        self.sim.set_metadata("root", Metadata(root))

    def _key_requests(self) -> list:
        return [r for r in self.sim.requests if r[1].endswith(".key")]

    def test_no_published_root(self) -> None:
        identity = utils.make_identity(self.private_key)
        resolved = self.resolver.resolve(identity)

        self.assertEqual(resolved.decision, Continuity.FULL_RESET)
        self.assertIsNone(resolved.prior_root)
        self.assertIsNone(resolved.previous_root_keyid)
        self.assertEqual(resolved.root, identity.certificate_key())
        self.assertEqual(resolved.targets, identity.public_key_record())
        self.assertEqual(resolved.snapshot, self.sim.server_keys["snapshot"])
        self.assertEqual(
            resolved.timestamp, self.sim.server_keys["timestamp"]
        )
        self.assertEqual(
            self.sim.requests,
            [
                ("GET", f"{self.sim.trust_path}root.json"),
                ("GET", f"{self.sim.trust_path}snapshot.key"),
                ("GET", f"{self.sim.trust_path}timestamp.key"),
            ],
        )

    def test_reuse(self) -> None:
        prior = self._publish(
            self.private_key, utils.make_identity(self.private_key)
        )

        # same key and template, new serial number
        identity = utils.make_identity(self.private_key)
        resolved = self.resolver.resolve(identity)

        self.assertEqual(resolved.decision, Continuity.REUSE)
        expected = {
            role: prior.get_role_keys(role)[0] for role in prior.roles
        }
        self.assertEqual(resolved.role_keys(), expected)
        self.assertNotEqual(resolved.root, identity.certificate_key())
        self.assertIsNone(resolved.previous_root_keyid)
        self.assertEqual(resolved.prior_root.signed, prior)
        self.assertEqual(self._key_requests(), [])

    def test_cert_update(self) -> None:
        prior = self._publish(
            self.private_key, utils.make_identity(self.private_key)
        )

        later = datetime(2032, 1, 1, tzinfo=timezone.utc)
        identity = utils.make_identity(self.private_key, expires=later)
        resolved = self.resolver.resolve(identity)

        self.assertEqual(resolved.decision, Continuity.CERT_UPDATE)
        prior_root_key = prior.get_role_keys("root")[0]
        self.assertEqual(resolved.root, identity.certificate_key())
        self.assertEqual(resolved.previous_root_keyid, prior_root_key.keyid)
        for role in ["targets", "snapshot", "timestamp"]:
            self.assertEqual(
                resolved.role_keys()[role], prior.get_role_keys(role)[0]
            )
        self.assertEqual(self._key_requests(), [])

    def test_other_key(self) -> None:
        other_key = utils.generate_private_key()
        self._publish(other_key, utils.make_identity(other_key))
        self.sim.server_keys["snapshot"] = generate_key_record()

        identity = utils.make_identity(self.private_key)
        resolved = self.resolver.resolve(identity)

        self.assertEqual(resolved.decision, Continuity.FULL_RESET)
        self.assertIsNotNone(resolved.prior_root)
        self.assertEqual(resolved.root, identity.certificate_key())
        self.assertEqual(
            resolved.snapshot, self.sim.server_keys["snapshot"]
        )
        self.assertEqual(len(self._key_requests()), 2)

    def test_unsupported_root_key(self) -> None:
        self._set_root(generate_key_record())
        with self.assertRaises(UnsupportedKeyTypeError):
            self.resolver.resolve(utils.make_identity(self.private_key))
        self.assertEqual(self._key_requests(), [])

    def test_invalid_certificate(self) -> None:
        garbage = base64.b64encode(b"not a certificate").decode()
        key = Key("", "ecdsa-x509", {"private": None, "public": garbage})
        key.keyid = key.compute_keyid()
        self._set_root(key)
        with self.assertRaises(FormatError):
            self.resolver.resolve(utils.make_identity(self.private_key))

    def test_server_error(self) -> None:
        self.sim.errors[f"{self.sim.trust_path}root.json"] = 503
        with self.assertRaises(DownloadHTTPError) as ctx:
            self.resolver.resolve(utils.make_identity(self.private_key))
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(len(self.sim.requests), 1)

    def test_invalid_root(self) -> None:
        self.sim.metadata["root"] = b'{"signed": {"_type": "Root"}}'
        with self.assertRaises(DeserializationError):
            self.resolver.resolve(utils.make_identity(self.private_key))

    def test_missing_server_key(self) -> None:
        del self.sim.server_keys["timestamp"]
        with self.assertRaises(DownloadHTTPError) as ctx:
            self.resolver.resolve(utils.make_identity(self.private_key))
        self.assertEqual(ctx.exception.status_code, 404)


# Run unit test.
if __name__ == "__main__":
    utils.configure_test_logging(sys.argv)
    unittest.main()
