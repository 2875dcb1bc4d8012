# Copyright 2020, TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""
<Program Name>
  utils.py

<Purpose>
  Provide common utilities for tufnotary tests
"""

import argparse
import base64
import logging
import os
import unittest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import load_der_public_key
from securesystemslib.signer import Signature

from tufnotary.api.identity import PrivateKey, SigningIdentity
from tufnotary.api.metadata import Key

logger = logging.getLogger(__name__)

# May be used to reliably read other files in tests dir regardless of cwd
TESTS_DIR = os.path.dirname(os.path.realpath(__file__))

# DataSet is only here so type hints can be used.
DataSet = Dict[str, Any]

# Fixed certificate expiry so that identities minted in tests are comparable
EXPIRES = datetime(2031, 1, 1, tzinfo=timezone.utc)


# Test runner decorator: Runs the test as a set of N SubTests,
# (where N is number of items in dataset), feeding the actual test
# function one test case at a time
def run_sub_tests_with_dataset(
    dataset: DataSet,
) -> Callable[[Callable], Callable]:
    """Decorator starting a unittest.TestCase.subtest() for each of the
    cases in dataset"""

    def real_decorator(
        function: Callable[[unittest.TestCase, Any], None],
    ) -> Callable[[unittest.TestCase], None]:
        def wrapper(test_cls: unittest.TestCase) -> None:
            for case, data in dataset.items():
                with test_cls.subTest(case=case):
                    # Save case name for future reference
                    test_cls.case_name = case.replace(" ", "_")
                    function(test_cls, data)

        return wrapper

    return real_decorator


def generate_private_key() -> PrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_identity(
    private_key: PrivateKey,
    gun: str = "example.com/org/app",
    expires: datetime = EXPIRES,
    validity: timedelta = timedelta(days=3650),
) -> SigningIdentity:
    """Mint a signing identity, as the publishing tool does on every run."""
    return SigningIdentity.from_private_key(
        private_key, gun, expires, validity=validity
    )


def verify_signature(key: Key, signature: Signature, payload: bytes) -> None:
    """Verify a notary ECDSA signature over ``payload``.

    Raises cryptography.exceptions.InvalidSignature on failure.
    """
    if key.is_certificate:
        public_key = key.certificate().public_key()
    else:
        public_key = load_der_public_key(key.public_bytes)
    assert isinstance(public_key, ec.EllipticCurvePublicKey)
    assert signature.unrecognized_fields["method"] == "ecdsa"

    raw = base64.b64decode(signature.signature)
    size = len(raw) // 2
    der = encode_dss_signature(
        int.from_bytes(raw[:size], "big"), int.from_bytes(raw[size:], "big")
    )
    public_key.verify(der, payload, ec.ECDSA(hashes.SHA256()))


def configure_test_logging(argv: List[str]) -> None:
    """Configure logger level for a certain test file"""
    # parse arguments but only handle '-v': argv may contain
    # other things meant for unittest argument parser
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-v", "--verbose", action="count", default=0)
    args, _ = parser.parse_known_args(argv)

    if args.verbose <= 1:
        # 0 and 1 both mean ERROR: this way '-v' makes unittest print test
        # names without increasing log level
        loglevel = logging.ERROR
    elif args.verbose == 2:
        loglevel = logging.WARNING
    elif args.verbose == 3:
        loglevel = logging.INFO
    else:
        loglevel = logging.DEBUG

    logging.basicConfig(level=loglevel)
