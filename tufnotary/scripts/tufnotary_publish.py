#!/usr/bin/env python

# Copyright 2021-2022 python-tuf contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Publish signed trust data for a container image repository

Example:
    tufnotary_publish.py --key key.pem --expires 2030-01-01 \\
        --tags latest 1.0 docker.io/example/app
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import List, Optional, Tuple

import iso8601
from cryptography import x509

from tufnotary._internal.auth import TokenAuth
from tufnotary._internal.requests_fetcher import RequestsFetcher
from tufnotary.api.exceptions import DownloadError, RepositoryError, UsageError
from tufnotary.api.identity import SigningIdentity
from tufnotary.api.signer import NotarySigner, load_private_key
from tufnotary.client import NotaryClient, RegistryClient, registry_repository
from tufnotary.config import ENV_PREFIX, PublisherConfig
from tufnotary.repository import PublishResult, Publisher, build_target_set

logger = logging.getLogger(__name__)

PASSPHRASE_ENV = f"{ENV_PREFIX}KEY_PASSPHRASE"


def _date(value: str) -> datetime:
    try:
        return iso8601.parse_date(value)
    except iso8601.ParseError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{value}'") from e


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Publish signed trust data for a container image repository"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        help="Output verbosity level (-v, -vv)",
        action="count",
        default=0,
    )
    parser.add_argument(
        "gun", help="Globally unique repository name, e.g. docker.io/org/app"
    )
    parser.add_argument(
        "--key",
        required=True,
        metavar="PATH",
        help=f"PEM private key. Passphrase is read from {PASSPHRASE_ENV}",
    )
    parser.add_argument(
        "--cert",
        metavar="PATH",
        help="PEM certificate for the key, instead of a self-signed one",
    )
    parser.add_argument(
        "--expires",
        type=_date,
        metavar="DATE",
        help="Expiry of the self-signed root certificate and root metadata",
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--tags", nargs="+", metavar="TAG", help="Image tags to sign"
    )
    source.add_argument(
        "--digest-file",
        metavar="PATH",
        help="File of '<algorithm>:<digest> <length> <name>' lines, '-' for "
        "stdin",
    )

    parser.add_argument(
        "--add-only",
        action="store_true",
        help="Keep published targets that are not being signed",
    )
    parser.add_argument("--notary", metavar="URL", help="Notary server URL")
    parser.add_argument("--registry", metavar="URL", help="Registry URL")
    parser.add_argument(
        "--timeout", type=int, metavar="SECONDS", help="Network timeout"
    )
    parser.add_argument(
        "--username",
        help=f"Registry user name. Password is read from {ENV_PREFIX}PASSWORD",
    )
    return parser


def _load_identity(
    args: argparse.Namespace, config: PublisherConfig
) -> Tuple[SigningIdentity, NotarySigner]:
    passphrase = os.environ.get(PASSPHRASE_ENV)
    with open(args.key, "rb") as f:
        private_key = load_private_key(
            f.read(), passphrase.encode("utf-8") if passphrase else None
        )

    if args.cert is not None:
        with open(args.cert, "rb") as f:
            certificate = x509.load_pem_x509_certificate(f.read())
        identity = SigningIdentity.from_certificate(private_key, certificate)
    elif args.expires is not None:
        identity = SigningIdentity.from_private_key(
            private_key,
            args.gun,
            args.expires,
            validity=config.certificate_validity,
        )
    else:
        raise UsageError("--expires is required without --cert")

    return identity, NotarySigner.from_private_key(
        private_key, identity.certificate_key().keyid
    )


def publish(args: argparse.Namespace, config: PublisherConfig) -> PublishResult:
    """Publish trust data as described by parsed command line arguments."""
    identity, signer = _load_identity(args, config)

    fetcher = RequestsFetcher(
        socket_timeout=config.timeout,
        app_user_agent=config.app_user_agent,
        auth=TokenAuth(config.username, config.password, config.timeout),
    )

    registry = None
    if args.tags:
        registry = RegistryClient(
            fetcher, config.registry_url, config.manifest_max_length
        )
    target_set = build_target_set(
        digest_file=args.digest_file,
        tags=args.tags,
        registry=registry,
        repository=registry_repository(args.gun),
    )

    notary = NotaryClient(
        fetcher, config.notary_url, args.gun, config.metadata_max_length
    )
    publisher = Publisher(notary, signer, config)
    return publisher.publish(identity, target_set, args.add_only)


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point, returns the process exit code."""
    parser = _parser()
    args = parser.parse_args(argv)

    if args.verbose == 0:
        loglevel = logging.WARNING
    elif args.verbose == 1:
        loglevel = logging.INFO
    else:
        loglevel = logging.DEBUG

    logging.basicConfig(level=loglevel)

    try:
        config = PublisherConfig.from_env(
            notary_url=args.notary,
            registry_url=args.registry,
            timeout=args.timeout,
            username=args.username,
        )
        result = publish(args, config)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        logger.error("%s", e)
        return 2
    except (
        RepositoryError,
        DownloadError,
        OSError,
        ValueError,
        TypeError,
    ) as e:
        logger.error("Failed to publish %s: %s", args.gun, e)
        return 1

    if result.published:
        print(
            f"Published root v{result.root_version} and targets "
            f"v{result.targets_version} for {args.gun} "
            f"({result.decision.name})"
        )
    else:
        print(f"Trust data for {args.gun} is up to date")
    return 0


if __name__ == "__main__":
    sys.exit(main())
