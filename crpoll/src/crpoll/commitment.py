from __future__ import annotations

"""
Commitment schemes (binary vote + auxiliary input -> 32-byte digest)

identity.sha256.v0  (reference, INSECURE)
  digest = sha256(canon({"vote": v}) + voter_identity)
  The voter identity is public before the commit exists, so anyone can
  precompute both possible digests per voter and read the vote off the
  published commitment. Kept to demonstrate exactly that.

salted.sha256.v1
  digest = sha256(tag + canon({"vote": v}) + secret)
  secret is chosen by the voter (see generate_secret) and only disclosed at
  reveal time; the tag separates these digests from any other sha256 use.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

import hashlib
import logging
import os
import secrets

from crpoll.canonical import canonical_dumps
from crpoll.errors import UnknownScheme

logger = logging.getLogger(__name__)

DIGEST_SIZE = 32
MIN_SECRET_BYTES = 16

IDENTITY_SCHEME_ID = "identity.sha256.v0"
SALTED_SCHEME_ID = "salted.sha256.v1"

Auxiliary = Union[bytes, str]


def as_auxiliary(value: Auxiliary) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"auxiliary input must be bytes or str, not {type(value).__name__}")


@dataclass(frozen=True)
class CommitmentScheme:
    scheme_id: str
    domain_tag: bytes
    insecure: bool
    auxiliary_is_identity: bool

    def commit(self, vote: bool, auxiliary: Auxiliary) -> bytes:
        if not isinstance(vote, bool):
            raise TypeError(f"vote must be a bool, not {type(vote).__name__}")
        body = canonical_dumps({"vote": vote}).encode("utf-8")
        return hashlib.sha256(self.domain_tag + body + as_auxiliary(auxiliary)).digest()

    def commit_hex(self, vote: bool, auxiliary: Auxiliary) -> str:
        return self.commit(vote, auxiliary).hex()


IDENTITY_SCHEME = CommitmentScheme(
    scheme_id=IDENTITY_SCHEME_ID,
    domain_tag=b"",
    insecure=True,
    auxiliary_is_identity=True,
)

SALTED_SCHEME = CommitmentScheme(
    scheme_id=SALTED_SCHEME_ID,
    domain_tag=b"crpoll.vote.salted.v1\x00",
    insecure=False,
    auxiliary_is_identity=False,
)

SCHEMES: Dict[str, CommitmentScheme] = {
    IDENTITY_SCHEME_ID: IDENTITY_SCHEME,
    SALTED_SCHEME_ID: SALTED_SCHEME,
}


def get_scheme(scheme_id: str) -> CommitmentScheme:
    try:
        return SCHEMES[scheme_id.strip()]
    except KeyError:
        raise UnknownScheme(f"unknown commitment scheme '{scheme_id}'. Known: {sorted(SCHEMES)}") from None


def get_scheme_from_env() -> CommitmentScheme:
    """
    CRPOLL_SCHEME selects the scheme; unset means the reference scheme.
    """
    scheme = get_scheme(os.getenv("CRPOLL_SCHEME", "").strip() or IDENTITY_SCHEME_ID)
    if scheme.insecure:
        logger.warning("commitment scheme %s is insecure: votes are readable before reveal", scheme.scheme_id)
    return scheme


def generate_secret(nbytes: int = 32) -> bytes:
    if nbytes < MIN_SECRET_BYTES:
        raise ValueError(f"secret must be at least {MIN_SECRET_BYTES} bytes (got {nbytes})")
    return secrets.token_bytes(nbytes)


def precompute_digests(voter: str, scheme: CommitmentScheme = IDENTITY_SCHEME) -> Dict[bool, bytes]:
    """
    What an observer can compute for `voter` before any commit is published,
    assuming the auxiliary input is the voter identity.
    """
    return {
        True: scheme.commit(True, voter),
        False: scheme.commit(False, voter),
    }


def recover_vote(digest: bytes, voter: str, scheme: CommitmentScheme = IDENTITY_SCHEME) -> Optional[bool]:
    """
    Returns the vote hidden in `digest` if it matches a precomputed digest,
    else None.
    """
    for vote, candidate in precompute_digests(voter, scheme).items():
        if secrets.compare_digest(candidate, digest):
            return vote
    return None
