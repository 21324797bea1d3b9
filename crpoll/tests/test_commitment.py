import pytest

from crpoll.commitment import (
    DIGEST_SIZE,
    IDENTITY_SCHEME,
    SALTED_SCHEME,
    generate_secret,
    get_scheme,
    precompute_digests,
    recover_vote,
)
from crpoll.errors import UnknownScheme


def test_digest_is_deterministic_and_fixed_size():
    d1 = IDENTITY_SCHEME.commit(True, "alice")
    d2 = IDENTITY_SCHEME.commit(True, b"alice")
    assert d1 == d2
    assert len(d1) == DIGEST_SIZE
    assert IDENTITY_SCHEME.commit(False, "alice") != d1
    assert IDENTITY_SCHEME.commit(True, "bob") != d1


def test_schemes_do_not_share_digests():
    aux = b"\x01" * 32
    assert IDENTITY_SCHEME.commit(True, aux) != SALTED_SCHEME.commit(True, aux)


def test_vote_must_be_bool():
    with pytest.raises(TypeError):
        IDENTITY_SCHEME.commit(1, "alice")


def test_identity_scheme_leaks_vote_before_reveal():
    voters = ["alice", "bob", "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"]
    # computed before anyone commits
    table = {v: precompute_digests(v) for v in voters}

    for v in voters:
        for vote in (True, False):
            published = IDENTITY_SCHEME.commit(vote, v)
            assert published == table[v][vote]
            assert recover_vote(published, v) is vote


def test_salted_scheme_resists_precomputation():
    for vote in (True, False):
        secret = generate_secret()
        published = SALTED_SCHEME.commit(vote, secret)
        assert recover_vote(published, "alice", IDENTITY_SCHEME) is None
        assert recover_vote(published, "alice", SALTED_SCHEME) is None
        assert published not in precompute_digests("alice", SALTED_SCHEME).values()


def test_generate_secret_lengths():
    assert len(generate_secret()) == 32
    assert generate_secret() != generate_secret()
    with pytest.raises(ValueError):
        generate_secret(8)


def test_get_scheme():
    assert get_scheme("salted.sha256.v1") is SALTED_SCHEME
    assert get_scheme("identity.sha256.v0").insecure is True
    with pytest.raises(UnknownScheme):
        get_scheme("md5.v0")
