from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from crpoll.commitment import (
    IDENTITY_SCHEME,
    SALTED_SCHEME,
    SCHEMES,
    generate_secret,
    get_scheme,
    recover_vote,
)
from crpoll.config import strict_from_env
from crpoll.simulate import dumps_report, run_script_file


def _parse_vote(v: str) -> bool:
    s = v.strip().lower()
    if s in {"1", "true", "yes", "y", "for"}:
        return True
    if s in {"0", "false", "no", "n", "against"}:
        return False
    raise argparse.ArgumentTypeError(f"vote must be yes/no (got {v!r})")


def _cmd_digest(args: argparse.Namespace) -> int:
    scheme = get_scheme(args.scheme)
    if scheme.auxiliary_is_identity:
        if not args.voter:
            raise SystemExit(f"--voter is required for {scheme.scheme_id}")
        aux = args.voter.encode("utf-8")
    else:
        aux = bytes.fromhex(args.secret_hex) if args.secret_hex else generate_secret()
        print(f"secret_hex: {aux.hex()}")
    print(f"scheme: {scheme.scheme_id}{' (INSECURE)' if scheme.insecure else ''}")
    print(f"digest: {scheme.commit_hex(args.vote, aux)}")
    return 0


def _cmd_recover(args: argparse.Namespace) -> int:
    digest = bytes.fromhex(args.digest)
    vote = recover_vote(digest, args.voter, get_scheme(args.scheme))
    if vote is None:
        print(f"{args.voter}: vote not recoverable from digest")
        return 1
    print(f"{args.voter}: {'yes' if vote else 'no'}")
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    strict = args.strict or strict_from_env()
    outdir = Path(args.outdir) if args.outdir else None
    report = run_script_file(Path(args.script), outdir=outdir, strict=strict)
    print(dumps_report(report))
    return 1 if report["unexpected"] else 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="crpoll", description="Commit-reveal binary polls")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    d = sub.add_parser("digest", help="Compute the commitment digest for a vote")
    d.add_argument("--vote", required=True, type=_parse_vote)
    d.add_argument("--scheme", default=IDENTITY_SCHEME.scheme_id, choices=sorted(SCHEMES))
    d.add_argument("--voter", help="Voter identity (identity scheme)")
    d.add_argument("--secret-hex", help=f"Voter secret ({SALTED_SCHEME.scheme_id}); generated when omitted")
    d.set_defaults(func=_cmd_digest)

    r = sub.add_parser("recover", help="Read a vote from a published digest by precomputation")
    r.add_argument("--voter", required=True)
    r.add_argument("--digest", required=True)
    r.add_argument("--scheme", default=IDENTITY_SCHEME.scheme_id, choices=sorted(SCHEMES))
    r.set_defaults(func=_cmd_recover)

    s = sub.add_parser("simulate", help="Run a scenario (YAML/JSON) on a manual clock")
    s.add_argument("script")
    s.add_argument("--outdir", help="Write events.jsonl, report.json and poll results here")
    s.add_argument("--strict", action="store_true", help="Fail on the first step with an unexpected outcome")
    s.set_defaults(func=_cmd_simulate)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except ValueError as e:
        print(f"error: {type(e).__name__}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
