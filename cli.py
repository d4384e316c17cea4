"""Small CLI for interacting with the survey ledger server.

Usage examples:
    python cli.py auth
    python cli.py create --token T --mac M --title "Q3 lineup" --items "A,B,C" --hours 24
    python cli.py rate --token T --mac M --survey 0 --ratings 4,5,3
    python cli.py end --token T --mac M --survey 0
    python cli.py reveal --token T --mac M --survey 0 --item 1
    python cli.py process
    python cli.py finalize --token T --mac M --survey 0
    python cli.py results --survey 0
"""

import argparse
import json

import requests

from survey_ledger import elgamal
from survey_ledger.config import get_settings
from survey_ledger.provider import seal_ratings

BASE = get_settings().SERVER_URL


def _headers(args):
    return {"X-Token": args.token, "X-Mac": args.mac}


def _show(r):
    print(json.dumps(r.json(), indent=2))


def auth(_args):
    _show(requests.post(f"{BASE}/auth", timeout=2))


def create(args):
    body = {
        "title": args.title,
        "description": args.description,
        "items": [s.strip() for s in args.items.split(",")],
        "duration_seconds": int(args.hours * 3600),
    }
    _show(requests.post(f"{BASE}/surveys", json=body, headers=_headers(args), timeout=2))


def rate(args):
    key = requests.get(f"{BASE}/public-key", timeout=2).json()
    params = elgamal.ElGamalParams(p=int(key["p"], 16), q=int(key["q"], 16), g=key["g"])
    pub = elgamal.ElGamalPublicKey(params=params, y=int(key["y"], 16))
    ratings = [int(r) for r in args.ratings.split(",")]
    ciphertexts, proofs = seal_ratings(pub, ratings, key["choices"])
    body = {"ciphertexts": [c.hex() for c in ciphertexts], "proofs": [p.hex() for p in proofs]}
    _show(requests.post(f"{BASE}/surveys/{args.survey}/ratings", json=body, headers=_headers(args), timeout=10))


def end(args):
    _show(requests.post(f"{BASE}/surveys/{args.survey}/end", headers=_headers(args), timeout=2))


def reveal(args):
    url = f"{BASE}/surveys/{args.survey}/items/{args.item}/reveal"
    _show(requests.post(url, headers=_headers(args), timeout=2))


def process(_args):
    _show(requests.post(f"{BASE}/oracle/process", timeout=30))


def finalize(args):
    _show(requests.post(f"{BASE}/surveys/{args.survey}/finalize", headers=_headers(args), timeout=2))


def show(args):
    _show(requests.get(f"{BASE}/surveys/{args.survey}", timeout=2))


def results(args):
    _show(requests.get(f"{BASE}/surveys/{args.survey}/results", timeout=2))


def main():
    p = argparse.ArgumentParser()
    sub = p.add_subparsers(dest="cmd")

    def with_token(parser):
        parser.add_argument("--token", required=True)
        parser.add_argument("--mac", required=True)
        return parser

    sub.add_parser("auth").set_defaults(func=auth)

    c = with_token(sub.add_parser("create"))
    c.add_argument("--title", required=True)
    c.add_argument("--description", default="")
    c.add_argument("--items", required=True, help="comma separated item names")
    c.add_argument("--hours", type=float, default=24)
    c.set_defaults(func=create)

    r = with_token(sub.add_parser("rate"))
    r.add_argument("--survey", type=int, required=True)
    r.add_argument("--ratings", required=True, help="comma separated, one per item")
    r.set_defaults(func=rate)

    for name, func in (("end", end), ("finalize", finalize)):
        s = with_token(sub.add_parser(name))
        s.add_argument("--survey", type=int, required=True)
        s.set_defaults(func=func)

    v = with_token(sub.add_parser("reveal"))
    v.add_argument("--survey", type=int, required=True)
    v.add_argument("--item", type=int, required=True)
    v.set_defaults(func=reveal)

    sub.add_parser("process").set_defaults(func=process)

    for name, func in (("show", show), ("results", results)):
        s = sub.add_parser(name)
        s.add_argument("--survey", type=int, required=True)
        s.set_defaults(func=func)

    args = p.parse_args()
    if getattr(args, "func", None) is None:
        p.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
