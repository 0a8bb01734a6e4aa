#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import subprocess


def run(cmd: list[str]) -> int:
    print("$", " ".join(cmd))
    return subprocess.call(cmd)


def cmd_test(args: argparse.Namespace) -> int:
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
    pytest_args = ["pytest"]
    if args.quiet:
        pytest_args.append("-q")
    if args.k:
        pytest_args += ["-k", args.k]
    return run(pytest_args)


def cmd_serve(args: argparse.Namespace) -> int:
    uvicorn_args = ["uvicorn", "teamkb.main:app", "--host", args.host, "--port", str(args.port)]
    if args.reload:
        uvicorn_args.append("--reload")
    return run(uvicorn_args)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="teamkb", description="Team knowledge base helper")
    sub = parser.add_subparsers(dest="command", required=True)

    p_test = sub.add_parser("test", help="Run pytest")
    p_test.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (-q)")
    p_test.add_argument("-k", help="Only run tests matching expression")
    p_test.set_defaults(func=cmd_test)

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
