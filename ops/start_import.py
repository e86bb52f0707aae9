from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("PIMSYNC_BASE_URL", "http://localhost:8000")
DEFAULT_ADMIN_KEY = os.getenv("INTERNAL_ADMIN_KEY", "")

DEFAULT_TIMEOUT_SECONDS = 30


def http_call(method: str, url: str, admin_key: str, payload: dict[str, Any] | None = None) -> Any:
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    req = urllib.request.Request(
        url=url,
        data=data,
        method=method,
        headers={
            "Content-Type": "application/json",
            "X-Internal-Admin-Key": admin_key,
        },
    )
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = ""
        try:
            body = e.read().decode("utf-8")
        except Exception:
            body = ""
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def build_request(args: argparse.Namespace) -> tuple[str, str, dict[str, Any] | None]:
    base = f"{args.base_url.rstrip('/')}/v1/admin/import-runs"

    if args.command == "start":
        body: dict[str, Any] = {"kind": args.kind}
        if args.entity_types:
            body["entity_types"] = [t.strip() for t in args.entity_types.split(",") if t.strip()]
        return "POST", base, body
    if args.command == "list":
        return "GET", base, None
    if args.command == "status":
        return "GET", f"{base}/{args.run_id}", None
    if args.command in ("cancel", "resume"):
        return "POST", f"{base}/{args.run_id}:{args.command}", None
    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Start and manage inriver import runs.")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY)
    sub = p.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="create and enqueue a run")
    start.add_argument("--kind", choices=["historical", "nightly"], default="historical")
    start.add_argument("--entity-types", help="comma separated, e.g. Product,Item (default: configured types)")

    sub.add_parser("list", help="latest runs")
    for name in ("status", "cancel", "resume"):
        sp = sub.add_parser(name)
        sp.add_argument("run_id")

    args = p.parse_args(argv)

    if not args.admin_key:
        print("Missing INTERNAL_ADMIN_KEY (env) or --admin-key", file=sys.stderr)
        return 2

    method, url, body = build_request(args)
    resp = http_call(method, url, args.admin_key, body)
    print(json.dumps(resp, indent=2, ensure_ascii=False))
    return 1 if isinstance(resp, dict) and "error" in resp else 0


if __name__ == "__main__":
    raise SystemExit(main())
