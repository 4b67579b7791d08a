#!/usr/bin/env python3
"""Dump every collection the propsync client can read.

Reads the primary collections through the client (and so through the
query cache), printing the parsed model fields **and** the raw API JSON
so you can spot fields that aren't modelled yet.

Usage
-----
Point the client at a running backend and run::

    export PROPSYNC_BASE_URL="http://localhost:5000"
    python scripts/dump_resources.py

Options::

    --owner ID           Also dump the team and invitations of this owner
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --skip NAME          Skip a collection (repeatable)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydantic import BaseModel  # noqa: E402

from propsync import PropSyncClient, PropSyncError, SyncConfig  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _print_model(label: str, model: BaseModel, out: list[str]) -> dict[str, Any]:
    fields = model.model_dump(mode="json")
    out.append(f"\n  --- {label} ---")
    for name, value in fields.items():
        out.append(f"    {name}: {value!r}")
    return fields


def _print_raw(label: str, raw: dict[str, Any], out: list[str]) -> None:
    out.append(f"  --- {label} (raw) ---")
    for line in json.dumps(raw, indent=2, default=str, ensure_ascii=False).splitlines():
        out.append(f"    {line}")


async def dump_collection(
    name: str,
    reader: Callable[[], Awaitable[list[Any]]],
    *,
    json_mode: bool,
) -> list[dict[str, Any]]:
    out: list[str] = [_section(name.upper())]
    dumped: list[dict[str, Any]] = []
    try:
        items = await reader()
    except PropSyncError as exc:
        out.append(f"  ERROR: {exc}")
        dumped.append({"error": str(exc)})
    else:
        if not items:
            out.append("  (empty)")
        for item in items:
            label = f"{type(item).__name__} id={getattr(item, 'id', '?')}"
            fields = _print_model(label, item, out)
            _print_raw(label, item.raw, out)
            dumped.append({"info": fields, "raw": item.raw})
    if not json_mode:
        print("\n".join(out))
    return dumped


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump every collection propsync can read for debugging / development.",
    )
    parser.add_argument("--owner", type=int, help="Also dump the team and invitations of this owner")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--skip", action="append", default=[], help="Skip a collection (repeatable)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = SyncConfig.from_env()
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "base_url": config.base_url,
        "collections": {},
    }
    if not args.json_mode:
        print(_section("propsync dump_resources"))
        print(f"  time      : {result['timestamp']}")
        print(f"  base_url  : {config.base_url}")

    async with PropSyncClient(config) as client:
        readers: dict[str, Callable[[], Awaitable[list[Any]]]] = {
            "properties": client.get_properties,
            "deleted_properties": client.get_deleted_properties,
            "leases": client.get_leases,
            "tenants": client.get_tenants,
            "owners": client.get_owners,
        }
        if args.owner is not None:
            owner_id = args.owner
            readers["team"] = lambda: client.get_owner_team(owner_id)
            readers["invitations"] = lambda: client.get_owner_invitations(owner_id)

        for name, reader in readers.items():
            if name in args.skip:
                continue
            result["collections"][name] = await dump_collection(name, reader, json_mode=args.json_mode)

    payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"JSON written to {args.output}", file=sys.stderr)
    elif args.json_mode:
        print(payload)


if __name__ == "__main__":
    asyncio.run(main())
