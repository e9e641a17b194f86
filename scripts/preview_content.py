#!/usr/bin/env python3
"""Print one tenant-day of generated content (and optionally an answer) as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "packages" / "py-shared"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from services.blocks_api.context import RequestContext  # noqa: E402
from services.blocks_api.errors import BlocksError  # noqa: E402
from services.blocks_api.facts import MockFactSource  # noqa: E402
from services.blocks_api.generator import generate  # noqa: E402
from services.blocks_api.handler import build_response  # noqa: E402


def _parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from exc


def main() -> int:
    parser = argparse.ArgumentParser(description="Preview deterministic mock content for a tenant and day.")
    parser.add_argument("--tenant", required=True, help="Tenant id used to seed the generator.")
    parser.add_argument(
        "--date",
        type=_parse_day,
        default=date.today(),
        help="Calendar day to generate for (YYYY-MM-DD, default: today).",
    )
    parser.add_argument("--prompt", help="Also build an assistant answer for this prompt.")
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the JSON to this file instead of stdout.",
    )
    args = parser.parse_args()

    try:
        payload = generate(args.tenant, args.date).to_wire()
        if args.prompt:
            ctx = RequestContext(request_id="preview", tenant_id=args.tenant, day=args.date)
            answer = asyncio.run(build_response(args.prompt, ctx, fact_source=MockFactSource()))
            payload["assistant"] = answer.model_dump(mode="json", by_alias=True)
    except (BlocksError, ValueError) as exc:
        print(f"Preview failed: {exc}", file=sys.stderr)
        return 1

    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text + "\n", encoding="utf-8")
        print(f"Wrote preview for {args.tenant} on {args.date.isoformat()} → {args.output}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
