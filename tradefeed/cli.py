from __future__ import annotations

import argparse
import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from tradefeed.config import ClientSpec, LoggingSpec, OutputSpec, ServerSpec, load_clientspec
from tradefeed.output import save_packets
from tradefeed.report import compute_metrics, load_events
from tradefeed.runtime.assembler import IncompleteDatasetError
from tradefeed.runtime.client import FeedClient
from tradefeed.runtime.logging import JsonlLogger
from tradefeed.runtime.scheduler import RealClock
from tradefeed.transport.base import TransportError

EXIT_TRANSPORT = 2
EXIT_INCOMPLETE = 3


def _default_run_id() -> str:
    return datetime.now(timezone.utc).strftime("run_%Y%m%dT%H%M%SZ")


def _build_spec(args: argparse.Namespace) -> ClientSpec:
    if args.config:
        spec = load_clientspec(args.config)
    else:
        spec = ClientSpec(run_id=args.run_id or _default_run_id(), logging=LoggingSpec("logs"))
    server = spec.server
    if args.host:
        server = replace(server, host=args.host)
    if args.port is not None:
        server = replace(server, port=args.port)
    spec = replace(spec, server=server)
    if args.run_id:
        spec = replace(spec, run_id=args.run_id)
    if args.out:
        spec = replace(spec, output=replace(spec.output, path=args.out))
    if args.log_dir:
        spec = replace(spec, logging=LoggingSpec(args.log_dir))
    if args.strict:
        spec = replace(spec, strict_completeness=True)
    spec.validate()
    return spec


def _run_fetch(args: argparse.Namespace) -> int:
    spec = _build_spec(args)
    clock = RealClock()
    logger = JsonlLogger(spec.logging.out_dir, spec.run_id, spec.peer(), clock=clock)
    try:
        logger.log_run_start(spec.as_dict())
        client = FeedClient(spec, logger, clock=clock)
        try:
            result = client.run()
        except TransportError as exc:
            logger.log_event("run_failed", {"error": type(exc).__name__, "reason": str(exc)})
            print(json.dumps({"ok": False, "error": str(exc)}))
            return EXIT_TRANSPORT
        except IncompleteDatasetError as exc:
            gaps = {"missing": exc.missing, "missing_count": exc.missing_count}
            logger.log_event("run_failed", {"error": type(exc).__name__, **gaps})
            print(json.dumps({"ok": False, "error": str(exc), **gaps}))
            return EXIT_INCOMPLETE
        path = save_packets(spec.output.path, result.packets, indent=spec.output.indent)
        logger.log_event("dataset_saved", {"path": str(path), "packets": len(result.packets)})
    finally:
        logger.close()
    summary = {
        "ok": True,
        "packets": len(result.packets),
        "max_sequence": result.max_sequence,
        "recovered": result.recovered_count,
        "missing": result.missing,
        "missing_count": result.missing_count,
        "complete": result.complete,
        "output": str(path),
        "log": str(logger.path),
    }
    print(json.dumps(summary, indent=2))
    return 0


def _run_metrics(args: argparse.Namespace) -> int:
    events = []
    for path in args.log:
        events.extend(load_events(path))
    grouped: dict[str, list[dict[str, object]]] = {}
    for event in events:
        run_id = str(event.get("run_id", "unknown"))
        grouped.setdefault(run_id, []).append(event)
    report = {run_id: compute_metrics(run_events) for run_id, run_events in grouped.items()}
    output = json.dumps(report, indent=2)
    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
    else:
        print(output)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tradefeed")
    sub = parser.add_subparsers(dest="cmd", required=True)

    fetch = sub.add_parser("fetch", help="stream all packets, recover gaps, write dataset")
    fetch.add_argument("--config", help="client spec (JSON or YAML)")
    fetch.add_argument("--host", help=f"feed host (default {ServerSpec.host})")
    fetch.add_argument("--port", type=int, help=f"feed port (default {ServerSpec.port})")
    fetch.add_argument("--run-id")
    fetch.add_argument("--out", help=f"dataset path (default {OutputSpec.path})")
    fetch.add_argument("--log-dir", help="directory for the JSONL event log")
    fetch.add_argument(
        "--strict",
        action="store_true",
        help="fail instead of warning when sequences are still missing after recovery",
    )
    fetch.set_defaults(func=_run_fetch)

    metrics = sub.add_parser("metrics", help="summarize JSONL event logs")
    metrics.add_argument("--log", action="append", required=True, help="path to a JSONL log")
    metrics.add_argument("--out")
    metrics.set_defaults(func=_run_metrics)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
