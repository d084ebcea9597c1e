"""Delayed-jobs CLI — operate a delayed-jobs instance stored in a data directory.

Usage:
    delayed-jobs init --submitter 0xA... --executor 0xB... --delay 86400
    delayed-jobs status
    delayed-jobs submit-job --as 0xA... --target 0xT... --signature "ping()" --value 1000
    delayed-jobs execute-job --as 0xB... --target 0xT... --reward 1000 --signature "ping()"
    delayed-jobs submit-auction --as 0xA... --target 0xT... --timeout 7200 --value 1000
    delayed-jobs place-bid --as 0xC... --target 0xT... --ceiling 1000 --bid 900 --timeout 7200 --value 100
    delayed-jobs execute-bid --as 0xC... --target 0xT... --ceiling 1000 --timeout 7200
    delayed-jobs cancel-auction --as 0xA... --target 0xT... --ceiling 1000 --timeout 7200
    delayed-jobs check-invariants

Environment (a .env file in the working directory is honoured):
    DELAYED_JOBS_CONFIG_DIR, DELAYED_JOBS_DATA_DIR,
    DELAYED_JOBS_RPC_URL, DELAYED_JOBS_PRIVATE_KEY (for --dispatcher web3)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from dotenv import load_dotenv
from eth_utils import decode_hex, encode_hex

from delayedjobs.clock import Clock, ManualClock, SystemClock
from delayedjobs.config import (
    DEFAULT_CONFIG_DIR,
    PARAMS_FILENAME,
    DelayedJobsParams,
    validate_params,
)
from delayedjobs.dispatch.dispatcher import CallDispatcher, RecordingDispatcher
from delayedjobs.dispatch.web3_dispatcher import Web3Dispatcher
from delayedjobs.errors import DelayedJobsError, DispatchFailed
from delayedjobs.escrow.payout_rail import BalanceBook
from delayedjobs.models.job import JobRecord, to_identity
from delayedjobs.persistence.event_log import EventLog
from delayedjobs.persistence.state_store import StateStore, record_to_dict
from delayedjobs.registry.fingerprint import fingerprint_auction, fingerprint_simple
from delayedjobs.service import DelayedJobsService

logger = logging.getLogger(__name__)

DEFAULT_DATA = Path.cwd() / "data"
STATE_FILENAME = "state.json"
EVENTS_FILENAME = "events.jsonl"


def _parse_at(value: str) -> datetime:
    when = datetime.fromisoformat(value)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when


def _clock(args: argparse.Namespace) -> Clock:
    if getattr(args, "at", None):
        return ManualClock(_parse_at(args.at))
    return SystemClock()


def _dispatcher(args: argparse.Namespace) -> CallDispatcher:
    if getattr(args, "dispatcher", "record") == "web3":
        private_key = os.getenv("DELAYED_JOBS_PRIVATE_KEY")
        if not private_key:
            raise ValueError("DELAYED_JOBS_PRIVATE_KEY must be set for --dispatcher web3")
        return Web3Dispatcher(os.getenv("DELAYED_JOBS_RPC_URL"), private_key)
    return RecordingDispatcher()


def _make_service(args: argparse.Namespace, rail: BalanceBook) -> DelayedJobsService:
    """Load the service from the data directory with durable persistence."""
    params = DelayedJobsParams.from_config_dir(args.config)
    store = StateStore(args.data / STATE_FILENAME)
    return DelayedJobsService.from_state_store(
        store,
        bounds=params.bounds,
        clock=_clock(args),
        dispatcher=_dispatcher(args),
        rail=rail,
        event_log=EventLog(storage_path=args.data / EVENTS_FILENAME),
    )


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _job_view(record: JobRecord) -> dict[str, Any]:
    view = record_to_dict(record)
    view["held_value"] = str(record.held_value)
    return view


def _payouts_view(rail: BalanceBook) -> list[dict[str, Any]]:
    return [
        {"recipient": p.recipient, "amount": str(p.amount), "reason": p.reason}
        for p in rail.history
    ]


def cmd_init(args: argparse.Namespace) -> int:
    params = DelayedJobsParams.from_config_dir(args.config)
    store = StateStore(args.data / STATE_FILENAME)
    if store.exists() and not args.force:
        print(f"Failed: state already exists at {store.path} (use --force)", file=sys.stderr)
        return 1
    delay = args.delay if args.delay is not None else params.initial_delay
    service = DelayedJobsService(
        args.submitter,
        args.executor,
        delay,
        bounds=params.bounds,
        state_store=store,
    )
    store.save(service.submitter, service.executor, service.delay, [])
    print(f"Initialised delayed jobs at {store.path} (delay: {service.delay}s)")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args, BalanceBook())
    _emit(service.status())
    return 0


def cmd_update_delay(args: argparse.Namespace) -> int:
    service = _make_service(args, BalanceBook())
    delay = service.update_delay(args.caller, args.delay)
    print(f"Delay updated: {delay}s")
    return 0


def cmd_submit_job(args: argparse.Namespace) -> int:
    service = _make_service(args, BalanceBook())
    record = service.submit_job(args.caller, args.target, args.signature, args.payload, args.value)
    _emit(_job_view(record))
    return 0


def cmd_resubmit_job(args: argparse.Namespace) -> int:
    service = _make_service(args, BalanceBook())
    record = service.resubmit_job(args.caller, args.target, args.value, args.signature, args.payload)
    _emit(_job_view(record))
    return 0


def cmd_execute_job(args: argparse.Namespace) -> int:
    rail = BalanceBook()
    service = _make_service(args, rail)
    output = service.execute_job(args.caller, args.target, args.reward, args.signature, args.payload)
    _emit({"output": encode_hex(output), "payouts": _payouts_view(rail)})
    return 0


def cmd_submit_auction(args: argparse.Namespace) -> int:
    service = _make_service(args, BalanceBook())
    record = service.submit_job_auction(
        args.caller, args.target, args.signature, args.payload, args.timeout, args.value
    )
    _emit(_job_view(record))
    return 0


def cmd_place_bid(args: argparse.Namespace) -> int:
    rail = BalanceBook()
    service = _make_service(args, rail)
    record = service.place_job_bid(
        args.caller, args.target, args.ceiling, args.bid,
        args.signature, args.payload, args.timeout, args.value,
    )
    _emit({"job": _job_view(record), "payouts": _payouts_view(rail)})
    return 0


def cmd_execute_bid(args: argparse.Namespace) -> int:
    rail = BalanceBook()
    service = _make_service(args, rail)
    output = service.execute_job_bid(
        args.caller, args.target, args.ceiling, args.signature, args.payload, args.timeout
    )
    _emit({"output": encode_hex(output), "payouts": _payouts_view(rail)})
    return 0


def cmd_cancel_auction(args: argparse.Namespace) -> int:
    rail = BalanceBook()
    service = _make_service(args, rail)
    service.cancel_job_auction(
        args.caller, args.target, args.ceiling, args.signature, args.payload, args.timeout
    )
    _emit({"payouts": _payouts_view(rail)})
    return 0


def cmd_fingerprint(args: argparse.Namespace) -> int:
    target = to_identity(args.target, "target")
    if args.timeout is None:
        print(fingerprint_simple(target, args.value, args.signature, args.payload))
    else:
        print(fingerprint_auction(target, args.value, args.signature, args.payload, args.timeout))
    return 0


def cmd_events(args: argparse.Namespace) -> int:
    log = EventLog(storage_path=args.data / EVENTS_FILENAME)
    events = log.events_for(args.fingerprint) if args.fingerprint else log.events()
    _emit([e.to_dict() for e in events])
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Validate the params file and, if initialised, reconcile escrow."""
    with (args.config / PARAMS_FILENAME).open("r", encoding="utf-8") as handle:
        errors = validate_params(json.load(handle))
    if not errors and StateStore(args.data / STATE_FILENAME).exists():
        errors = _make_service(args, BalanceBook()).check_escrow_invariants()
    if errors:
        for error in errors:
            print(f"Invariant violation: {error}", file=sys.stderr)
        return 1
    print("All invariants hold.")
    return 0


def _add_caller(p: argparse.ArgumentParser) -> None:
    p.add_argument("--as", dest="caller", required=True, help="Caller identity (0x address)")
    p.add_argument("--at", help="Evaluate at this ISO-8601 time (default: now)")
    p.add_argument(
        "--dispatcher", choices=["record", "web3"], default="record",
        help="Call dispatcher (default: record, no external call)",
    )


def _add_call(p: argparse.ArgumentParser) -> None:
    p.add_argument("--target", required=True, help="Target identity (0x address)")
    p.add_argument("--signature", default="", help='Function signature, e.g. "ping()"')
    p.add_argument("--payload", type=decode_hex, default=b"", help="Call payload (hex)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="delayed-jobs",
        description="Delayed jobs — escrowed, time-locked call execution",
    )
    parser.add_argument(
        "--config", type=Path,
        default=Path(os.getenv("DELAYED_JOBS_CONFIG_DIR", str(DEFAULT_CONFIG_DIR))),
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data", type=Path,
        default=Path(os.getenv("DELAYED_JOBS_DATA_DIR", str(DEFAULT_DATA))),
        help="Path to data directory (default: ./data)",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command")

    p_init = sub.add_parser("init", help="Create a new instance")
    p_init.add_argument("--submitter", required=True)
    p_init.add_argument("--executor", required=True)
    p_init.add_argument("--delay", type=int, help="Initial delay in seconds")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing state")

    sub.add_parser("status", help="Show instance status")

    p_delay = sub.add_parser("update-delay", help="Change the delay (submitter only)")
    _add_caller(p_delay)
    p_delay.add_argument("--delay", type=int, required=True)

    p_submit = sub.add_parser("submit-job", help="Submit a simple job")
    _add_caller(p_submit)
    _add_call(p_submit)
    p_submit.add_argument("--value", type=int, required=True, help="Reward escrowed (wei)")

    p_resubmit = sub.add_parser("resubmit-job", help="Restart the delay of an open simple job")
    _add_caller(p_resubmit)
    _add_call(p_resubmit)
    p_resubmit.add_argument("--value", type=int, required=True, help="Committed reward (wei)")

    p_exec = sub.add_parser("execute-job", help="Execute a simple job (executor only)")
    _add_caller(p_exec)
    _add_call(p_exec)
    p_exec.add_argument("--reward", type=int, required=True, help="Committed reward (wei)")

    p_auction = sub.add_parser("submit-auction", help="Submit an auction job")
    _add_caller(p_auction)
    _add_call(p_auction)
    p_auction.add_argument("--timeout", type=int, required=True, help="Execution window (s)")
    p_auction.add_argument("--value", type=int, required=True, help="Ceiling reward (wei)")

    p_bid = sub.add_parser("place-bid", help="Bid on an auction job")
    _add_caller(p_bid)
    _add_call(p_bid)
    p_bid.add_argument("--ceiling", type=int, required=True)
    p_bid.add_argument("--bid", type=int, required=True)
    p_bid.add_argument("--timeout", type=int, required=True)
    p_bid.add_argument("--value", type=int, required=True, help="Collateral (ceiling - bid)")

    for name, help_text in (
        ("execute-bid", "Execute an auction job (best bidder only)"),
        ("cancel-auction", "Cancel a lapsed auction job (submitter only)"),
    ):
        p = sub.add_parser(name, help=help_text)
        _add_caller(p)
        _add_call(p)
        p.add_argument("--ceiling", type=int, required=True)
        p.add_argument("--timeout", type=int, required=True)

    p_fp = sub.add_parser("fingerprint", help="Compute a job fingerprint")
    _add_call(p_fp)
    p_fp.add_argument("--value", type=int, required=True, help="Committed value or ceiling")
    p_fp.add_argument("--timeout", type=int, help="Auction timeout (omit for simple jobs)")

    p_events = sub.add_parser("events", help="List notifications")
    p_events.add_argument("--fingerprint", help="Only events for this job")

    sub.add_parser("check-invariants", help="Validate params and escrow")

    return parser


COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "init": cmd_init,
    "status": cmd_status,
    "update-delay": cmd_update_delay,
    "submit-job": cmd_submit_job,
    "resubmit-job": cmd_resubmit_job,
    "execute-job": cmd_execute_job,
    "submit-auction": cmd_submit_auction,
    "place-bid": cmd_place_bid,
    "execute-bid": cmd_execute_bid,
    "cancel-auction": cmd_cancel_auction,
    "fingerprint": cmd_fingerprint,
    "events": cmd_events,
    "check-invariants": cmd_check_invariants,
}


def main(argv: list[str] | None = None) -> int:
    load_dotenv(override=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.command is None:
        parser.print_help()
        return 0

    handler = COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except DispatchFailed as e:
        print(f"Failed: {e} ({e.cause})", file=sys.stderr)
        return 1
    except (DelayedJobsError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
