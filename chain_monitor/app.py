"""
chain-monitor command line

Usage:
    chain-monitor contract --block 0xB                 # One block, ABI from ABI_PATH
    chain-monitor contract --start 100 --end 110       # Block range, one block at a time
    chain-monitor contract --block latest --json out.json
    chain-monitor contract --block latest --explorer-abi   # ABI from the block explorer
    chain-monitor chain                                # One chain health snapshot
    chain-monitor watch                                # Poll chain health every POLL_INTERVAL seconds
"""

import argparse
import json
import logging
import sys
import threading
from typing import List, Optional

from dotenv import load_dotenv

from .config.monitor_config import MonitorConfig
from .logging_config import setup_logging
from .services.blockchain_service import BlockchainService
from .services.contract_monitor import ContractMonitor, build_registry, load_blacklist
from .services.errors import ConfigurationError, MonitorError, MonitorRunError, RunCancelled
from .services.explorer_client import ExplorerClient
from .services.reporter import render_chain_metrics, render_text, write_report

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='chain-monitor', description="EVM chain and smart contract monitoring")
    parser.add_argument('--verbose', action='store_true', help="Enable debug logging")
    parser.add_argument('--node-url', help="JSON-RPC endpoint (overrides NODE_URL)")
    parser.add_argument('--chain-id', type=int, help="Chain id used for sender recovery (overrides CHAIN_ID)")
    sub = parser.add_subparsers(dest='command', required=True)

    contract = sub.add_parser('contract', help="Decode and aggregate contract activity")
    contract.add_argument('--address', help="Contract address (overrides CONTRACT_ADDRESS)")
    contract.add_argument('--block', default=None, help="Block number, hex quantity or tag")
    contract.add_argument('--start', type=int, help="First block of a range (inclusive)")
    contract.add_argument('--end', type=int, help="Last block of a range (inclusive)")
    contract.add_argument('--abi', help="ABI file path (overrides ABI_PATH)")
    contract.add_argument('--explorer-abi', action='store_true', help="Fetch the ABI from the block explorer")
    contract.add_argument('--blacklist', help="Blacklist file path (overrides BLACKLIST_PATH)")
    contract.add_argument('--value-limit', type=int, help="Value threshold in wei (overrides VALUE_LIMIT_WEI)")
    contract.add_argument('--stop-on-first-hit', action='store_true', default=None,
                          help="Stop blacklist screening after the first hit in a block")
    contract.add_argument('--with-chain', action='store_true', help="Append chain metrics to the report")
    contract.add_argument('--json', dest='json_path', help="Write the JSON report to this path")

    sub.add_parser('chain', help="Print one chain health snapshot")

    watch = sub.add_parser('watch', help="Poll chain health until interrupted")
    watch.add_argument('--interval', type=float, help="Seconds between polls (overrides POLL_INTERVAL)")
    watch.add_argument('--count', type=int, help="Stop after this many polls")
    return parser


def run_contract(args, config: MonitorConfig) -> int:
    if args.block is None and args.start is None:
        args.block = 'latest'
    if args.start is not None and args.end is None:
        raise ConfigurationError("--end is required with --start")

    explorer = ExplorerClient(config.explorer_api_key, config.explorer_base_url,
                              timeout=config.request_timeout) if args.explorer_abi else None
    registry = build_registry(config, explorer)
    blacklist = load_blacklist(config)
    logger.info(f"ABI registry: {len(registry.function_index)} functions, "
                f"{len(registry.event_index)} events; blacklist: {len(blacklist)} addresses")

    service = BlockchainService.from_config(config)
    monitor = ContractMonitor(service, registry, config, blacklist=blacklist)
    cancel_event = threading.Event()
    reports = []
    interrupted = False
    try:
        if args.start is not None:
            blocks = monitor.run_range(args.start, args.end, cancel_event=cancel_event)
        else:
            blocks = iter([monitor.run(args.block, cancel_event=cancel_event)])
        for report in blocks:
            if args.with_chain:
                report.chain_metrics = service.get_chain_metrics()
            print(render_text(report))
            print()
            reports.append(report)
    except KeyboardInterrupt:
        cancel_event.set()
        interrupted = True
        print("\n[STOP] Interrupted")
    finally:
        service.close()

    if args.json_path and reports:
        if len(reports) == 1:
            write_report(reports[0], args.json_path)
        else:
            with open(args.json_path, 'w', encoding='utf-8') as f:
                json.dump([r.to_dict() for r in reports], f, indent=2)
    if interrupted:
        return 130
    return 1 if any(r.flags for r in reports) else 0


def run_chain(config: MonitorConfig) -> int:
    service = BlockchainService.from_config(config)
    try:
        print(render_chain_metrics(service.get_chain_metrics()))
    finally:
        service.close()
    return 0


def watch_chain(config: MonitorConfig, interval: Optional[float] = None, count: Optional[int] = None,
                stop_event: Optional[threading.Event] = None) -> int:
    """Poll chain metrics every interval seconds until stopped"""
    interval = interval if interval is not None else config.poll_interval
    stop_event = stop_event or threading.Event()
    service = BlockchainService.from_config(config)
    polls = 0
    try:
        while not stop_event.is_set():
            print(render_chain_metrics(service.get_chain_metrics()))
            print()
            polls += 1
            if count is not None and polls >= count:
                break
            stop_event.wait(interval)
    except KeyboardInterrupt:
        print("\n[STOP] Monitoring stopped")
    finally:
        service.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        overrides = {'node_url': args.node_url, 'chain_id': args.chain_id}
        if args.command == 'contract':
            overrides.update({
                'contract_address': args.address,
                'abi_path': args.abi,
                'blacklist_path': args.blacklist,
                'value_limit_wei': args.value_limit,
                'blacklist_stop_on_first_hit': args.stop_on_first_hit,
            })
        config = MonitorConfig.from_env(**overrides)
        logger.debug(f"Configuration: {config.redacted()}")

        if args.command == 'contract':
            return run_contract(args, config)
        if args.command == 'chain':
            return run_chain(config)
        return watch_chain(config, interval=args.interval, count=args.count)

    except RunCancelled as e:
        logger.warning(str(e))
        if e.partial_report is not None:
            print(render_text(e.partial_report))
        return 130
    except MonitorRunError as e:
        logger.error(str(e))
        if e.partial_report is not None:
            print(render_text(e.partial_report))
        return 2
    except MonitorError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2
    except ValueError as e:
        logger.error(f"Invalid argument: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
