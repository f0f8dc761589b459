"""
Logging for the chain_monitor CLI.

Console records go to stderr so that reports printed on stdout stay clean.
MONITOR_DEBUG=1 also writes every chain_monitor record, with the worker
thread name, to monitor_debug.log.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

MONITOR_DEBUG = os.getenv('MONITOR_DEBUG', '').lower() in ('1', 'true', 'yes')
DEBUG_LOG_PATH = Path.cwd() / 'monitor_debug.log'

# Transport chatter from the node and explorer clients
QUIET_LOGGERS = ('urllib3', 'requests', 'web3')


class ConsoleFormatter(logging.Formatter):
    """One line per record, tagged by level; colour only on a terminal."""

    TAGS = {
        logging.DEBUG: ("D", "90"),
        logging.INFO: ("I", "32"),
        logging.WARNING: ("W", "33"),
        logging.ERROR: ("E", "31"),
        logging.CRITICAL: ("!", "31;1"),
    }

    def __init__(self, colour: bool = False):
        super().__init__()
        self.colour = colour

    def format(self, record):
        tag, code = self.TAGS.get(record.levelno, self.TAGS[logging.INFO])
        prefix = f"\033[{code}m[{tag}]\033[0m" if self.colour else f"[{tag}]"
        # Warnings and info are user-facing; name the module only for debug and errors
        if record.levelno in (logging.INFO, logging.WARNING):
            return f"{prefix} {record.getMessage()}"
        return f"{prefix} {record.name}: {record.getMessage()}"


def setup_logging(level=logging.INFO, debug: bool = MONITOR_DEBUG,
                  debug_path: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger once, at CLI startup."""
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter(colour=sys.stderr.isatty()))
    console.setLevel(level)
    root.addHandler(console)

    package_logger = logging.getLogger('chain_monitor')
    package_logger.setLevel(level)

    if debug:
        path = debug_path or DEBUG_LOG_PATH
        file_handler = logging.FileHandler(path, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root.setLevel(logging.DEBUG)
        root.addHandler(file_handler)
        package_logger.setLevel(logging.DEBUG)
        package_logger.info(f"MONITOR_DEBUG enabled, verbose log at {path}")

    return package_logger
