"""
ABI and blacklist file loading.

ABIs are stored as JSON arrays of entries (`type`, `name`, optional `inputs`).
Blacklists are JSON arrays of `{address, comment, date}` objects.
"""

import json
import logging
from pathlib import Path
from typing import List, Union

from ..errors import MalformedABI, MalformedBlacklist
from .base import BlacklistEntry

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_abi_file(path: PathLike) -> str:
    """
    Read an ABI description from disk.

    Returns the raw JSON text; parsing is left to AbiRegistry.build.

    Raises:
        MalformedABI: file missing or unreadable
    """
    try:
        text = Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise MalformedABI(f"Could not read ABI file {path}: {e}") from e
    logger.info(f"Loaded ABI from {path}")
    return text


def load_blacklist_file(path: PathLike) -> List[BlacklistEntry]:
    """
    Read blacklist entries from disk.

    Raises:
        MalformedBlacklist: file missing, not JSON, or not an array of objects
            with an `address`
    """
    try:
        raw = json.loads(Path(path).read_text(encoding='utf-8'))
    except OSError as e:
        raise MalformedBlacklist(f"Could not read blacklist file {path}: {e}") from e
    except ValueError as e:
        raise MalformedBlacklist(f"Blacklist file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, list):
        raise MalformedBlacklist(f"Blacklist file {path} must contain a JSON array")

    entries = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get('address'):
            raise MalformedBlacklist(f"Blacklist entry #{i} has no address")
        entries.append(BlacklistEntry(
            address=str(item['address']),
            comment=str(item.get('comment', '')),
            date=str(item.get('date', '')),
        ))

    logger.info(f"Loaded {len(entries)} blacklist entries from {path}")
    return entries
