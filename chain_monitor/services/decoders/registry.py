"""
ABI Registry - lookup of contract functions and events.

Indexes a contract ABI by:
1. 4-byte function selector (keccak-256 of the canonical function signature)
2. 32-byte event topic hash (keccak-256 of the canonical event signature)

Built once per monitoring run and shared read-only by the decoder and the
aggregator.
"""

import json
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple, Union

from eth_utils import (
    abi_to_signature,
    collapse_if_tuple,
    event_abi_to_log_topic,
    function_abi_to_4byte_selector,
)
from web3 import Web3

from ..errors import MalformedABI, UnknownSelector
from .base import AbiEntry, AbiParam, EntryKind, selector_bytes

logger = logging.getLogger(__name__)

SELECTOR_LENGTH = 4
TOPIC_LENGTH = 32

AbiDescription = Union[str, bytes, bytearray, List[Dict[str, Any]]]


def _parse_description(abi_description: AbiDescription) -> List[Any]:
    if isinstance(abi_description, (str, bytes, bytearray)):
        try:
            parsed = json.loads(abi_description)
        except (ValueError, TypeError) as e:
            raise MalformedABI(f"ABI is not valid JSON: {e}") from e
    else:
        parsed = abi_description

    if not isinstance(parsed, list):
        raise MalformedABI(f"ABI must be a JSON array, got {type(parsed).__name__}")
    return parsed


def _params(raw_inputs: Any, entry_name: str) -> List[Dict[str, Any]]:
    if raw_inputs is None:
        return []
    if not isinstance(raw_inputs, list) or not all(isinstance(p, dict) for p in raw_inputs):
        raise MalformedABI(f"Inputs of '{entry_name}' must be a list of objects")
    return raw_inputs


def _param_type(param: Dict[str, Any]) -> str:
    """Canonical type of one input; tuples expand to their component types"""
    try:
        abi_type = collapse_if_tuple(param)
    except (TypeError, KeyError) as e:
        raise MalformedABI(f"Parameter without a usable type: {param!r}") from e
    if not abi_type:
        raise MalformedABI(f"Parameter without a type: {param!r}")
    return abi_type


# ============================================================================
# REGISTRY
# ============================================================================

class AbiRegistry:
    """
    Immutable selector/topic lookup built from an ABI description.

    Overloaded functions get distinct selectors but share one display name,
    so they collapse into a single counter bucket.
    """

    def __init__(self, functions: Mapping[bytes, AbiEntry], events: Mapping[bytes, AbiEntry],
                 declared_names: Tuple[str, ...]):
        self._functions = MappingProxyType(dict(functions))
        self._events = MappingProxyType(dict(events))
        self._declared_names = declared_names

    @classmethod
    def build(cls, abi_description: AbiDescription) -> "AbiRegistry":
        """
        Parse an ABI description into a registry.

        Args:
            abi_description: JSON text or already-parsed list of ABI entries

        Returns:
            AbiRegistry

        Raises:
            MalformedABI: description is not valid structured data, or two
                different names share a selector/topic hash
        """
        entries = _parse_description(abi_description)

        functions: Dict[bytes, AbiEntry] = {}
        events: Dict[bytes, AbiEntry] = {}
        names: Dict[str, None] = {}

        for position, item in enumerate(entries):
            if not isinstance(item, dict):
                raise MalformedABI(f"ABI entry #{position} is not an object")

            entry_type = item.get('type', 'function')
            if entry_type not in (EntryKind.FUNCTION.value, EntryKind.EVENT.value):
                # constructor, fallback, receive, error
                continue

            name = item.get('name')
            if not isinstance(name, str) or not name:
                raise MalformedABI(f"ABI {entry_type} entry #{position} has no name")

            inputs = _params(item.get('inputs'), name)
            params = tuple(
                AbiParam(name=p.get('name') or "", type=_param_type(p), indexed=bool(p.get('indexed', False)))
                for p in inputs
            )
            element = {'type': entry_type, 'name': name, 'inputs': inputs}
            signature = abi_to_signature(element)

            if entry_type == EntryKind.FUNCTION.value:
                kind, index, key = EntryKind.FUNCTION, functions, function_abi_to_4byte_selector(element)
            else:
                kind, index, key = EntryKind.EVENT, events, event_abi_to_log_topic(element)

            existing = index.get(key)
            if existing is not None:
                if existing.name != name:
                    raise MalformedABI(
                        f"Selector collision between '{existing.signature}' and '{signature}'"
                    )
                logger.debug(f"Duplicate ABI entry {signature} ignored")
                continue

            index[key] = AbiEntry(name=name, kind=kind, inputs=params, signature=signature, selector=key)
            names.setdefault(name, None)

        registry = cls(functions, events, tuple(names))
        logger.debug(f"Built ABI registry: {len(functions)} functions, {len(events)} events, "
                     f"{len(registry.declared_names)} declared names")
        return registry

    # ------------------------------------------------------------------ lookup

    @property
    def function_index(self) -> Mapping[bytes, AbiEntry]:
        return self._functions

    @property
    def event_index(self) -> Mapping[bytes, AbiEntry]:
        return self._events

    @property
    def declared_names(self) -> Tuple[str, ...]:
        """Union of function and event names, in declaration order"""
        return self._declared_names

    def resolve_function(self, selector: Union[bytes, str]) -> str:
        """Name of the function with this 4-byte selector; UnknownSelector otherwise"""
        key = self._key(selector, SELECTOR_LENGTH)
        entry = self._functions.get(key)
        if entry is None:
            raise UnknownSelector(Web3.to_hex(key))
        return entry.name

    def resolve_event(self, topic_hash: Union[bytes, str]) -> str:
        """Name of the event with this topic hash; UnknownSelector otherwise"""
        key = self._key(topic_hash, TOPIC_LENGTH)
        entry = self._events.get(key)
        if entry is None:
            raise UnknownSelector(Web3.to_hex(key) if key else "")
        return entry.name

    @staticmethod
    def _key(value: Union[bytes, str], length: int) -> bytes:
        try:
            key = selector_bytes(value)
        except (ValueError, TypeError) as e:
            raise UnknownSelector(str(value), reason=f"not a hex value ({e})") from e
        if len(key) != length:
            raise UnknownSelector(Web3.to_hex(key) if key else "", reason=f"expected {length} bytes")
        return key

    def __len__(self) -> int:
        return len(self._functions) + len(self._events)

    def __repr__(self) -> str:
        return f"AbiRegistry(functions={len(self._functions)}, events={len(self._events)})"
