"""
Per-run activity counters.

Counters are seeded with every name the ABI declares so unused methods and
events report zero. Recording a name that was never seeded is a no-op: the
decoder only ever produces declared names, so the key set never grows.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable

logger = logging.getLogger(__name__)

MethodCounter = Dict[str, int]
EventCounter = Dict[str, int]


def seed(declared_names: Iterable[str]) -> Dict[str, int]:
    """Counter with every declared name at 0 (declaration order kept)"""
    return {name: 0 for name in declared_names}


def record_call(counter: MethodCounter, method_name: str) -> None:
    if method_name in counter:
        counter[method_name] += 1
    else:
        logger.debug(f"Method {method_name} not seeded, ignored")


def record_event(counter: EventCounter, event_name: str) -> None:
    if event_name in counter:
        counter[event_name] += 1
    else:
        logger.debug(f"Event {event_name} not seeded, ignored")


@dataclass
class ActivityCounters:
    """Method and event counters for one monitoring run"""
    methods: MethodCounter = field(default_factory=dict)
    events: EventCounter = field(default_factory=dict)
    call_misses: int = 0
    event_misses: int = 0

    @classmethod
    def seeded(cls, declared_names: Iterable[str]) -> "ActivityCounters":
        names = list(declared_names)
        return cls(methods=seed(names), events=seed(names))

    def fold(self, method_name, event_names: Iterable[str], call_missed: bool, event_miss_count: int) -> None:
        """Merge one transaction's decode results (single writer)"""
        if method_name is not None:
            record_call(self.methods, method_name)
        if call_missed:
            self.call_misses += 1
        for name in event_names:
            record_event(self.events, name)
        self.event_misses += event_miss_count

    @property
    def total_calls(self) -> int:
        return sum(self.methods.values())

    @property
    def total_events(self) -> int:
        return sum(self.events.values())

    def to_dict(self) -> dict:
        return {
            'methods': dict(self.methods),
            'events': dict(self.events),
            'call_misses': self.call_misses,
            'event_misses': self.event_misses,
        }
