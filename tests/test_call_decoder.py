"""
Unit tests for call data and log decoding.
"""
import pytest
from web3 import Web3

from chain_monitor.services.decoders.base import LogEntry, ReceiptRecord, ReceiptStatus
from chain_monitor.services.decoders.call_decoder import decode_call, decode_logs
from chain_monitor.services.errors import UnknownSelector

from conftest import (
    APPROVAL_TOPIC,
    APPROVE_SELECTOR,
    CONTRACT,
    TRANSFER_TOPIC,
    call_data,
    make_receipt,
)


class TestDecodeCall:
    """Test method resolution from call data."""

    def test_round_trip_every_declared_function(self, registry):
        """Call data built from a declared selector decodes to that function's name."""
        for selector, entry in registry.function_index.items():
            assert decode_call(call_data(selector), registry) == entry.name

    def test_selector_computed_from_signature(self, registry):
        selector = bytes(Web3.keccak(text="transferFrom(address,address,uint256)")[:4])
        assert decode_call(call_data(selector, words=3), registry) == "transferFrom"

    def test_hex_string_call_data(self, registry):
        data = "0x095ea7b3" + "00" * 64
        assert decode_call(data, registry) == "approve"

    def test_selector_only(self, registry):
        """Four bytes are enough; arguments are not decoded."""
        assert decode_call(APPROVE_SELECTOR, registry) == "approve"

    @pytest.mark.parametrize("data", [b"", b"\xa9", b"\xa9\x05\x9c", "0x"])
    def test_too_short(self, registry, data):
        with pytest.raises(UnknownSelector) as exc:
            decode_call(data, registry)
        assert "shorter" in exc.value.reason

    def test_unknown_selector(self, registry):
        with pytest.raises(UnknownSelector) as exc:
            decode_call(call_data(bytes.fromhex("12345678")), registry)
        assert exc.value.selector == "0x12345678"


class TestDecodeLogs:
    """Test event resolution from receipt logs."""

    def test_known_events_in_log_order(self, registry):
        receipt = make_receipt("0x01", topics=[[TRANSFER_TOPIC], [APPROVAL_TOPIC], [TRANSFER_TOPIC]])
        decoded = decode_logs(receipt, registry)
        assert decoded.names == ["Transfer", "Approval", "Transfer"]
        assert decoded.misses == []

    def test_unknown_topic_is_a_miss(self, registry):
        """A log whose first topic is not in the ABI is skipped, not fatal."""
        unknown = b"\xab" * 32
        receipt = make_receipt("0x02", topics=[[unknown, TRANSFER_TOPIC]])
        decoded = decode_logs(receipt, registry)
        assert decoded.names == []
        assert decoded.misses == [Web3.to_hex(unknown)]

    def test_anonymous_log_is_a_miss(self, registry):
        receipt = ReceiptRecord(
            transaction_hash="0x03",
            status=ReceiptStatus.SUCCESS,
            logs=(LogEntry(address=CONTRACT, topics=(), data=b"\x01"),
                  LogEntry(address=CONTRACT, topics=(APPROVAL_TOPIC,), data=b"")),
        )
        decoded = decode_logs(receipt, registry)
        assert decoded.names == ["Approval"]
        assert len(decoded.misses) == 1

    def test_only_first_topic_is_used(self, registry):
        """Indexed arguments in later topics never match as event ids."""
        receipt = make_receipt("0x04", topics=[[b"\x00" * 32, APPROVAL_TOPIC]])
        assert decode_logs(receipt, registry).names == []

    def test_no_logs(self, registry):
        decoded = decode_logs(make_receipt("0x05"), registry)
        assert decoded.names == [] and decoded.misses == []
