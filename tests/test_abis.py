"""
Unit tests for ABI and blacklist file loading.
"""
import json

import pytest

from chain_monitor.services.decoders.abis import load_abi_file, load_blacklist_file
from chain_monitor.services.errors import MalformedABI, MalformedBlacklist

from conftest import RESOURCES


class TestLoadAbiFile:
    def test_reads_text(self, abi_text):
        assert load_abi_file(RESOURCES / 'abi.json') == abi_text

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedABI):
            load_abi_file(tmp_path / 'nope.json')


class TestLoadBlacklistFile:
    """Test blacklist parsing."""

    def test_bundled_blacklist(self):
        entries = load_blacklist_file(RESOURCES / 'blacklistAddresses.json')
        assert len(entries) == 2
        assert entries[0].address == "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
        assert entries[0].comment and entries[0].date

    def test_comment_and_date_optional(self, tmp_path):
        path = tmp_path / 'blacklist.json'
        path.write_text(json.dumps([{'address': '0x' + 'aa' * 20}]))
        entries = load_blacklist_file(path)
        assert entries[0].comment == "" and entries[0].date == ""

    def test_empty_list(self, tmp_path):
        path = tmp_path / 'blacklist.json'
        path.write_text('[]')
        assert load_blacklist_file(path) == []

    @pytest.mark.parametrize("content", [
        'not json',
        '{"address": "0x01"}',
        '["0x01"]',
        '[{"comment": "missing address"}]',
    ])
    def test_malformed(self, tmp_path, content):
        path = tmp_path / 'blacklist.json'
        path.write_text(content)
        with pytest.raises(MalformedBlacklist):
            load_blacklist_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedBlacklist):
            load_blacklist_file(tmp_path / 'missing.json')
