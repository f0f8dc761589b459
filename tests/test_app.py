"""
Tests for the command line entry point (node replaced by an in-memory service).
"""
import json
import threading
from unittest.mock import MagicMock

import pytest

from chain_monitor import app
from chain_monitor.config.monitor_config import MonitorConfig
from chain_monitor.services.blockchain_service import ChainMetrics

from conftest import (
    CONTRACT,
    RESOURCES,
    TRANSFER_SELECTOR,
    TRANSFER_TOPIC,
    call_data,
    make_receipt,
    make_tx,
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    blacklist = tmp_path / 'blacklist.json'
    blacklist.write_text('[]')
    for name in ('ETHERSCAN_API_KEY', 'VALUE_LIMIT_WEI', 'MAX_WORKERS'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('NODE_URL', 'http://127.0.0.1:8545')
    monkeypatch.setenv('CONTRACT_ADDRESS', CONTRACT)
    monkeypatch.setenv('CHAIN_ID', '31337')
    monkeypatch.setenv('ABI_PATH', str(RESOURCES / 'abi.json'))
    monkeypatch.setenv('BLACKLIST_PATH', str(blacklist))
    monkeypatch.setattr(app, 'setup_logging', lambda *args, **kwargs: None)
    return tmp_path


@pytest.fixture
def node(monkeypatch, service):
    factory = MagicMock()
    factory.from_config.return_value = service
    monkeypatch.setattr(app, 'BlockchainService', factory)
    return service


class TestParser:
    def test_contract_options(self):
        args = app.build_parser().parse_args(['contract', '--block', '0xB', '--value-limit', '5'])
        assert args.command == 'contract'
        assert args.block == '0xB'
        assert args.value_limit == 5
        assert args.stop_on_first_hit is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args([])


class TestMain:
    """Test exit codes and output of the contract command."""

    def test_clean_block(self, env, node, capsys):
        node.add(11, make_tx("0x01", CONTRACT, call_data(TRANSFER_SELECTOR)),
                 make_receipt("0x01", topics=[[TRANSFER_TOPIC]]))
        assert app.main(['contract', '--block', '11']) == 0

        out = capsys.readouterr().out
        assert "transfer" in out
        assert "--- Alerts ---" in out

    def test_alert_sets_exit_code(self, env, node):
        node.add(11, make_tx("0x01", CONTRACT, call_data(TRANSFER_SELECTOR), value=10 ** 18),
                 make_receipt("0x01"))
        assert app.main(['contract', '--block', '11']) == 1

    def test_json_report(self, env, node):
        node.add(11, make_tx("0x01", CONTRACT, call_data(TRANSFER_SELECTOR)), make_receipt("0x01"))
        out_path = env / 'report.json'
        app.main(['contract', '--block', '11', '--json', str(out_path)])

        data = json.loads(out_path.read_text(encoding='utf-8'))
        assert data['counters']['methods']['transfer'] == 1

    def test_unknown_block(self, env, node):
        assert app.main(['contract', '--block', '12']) == 2

    def test_invalid_block_argument(self, env, node):
        assert app.main(['contract', '--block', 'yesterday']) == 2

    def test_missing_abi_file(self, env, node):
        assert app.main(['contract', '--block', '11', '--abi', str(env / 'missing.json')]) == 2

    def test_interrupt_exits_130(self, env, node, capsys):
        node.add(11, make_tx("0x01", CONTRACT, call_data(TRANSFER_SELECTOR)), make_receipt("0x01"))
        node.failing["0x01"] = KeyboardInterrupt()
        assert app.main(['contract', '--block', '11']) == 130
        assert "[STOP]" in capsys.readouterr().out

    def test_missing_node_url(self, env, monkeypatch):
        monkeypatch.delenv('NODE_URL')
        assert app.main(['chain']) == 2


class TestWatch:
    def test_polls_until_count(self, monkeypatch):
        service = MagicMock()
        service.get_chain_metrics.return_value = ChainMetrics(
            block_number=1, timestamp=0, block_interval=12, gas_limit=1, gas_used=1, size=1, gas_price=1)
        factory = MagicMock()
        factory.from_config.return_value = service
        monkeypatch.setattr(app, 'BlockchainService', factory)

        config = MonitorConfig(node_url='http://node')
        assert app.watch_chain(config, interval=0, count=3) == 0
        assert service.get_chain_metrics.call_count == 3
        service.close.assert_called_once()

    def test_stop_event(self, monkeypatch):
        service = MagicMock()
        factory = MagicMock()
        factory.from_config.return_value = service
        monkeypatch.setattr(app, 'BlockchainService', factory)

        stop = threading.Event()
        stop.set()
        assert app.watch_chain(MonitorConfig(node_url='http://node'), interval=0, stop_event=stop) == 0
        service.get_chain_metrics.assert_not_called()
