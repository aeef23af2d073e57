"""Tests for application wiring."""

import asyncio
import textwrap

from bet_indexer.config import load_config
from bet_indexer.contracts import ConfigAllowlist, TrackedContract
from bet_indexer.main import BetIndexer

from .conftest import CONTRACT_B

CONFIG = """
rpc:
  url: https://starknet.example/rpc
database:
  path: {tmp}/bets.sqlite
logging:
  file: {tmp}/logs/bets.log
contracts:
  - address: "0xabc"
"""


class StaticAllowlist:
    def __init__(self, contracts: list[TrackedContract]):
        self.contracts = contracts
        self.calls = 0

    def active_contracts(self) -> list[TrackedContract]:
        self.calls += 1
        return self.contracts


def config_in(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(CONFIG.format(tmp=tmp_path)))
    return load_config(path)


async def start_stopped(indexer: BetIndexer):
    shutdown = asyncio.Event()
    shutdown.set()
    try:
        await indexer.start(shutdown)
    finally:
        await indexer.stop()


async def test_engine_polls_the_allowlist_contracts(tmp_path):
    allowlist = StaticAllowlist([TrackedContract(address=CONTRACT_B)])
    indexer = BetIndexer(config_in(tmp_path), allowlist=allowlist)

    await start_stopped(indexer)

    assert allowlist.calls == 1
    assert [c.address for c in indexer.engine.contracts] == [CONTRACT_B]


async def test_config_allowlist_is_the_default(tmp_path):
    config = config_in(tmp_path)
    indexer = BetIndexer(config)

    assert isinstance(indexer.allowlist, ConfigAllowlist)

    await start_stopped(indexer)

    assert [c.address for c in indexer.engine.contracts] == [config.contracts[0].address]
