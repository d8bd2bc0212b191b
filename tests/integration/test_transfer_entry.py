"""Transfer-and-notify dispatch and the owner-only market settings."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from moneymarket.config import GasConfig, MarketConfig
from moneymarket.exceptions import InsufficientGas, Unauthorized, UnknownTransferAction
from moneymarket.flows import RepayFlow, SupplyFlow
from moneymarket.market import Market, parse_transfer_action
from moneymarket.models import RATE_DECIMALS, Action, InterestRateModel, RewardSetting

OWNER = "owner.test"


class TestParseTransferAction:
    @pytest.mark.parametrize(
        "msg, expected",
        [
            ('"Supply"', Action.SUPPLY),
            ('"Repay"', Action.REPAY),
            ("Supply", Action.SUPPLY),
            ("  Repay \n", Action.REPAY),
        ],
    )
    def test_known_actions(self, msg: str, expected: Action) -> None:
        assert parse_transfer_action(msg) is expected

    @pytest.mark.parametrize("msg", ['"Borrow"', "", "supply", '{"Supply": 1}', "[1]"])
    def test_unknown_actions(self, msg: str) -> None:
        with pytest.raises(UnknownTransferAction):
            parse_transfer_action(msg)


class TestOnTransferReceived:
    @pytest.mark.asyncio
    async def test_routes_to_supply_and_repay(self, market: Market, underlying: AsyncMock) -> None:
        underlying.balance_of.return_value = "10"

        supply = market.on_transfer_received("alice", 10, '"Supply"', 120)
        repay = market.on_transfer_received("bob", 10, '"Repay"', 95)

        assert isinstance(supply, SupplyFlow)
        assert isinstance(repay, RepayFlow)
        await market.runtime.drain()

    @pytest.mark.asyncio
    async def test_unknown_message_takes_no_lock(self, market: Market, underlying: AsyncMock) -> None:
        with pytest.raises(UnknownTransferAction):
            market.on_transfer_received("alice", 10, '"Borrow"', 200)
        assert len(market.locks) == 0
        underlying.balance_of.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gas_checked_per_action(self, market: Market) -> None:
        with pytest.raises(InsufficientGas) as exc_info:
            market.on_transfer_received("alice", 10, '"Repay"', 94)
        assert exc_info.value.required == 95


class TestPrivilegedSettings:
    def test_owner_sets_rate_model(self, market: Market) -> None:
        model = InterestRateModel(base_rate_per_block=2 * RATE_DECIMALS // 100)
        market.set_interest_rate_model(OWNER, model)
        assert market.model == model
        assert market.borrow_rate(100, 0, 0) == 2 * RATE_DECIMALS // 100

    def test_non_owner_rejected(self, market: Market) -> None:
        before = market.model
        with pytest.raises(Unauthorized):
            market.set_interest_rate_model("mallory", InterestRateModel())
        with pytest.raises(Unauthorized):
            market.set_rewards_config("mallory", [])
        assert market.model == before

    def test_rewards_config_replaces_only_rewards(self, market: Market) -> None:
        before = market.model
        market.set_rewards_config(OWNER, [RewardSetting(token="reward.test", reward_per_block=7)])

        assert market.model.rewards_config == (RewardSetting("reward.test", 7),)
        assert market.model.kink == before.kink

    def test_no_owner_configured_rejects_everyone(
        self, market_config: MarketConfig, gas_config: GasConfig
    ) -> None:
        config = MarketConfig(contract_id=market_config.contract_id, owner_id="")
        market = Market(config, gas_config, AsyncMock(), AsyncMock())
        with pytest.raises(Unauthorized):
            market.set_interest_rate_model("", InterestRateModel())

    @pytest.mark.asyncio
    async def test_running_chain_keeps_its_rate_model(
        self, market: Market, underlying: AsyncMock, gate
    ) -> None:
        release, slow = gate("10")
        underlying.balance_of.side_effect = slow
        flow = market.submit_supply("alice", 10, prepaid_gas=120)
        snapshot = market.model

        market.set_interest_rate_model(OWNER, InterestRateModel(kink=RATE_DECIMALS // 2))
        release.set()
        await flow.wait()

        assert flow.model is snapshot
        assert market.model.kink == RATE_DECIMALS // 2
