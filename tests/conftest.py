"""Shared test fixtures and sample data."""
from __future__ import annotations

import asyncio
import textwrap
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from moneymarket.config import (
    AppConfig,
    GasConfig,
    GatewayConfig,
    MarketConfig,
    NotificationsConfig,
    TelegramConfig,
    TradingConfig,
)
from moneymarket.market import Market
from moneymarket.models import (
    RATE_DECIMALS,
    InterestRateModel,
    Order,
    OrderStatus,
    OrderType,
    Price,
)
from moneymarket.runtime import BlockClock
from moneymarket.trading import TradingDesk

ORACLE = "oracle.test"
OWNER = "owner.test"
MARKET_ID = "dtoken.test"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_model() -> InterestRateModel:
    # 80% kink, 1% base, 5% slope, 50% jump, 10% reserve factor.
    return InterestRateModel(
        kink=8 * 10**23,
        multiplier_per_block=5 * 10**22,
        base_rate_per_block=10**22,
        jump_multiplier_per_block=5 * 10**23,
        reserve_factor=10**23,
    )


@pytest.fixture()
def gas_config() -> GasConfig:
    return GasConfig()


@pytest.fixture()
def market_config(sample_model: InterestRateModel) -> MarketConfig:
    return MarketConfig(
        contract_id=MARKET_ID,
        underlying_token_id="wnear.test",
        controller_id="controller.test",
        owner_id=OWNER,
        initial_exchange_rate=RATE_DECIMALS,
        interest_rate_model=sample_model,
    )


@pytest.fixture()
def trading_config() -> TradingConfig:
    return TradingConfig(
        contract_id="leverage.test",
        oracle_account_id=ORACLE,
        venue_id="venue.test",
    )


@pytest.fixture()
def sample_app_config(
    market_config: MarketConfig,
    trading_config: TradingConfig,
    gas_config: GasConfig,
) -> AppConfig:
    return AppConfig(
        market=market_config,
        trading=trading_config,
        gateway=GatewayConfig(
            rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
            rpc_timeout=10,
        ),
        gas=gas_config,
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Gateway doubles
# ---------------------------------------------------------------------------


@pytest.fixture()
def underlying() -> AsyncMock:
    token = AsyncMock()
    token.balance_of.return_value = "0"
    token.transfer.return_value = None
    return token


@pytest.fixture()
def controller() -> AsyncMock:
    ctrl = AsyncMock()
    for name in (
        "notify_supply_increase",
        "notify_supply_decrease",
        "notify_borrow_increase",
        "notify_borrow_decrease",
        "request_withdraw_authorization",
    ):
        getattr(ctrl, name).return_value = None
    return ctrl


@pytest.fixture()
def venue() -> AsyncMock:
    v = AsyncMock()
    v.get_liquidity.return_value = {"lpt_id": "lpt#1", "amount": "500"}
    v.remove_liquidity.return_value = ["300", "200"]
    return v


def gated(value: Any = None) -> tuple[asyncio.Event, Callable[..., Any]]:
    """An async side effect that only returns once the event is set."""
    release = asyncio.Event()

    async def call(*args: Any, **kwargs: Any) -> Any:
        await release.wait()
        return value

    return release, call


@pytest.fixture()
def gate() -> Callable[..., tuple[asyncio.Event, Callable[..., Any]]]:
    return gated


# ---------------------------------------------------------------------------
# Market / desk
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> BlockClock:
    return BlockClock(100)


@pytest.fixture()
def market(
    market_config: MarketConfig,
    gas_config: GasConfig,
    underlying: AsyncMock,
    controller: AsyncMock,
    clock: BlockClock,
) -> Market:
    return Market(market_config, gas_config, underlying, controller, clock=clock)


@pytest.fixture()
def desk(trading_config: TradingConfig, gas_config: GasConfig, venue: AsyncMock) -> TradingDesk:
    return TradingDesk(trading_config, gas_config, venue)


@pytest.fixture()
def order_factory() -> Callable[..., Order]:
    def make(
        status: OrderStatus = OrderStatus.PENDING,
        lpt_id: str = "lpt#1",
        amount: int = 1000,
        sell_token: str = "usdc.test",
        buy_token: str = "wnear.test",
        order_type: OrderType = OrderType.BUY,
    ) -> Order:
        return Order(
            status=status,
            order_type=order_type,
            sell_token=sell_token,
            buy_token=buy_token,
            amount=amount,
            leverage=Decimal("1.0"),
            sell_token_price=Price(ticker_id="USDC", value=Decimal("1.01")),
            buy_token_price=Price(ticker_id="WNEAR", value=Decimal("3.07")),
            block=1,
            lpt_id=lpt_id,
        )

    return make


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    market:
      contract_id: dtoken.test
      underlying_token_id: wnear.test
      controller_id: controller.test
      owner_id: "${MM_OWNER}"
      initial_exchange_rate: "1000000000000000000000000"
      interest_rate_model:
        kink: "800000000000000000000000"
        multiplier_per_block: 50000000000000000000000
        base_rate_per_block: "10_000_000_000_000_000_000_000"
        jump_multiplier_per_block: "500000000000000000000000"
        reserve_factor: "100000000000000000000000"
        rewards_config:
          - token: reward.test
            reward_per_block: "7"
    trading:
      contract_id: leverage.test
      oracle_account_id: oracle.test
      venue_id: venue.test
    gateway:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    gas:
      supply: 150
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
