"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import RATE_DECIMALS, InterestRateModel, RewardSetting

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GatewayConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class GasConfig:
    """Execution budgets in Tgas.

    The first group is what an entry point requires up front for its whole
    chain; the second is the allotment attached to each external call.
    """

    supply: int = 120
    repay: int = 95
    borrow: int = 130
    withdraw: int = 130
    cancel_order: int = 80
    free_liquidity_slot: int = 80

    balance_query: int = 1
    controller_call: int = 5
    transfer: int = 10
    liquidity_query: int = 5
    remove_liquidity: int = 70


@dataclass(frozen=True)
class MarketConfig:
    contract_id: str = ""
    underlying_token_id: str = ""
    controller_id: str = ""
    owner_id: str = ""
    initial_exchange_rate: int = RATE_DECIMALS
    interest_rate_model: InterestRateModel = field(default_factory=InterestRateModel)


@dataclass(frozen=True)
class TradingConfig:
    contract_id: str = ""
    oracle_account_id: str = ""
    venue_id: str = ""


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    market: MarketConfig = field(default_factory=MarketConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    gas: GasConfig = field(default_factory=GasConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_REF = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?}")

CONFIG_ENV_VAR = "MONEYMARKET_CONFIG"


def _env_value(match: re.Match[str]) -> str:
    fallback = match.group("default") or ""
    return os.environ.get(match.group("name")) or fallback


def _interpolate_env(node: Any) -> Any:
    """Substitute ``${NAME}`` and ``${NAME:-fallback}`` in every string leaf.

    Unset or empty variables resolve to the fallback, or to ``""``.
    """
    if isinstance(node, dict):
        return {key: _interpolate_env(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_interpolate_env(item) for item in node]
    if isinstance(node, str):
        return _ENV_REF.sub(_env_value, node)
    return node


def _as_int(value: Any, default: int) -> int:
    """Accept YAML ints and decimal strings (amounts overflow YAML floats)."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got {value!r}")
    return int(str(value).replace("_", ""))


# ---------------------------------------------------------------------------
# YAML -> dataclass builders
# ---------------------------------------------------------------------------


def _build_gateway(raw: dict[str, Any]) -> GatewayConfig:
    return GatewayConfig(
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_gas(raw: dict[str, Any]) -> GasConfig:
    defaults = GasConfig()
    return GasConfig(
        **{
            f.name: _as_int(raw.get(f.name), getattr(defaults, f.name))
            for f in fields(defaults)
        }
    )


def _build_interest_rate_model(raw: dict[str, Any]) -> InterestRateModel:
    defaults = InterestRateModel()
    return InterestRateModel(
        kink=_as_int(raw.get("kink"), defaults.kink),
        multiplier_per_block=_as_int(
            raw.get("multiplier_per_block"), defaults.multiplier_per_block
        ),
        base_rate_per_block=_as_int(
            raw.get("base_rate_per_block"), defaults.base_rate_per_block
        ),
        jump_multiplier_per_block=_as_int(
            raw.get("jump_multiplier_per_block"), defaults.jump_multiplier_per_block
        ),
        reserve_factor=_as_int(raw.get("reserve_factor"), defaults.reserve_factor),
        rewards_config=tuple(
            RewardSetting(
                token=r.get("token", ""),
                reward_per_block=_as_int(r.get("reward_per_block"), 0),
            )
            for r in raw.get("rewards_config", [])
        ),
    )


def _build_market(raw: dict[str, Any]) -> MarketConfig:
    return MarketConfig(
        contract_id=raw.get("contract_id", ""),
        underlying_token_id=raw.get("underlying_token_id", ""),
        controller_id=raw.get("controller_id", ""),
        owner_id=raw.get("owner_id", ""),
        initial_exchange_rate=_as_int(
            raw.get("initial_exchange_rate"), RATE_DECIMALS
        ),
        interest_rate_model=_build_interest_rate_model(
            raw.get("interest_rate_model", {})
        ),
    )


def _build_trading(raw: dict[str, Any]) -> TradingConfig:
    return TradingConfig(
        contract_id=raw.get("contract_id", ""),
        oracle_account_id=raw.get("oracle_account_id", ""),
        venue_id=raw.get("venue_id", ""),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram") or {}
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _resolve_path(config_path: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Read the market configuration.

    ``.env`` is loaded first so that ``${VAR}`` references in the YAML can
    see it. Without an explicit path, ``$MONEYMARKET_CONFIG`` is used, then
    ``config.yaml`` beside the package.

    Raises:
        FileNotFoundError: the resolved file does not exist.
        ValueError: a section fails validation.
    """
    load_dotenv()

    path = _resolve_path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = _interpolate_env(yaml.safe_load(path.read_text()) or {})

    cfg = AppConfig(
        market=_build_market(raw.get("market") or {}),
        trading=_build_trading(raw.get("trading") or {}),
        gateway=_build_gateway(raw.get("gateway") or {}),
        gas=_build_gas(raw.get("gas") or {}),
        notifications=_build_notifications(raw.get("notifications") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise ``ValueError`` on invalid configuration."""
    market = cfg.market
    for name in ("contract_id", "underlying_token_id", "controller_id"):
        if not getattr(market, name):
            raise ValueError(f"market.{name} must be configured")

    if not cfg.gateway.rpc_endpoints:
        raise ValueError("At least one gateway RPC endpoint must be configured")

    if market.initial_exchange_rate <= 0:
        raise ValueError("market.initial_exchange_rate must be positive")

    model = market.interest_rate_model
    for name in (
        "kink",
        "multiplier_per_block",
        "base_rate_per_block",
        "jump_multiplier_per_block",
        "reserve_factor",
    ):
        if getattr(model, name) < 0:
            raise ValueError(f"interest_rate_model.{name} must be non-negative")
    if model.kink > RATE_DECIMALS:
        raise ValueError("interest_rate_model.kink cannot exceed 100%")
    if model.reserve_factor > RATE_DECIMALS:
        raise ValueError("interest_rate_model.reserve_factor cannot exceed 100%")

    for f in fields(cfg.gas):
        if getattr(cfg.gas, f.name) <= 0:
            raise ValueError(f"gas.{f.name} must be positive")
