from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any

from dotenv import load_dotenv

from .errors import FeeTooHigh
from .project_constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_FOUNDER_FEE_BPS,
    DEFAULT_GAME_DURATION_S,
    DEFAULT_MAX_PARTICIPANTS,
    DEFAULT_MIN_DEPOSIT_USD,
    DEFAULT_PLATFORM_FEE_BPS,
    DEFAULT_REQUEST_CONFIRMATIONS,
    DEFAULT_SWAP_FEE_TIER,
    MAX_TOTAL_FEE_BPS,
)


def check_fees(platform_fee_bps: int, founder_fee_bps: int) -> None:
    if platform_fee_bps < 0 or founder_fee_bps < 0:
        raise FeeTooHigh("Fee basis points must not be negative.")
    if platform_fee_bps + founder_fee_bps > MAX_TOTAL_FEE_BPS:
        raise FeeTooHigh(
            f"Combined fee {platform_fee_bps + founder_fee_bps} bps exceeds "
            f"cap of {MAX_TOTAL_FEE_BPS} bps"
        )


@dataclass(frozen=True)
class Settings:
    owner: str
    coordinator: str
    payout_token: str
    platform_wallet: str
    founder_wallet: str
    platform_fee_bps: int = DEFAULT_PLATFORM_FEE_BPS
    founder_fee_bps: int = DEFAULT_FOUNDER_FEE_BPS
    game_duration_s: int = DEFAULT_GAME_DURATION_S
    max_participants: int = DEFAULT_MAX_PARTICIPANTS
    min_deposit_usd: int = DEFAULT_MIN_DEPOSIT_USD
    swap_fee_tier: int = DEFAULT_SWAP_FEE_TIER
    key_hash: str = ""
    subscription_id: int = 0
    request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    rpc_url: str = ""

    def __post_init__(self) -> None:
        check_fees(self.platform_fee_bps, self.founder_fee_bps)
        if self.game_duration_s <= 0:
            raise RuntimeError("Game duration must be positive.")
        if self.max_participants <= 0:
            raise RuntimeError("Participant cap must be positive.")

    @staticmethod
    def from_env(**overrides: Any) -> "Settings":
        load_dotenv()

        def required(name: str) -> str:
            value = os.getenv(name, "").strip()
            if not value:
                raise RuntimeError(f"Missing {name}. Put it in .env or export it.")
            return value

        def integer(name: str, default: int) -> int:
            value = os.getenv(name, "").strip()
            return int(value) if value else default

        # Explicit overrides (e.g. from the CLI) win; skip env lookups for them.
        base = {
            "owner": overrides.get("owner") or required("RAFFLE_OWNER"),
            "coordinator": overrides.get("coordinator")
            or required("RAFFLE_COORDINATOR"),
            "payout_token": overrides.get("payout_token")
            or required("RAFFLE_PAYOUT_TOKEN"),
            "platform_wallet": overrides.get("platform_wallet")
            or required("RAFFLE_PLATFORM_WALLET"),
            "founder_wallet": overrides.get("founder_wallet")
            or required("RAFFLE_FOUNDER_WALLET"),
            "platform_fee_bps": integer(
                "RAFFLE_PLATFORM_FEE_BPS", DEFAULT_PLATFORM_FEE_BPS
            ),
            "founder_fee_bps": integer(
                "RAFFLE_FOUNDER_FEE_BPS", DEFAULT_FOUNDER_FEE_BPS
            ),
            "game_duration_s": integer(
                "RAFFLE_GAME_DURATION_S", DEFAULT_GAME_DURATION_S
            ),
            "max_participants": integer(
                "RAFFLE_MAX_PARTICIPANTS", DEFAULT_MAX_PARTICIPANTS
            ),
            "min_deposit_usd": integer(
                "RAFFLE_MIN_DEPOSIT_USD", DEFAULT_MIN_DEPOSIT_USD
            ),
            "swap_fee_tier": integer("RAFFLE_SWAP_FEE_TIER", DEFAULT_SWAP_FEE_TIER),
            "key_hash": os.getenv("RAFFLE_VRF_KEY_HASH", "").strip(),
            "subscription_id": integer("RAFFLE_VRF_SUBSCRIPTION_ID", 0),
            "request_confirmations": integer(
                "RAFFLE_VRF_CONFIRMATIONS", DEFAULT_REQUEST_CONFIRMATIONS
            ),
            "callback_gas_limit": integer(
                "RAFFLE_VRF_CALLBACK_GAS_LIMIT", DEFAULT_CALLBACK_GAS_LIMIT
            ),
            "rpc_url": os.getenv("RPC_URL", "").strip(),
        }
        base.update({k: v for k, v in overrides.items() if v is not None})
        return Settings(**base)

    def with_fees(self, platform_fee_bps: int, founder_fee_bps: int) -> "Settings":
        return replace(
            self, platform_fee_bps=platform_fee_bps, founder_fee_bps=founder_fee_bps
        )


def resolve_rpc_url(rpc_url_override: str | None = None) -> str:
    load_dotenv()

    # If user provides --rpc-url, trust it.
    if rpc_url_override:
        return rpc_url_override

    env_rpc = os.getenv("RPC_URL", "").strip()
    if not env_rpc:
        raise RuntimeError("Missing RPC_URL. Put it in .env or export it.")
    return env_rpc
