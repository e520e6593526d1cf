from __future__ import annotations

from typing import Callable, Dict, List, Optional

import pytest

from pooled_raffle.config import Settings
from pooled_raffle.engine import RaffleEngine
from pooled_raffle.pricing import PriceQuote
from pooled_raffle.project_constants import USD_UNIT

OWNER = "0xowner"
COORDINATOR = "0xvrf"
ENGINE = "0xraffle"
PLATFORM = "0xplatform"
FOUNDER = "0xfounder"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"

START = 1_700_000_000
DURATION = 3600


class Clock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeToken:
    def __init__(self, address: str, decimals: int) -> None:
        self.address = address
        self.decimals = decimals
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[tuple, int] = {}
        self.on_transfer: Optional[Callable[[str, int], None]] = None
        self.fail_transfers = False

    def mint(self, to: str, amount: int) -> None:
        self.balances[to] = self.balances.get(to, 0) + amount

    def _move(self, src: str, to: str, amount: int) -> None:
        if self.balances.get(src, 0) < amount:
            raise RuntimeError(f"{self.address}: insufficient balance")
        self.balances[src] -= amount
        self.balances[to] = self.balances.get(to, 0) + amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if self.fail_transfers:
            raise RuntimeError(f"{self.address}: transfer rejected")
        self._move(sender, to, amount)
        if self.on_transfer is not None:
            self.on_transfer(to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowances.get((owner, spender), 0)
        if allowed < amount:
            raise RuntimeError(f"{self.address}: insufficient allowance")
        self.allowances[(owner, spender)] = allowed - amount
        self._move(owner, to, amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self.allowances[(owner, spender)] = amount

    def permit(self, owner, spender, amount, deadline, signature) -> None:
        if signature != b"signed":
            raise RuntimeError("invalid signature")
        self.approve(owner, spender, amount)


class FakeFeed:
    def __init__(self, price: int, updated_at: int, decimals: int = 8) -> None:
        self.price = price
        self.updated_at = updated_at
        self.decimals = decimals

    def latest_quote(self) -> PriceQuote:
        return PriceQuote(self.price, self.updated_at, self.decimals)


class FakeRouter:
    """Swaps at a fixed rate: out = amount_in * num // den."""

    address = "0xrouter"

    def __init__(self, tokens: Dict[str, FakeToken], payout: FakeToken) -> None:
        self.tokens = tokens
        self.payout = payout
        self.rates: Dict[str, tuple] = {}
        self.calls: List[dict] = []

    def exact_input_single(
        self, token_in, token_out, fee, recipient, amount_in, amount_out_minimum, deadline
    ) -> int:
        num, den = self.rates[token_in]
        out = amount_in * num // den
        if out < amount_out_minimum:
            raise RuntimeError("Too little received")
        self.tokens[token_in].transfer_from(self.address, recipient, self.address, amount_in)
        self.payout.mint(recipient, out)
        self.calls.append(
            {"token_in": token_in, "amount_in": amount_in, "min": amount_out_minimum, "deadline": deadline}
        )
        return out


class FakeVRF:
    address = COORDINATOR

    def __init__(self) -> None:
        self.next_id = 100
        self.requests: List[tuple] = []

    def request_random_words(
        self, key_hash, subscription_id, request_confirmations, callback_gas_limit, num_words
    ) -> int:
        self.next_id += 1
        self.requests.append(
            (self.next_id, key_hash, subscription_id, request_confirmations, callback_gas_limit, num_words)
        )
        return self.next_id


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def payout():
    # 18 dp, worth $1
    return FakeToken("0xpay", 18)


@pytest.fixture
def usdc():
    return FakeToken("0xusdc", 6)


@pytest.fixture
def weth():
    return FakeToken("0xweth", 18)


@pytest.fixture
def settings():
    return Settings(
        owner=OWNER,
        coordinator=COORDINATOR,
        payout_token="0xpay",
        platform_wallet=PLATFORM,
        founder_wallet=FOUNDER,
        platform_fee_bps=500,
        founder_fee_bps=300,
        game_duration_s=DURATION,
        max_participants=10,
        min_deposit_usd=1 * USD_UNIT,
        key_hash="0xkeyhash",
        subscription_id=7,
    )


@pytest.fixture
def vrf():
    return FakeVRF()


@pytest.fixture
def router(usdc, weth, payout):
    r = FakeRouter({usdc.address: usdc, weth.address: weth}, payout)
    # usdc has 6 dp, payout 18 dp, both $1
    r.rates[usdc.address] = (10**12, 1)
    # weth at $2000
    r.rates[weth.address] = (2000, 1)
    return r


@pytest.fixture
def feeds(clock):
    return {
        "usdc": FakeFeed(1 * 10**8, clock.now),
        "weth": FakeFeed(2000 * 10**8, clock.now),
        "pay": FakeFeed(1 * 10**8, clock.now),
    }


@pytest.fixture
def engine(settings, vrf, router, payout, usdc, weth, feeds, clock):
    e = RaffleEngine(settings, ENGINE, vrf, router, payout, clock=clock)
    e.allow_token(OWNER, usdc, feeds["usdc"])
    e.allow_token(OWNER, weth, feeds["weth"])
    e.allow_token(OWNER, payout, feeds["pay"])
    return e


def fund(token: FakeToken, who: str, amount: int) -> None:
    token.mint(who, amount)
    token.approve(who, ENGINE, amount)


def usdc_units(dollars: int) -> int:
    return dollars * 10**6
