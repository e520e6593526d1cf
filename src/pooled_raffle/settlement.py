from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping

from .errors import AlreadySettled, InvalidState, SlippageExceeded
from .models import Exchange, Game, GameState, Token
from .project_constants import BPS_DENOMINATOR, SLIPPAGE_FLOOR_BPS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeSplit:
    total_out: int
    platform_amt: int
    founder_amt: int
    winner_amt: int


def split_fees(total_out: int, platform_fee_bps: int, founder_fee_bps: int) -> FeeSplit:
    platform_amt = total_out * platform_fee_bps // BPS_DENOMINATOR
    founder_amt = total_out * founder_fee_bps // BPS_DENOMINATOR
    # Rounding dust goes to the winner.
    winner_amt = total_out - platform_amt - founder_amt
    return FeeSplit(total_out, platform_amt, founder_amt, winner_amt)


def min_amount_out(amount_in: int) -> int:
    return amount_in * SLIPPAGE_FLOOR_BPS // BPS_DENOMINATOR


class SettlementEngine:
    def __init__(
        self,
        exchange: Exchange,
        payout_token: str,
        holder: str,
        swap_fee_tier: int,
    ) -> None:
        self.exchange = exchange
        self.payout_token = payout_token
        self.holder = holder
        self.swap_fee_tier = swap_fee_tier

    def swap_all(self, game: Game, tokens: Mapping[str, Token], now: int) -> int:
        total_out = 0
        for token_addr in game.deposits.tokens:
            amount_in = game.deposits.holdings[token_addr]
            if amount_in == 0:
                continue
            if token_addr == self.payout_token:
                total_out += amount_in
                continue

            floor = min_amount_out(amount_in)
            tokens[token_addr].approve(self.holder, self.exchange.address, amount_in)
            amount_out = self.exchange.exact_input_single(
                token_addr,
                self.payout_token,
                self.swap_fee_tier,
                self.holder,
                amount_in,
                floor,
                now,
            )
            if amount_out < floor:
                raise SlippageExceeded(
                    f"Swap of {amount_in} {token_addr} returned {amount_out}, floor {floor}"
                )
            log.info(
                "Game %d: swapped %d %s -> %d %s",
                game.game_id,
                amount_in,
                token_addr,
                amount_out,
                self.payout_token,
            )
            total_out += amount_out
        return total_out

    def settle(
        self,
        game: Game,
        tokens: Mapping[str, Token],
        wallets: Dict[str, str],
        platform_fee_bps: int,
        founder_fee_bps: int,
        now: int,
    ) -> FeeSplit:
        """
        Converts the game's holdings to the payout token and credits the
        platform, founder and winner balances. `wallets` maps the roles
        "platform", "founder" and "winner" to payee identities.
        """
        if game.settled:
            raise AlreadySettled(f"Game {game.game_id} is already settled")
        if game.state != GameState.WINNER_SELECTED or game.winner is None:
            raise InvalidState(
                f"Game {game.game_id} is {game.state.value}, expected a selected winner"
            )

        split = split_fees(
            self.swap_all(game, tokens, now), platform_fee_bps, founder_fee_bps
        )

        credits: Dict[str, int] = {}
        for role, amount in (
            ("platform", split.platform_amt),
            ("founder", split.founder_amt),
            ("winner", split.winner_amt),
        ):
            payee = wallets[role]
            credits[payee] = credits.get(payee, 0) + amount
        game.claims.credit_settlement(credits)

        game.total_out = split.total_out
        game.settled = True
        game.state = GameState.SETTLED
        return split
