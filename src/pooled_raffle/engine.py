from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .claims import ClaimLedger
from .config import Settings
from .draw import check_partition, compute_point, find_winner
from .errors import (
    AlreadySettled,
    EmptyPool,
    InvalidState,
    NotOwner,
    NothingToClaim,
    RandomNotReady,
    ReentrantCall,
    TokenNotAllowed,
    UnknownGame,
    WindowClosed,
    WindowNotElapsed,
)
from .ledger import DepositLedger
from .models import Exchange, Game, GameState, Token
from .pricing import PriceFeed, PriceNormalizer
from .randomness import DrawConfig, RandomnessCoordinator, RandomnessService
from .settlement import FeeSplit, SettlementEngine
from .project_constants import RANDOM_NOT_FULFILLED

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Permit:
    deadline: int
    signature: bytes


# Notifications. Appended to RaffleEngine.events in the order they happen.
@dataclass(frozen=True)
class GameStarted:
    game_id: int
    start_time: int
    duration: int


@dataclass(frozen=True)
class DepositRecorded:
    game_id: int
    depositor: str
    token: str
    raw_amount: int
    usd_value: int


@dataclass(frozen=True)
class DrawRequested:
    game_id: int
    request_id: int


@dataclass(frozen=True)
class RandomnessFulfilled:
    game_id: int
    request_id: int
    random_word: int


@dataclass(frozen=True)
class WinnerSelected:
    game_id: int
    winner: str
    point: int


@dataclass(frozen=True)
class GameSettled:
    game_id: int
    total_out: int
    platform_amt: int
    founder_amt: int
    winner_amt: int


@dataclass(frozen=True)
class Claimed:
    game_id: int
    payee: str
    amount: int


@dataclass(frozen=True)
class AllowedToken:
    token: Token
    feed: PriceFeed


class RaffleEngine:
    """
    Drives one game at a time through
    OPEN -> RANDOM_REQUESTED -> WINNER_SELECTED -> SETTLED.

    Every public entry point either completes or leaves the game record it
    touched exactly as it found it. Entry points that move value also hold
    a single engine-wide lock for their whole duration.
    """

    def __init__(
        self,
        settings: Settings,
        address: str,
        randomness: RandomnessService,
        exchange: Exchange,
        payout_token: Token,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if payout_token.address != settings.payout_token:
            raise RuntimeError(
                f"Payout token {payout_token.address} does not match configured "
                f"{settings.payout_token}"
            )
        self.settings = settings
        self.address = address
        self.owner = settings.owner
        self.clock = clock or (lambda: int(time.time()))

        self.games: Dict[int, Game] = {}
        self.current_game_id = 0

        self.allowed: Dict[str, AllowedToken] = {}
        # Every token a game may hold, including ones later removed from the allow-list.
        self.known_tokens: Dict[str, Token] = {payout_token.address: payout_token}
        self.payout_token = payout_token

        self.platform_wallet = settings.platform_wallet
        self.founder_wallet = settings.founder_wallet

        self.normalizer = PriceNormalizer()
        self.coordinator = RandomnessCoordinator(
            randomness,
            settings.coordinator,
            DrawConfig(
                key_hash=settings.key_hash,
                subscription_id=settings.subscription_id,
                request_confirmations=settings.request_confirmations,
                callback_gas_limit=settings.callback_gas_limit,
            ),
        )
        self.settlement = SettlementEngine(
            exchange, payout_token.address, address, settings.swap_fee_tier
        )

        self.events: List[Any] = []
        self._locked = False

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner")

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._locked:
            raise ReentrantCall("Engine is already executing a value-moving call")
        self._locked = True
        try:
            yield
        finally:
            self._locked = False

    @contextmanager
    def _atomic(self, game: Game) -> Iterator[None]:
        saved = copy.deepcopy(game)
        pending = dict(self.coordinator.pending)
        n_events = len(self.events)
        try:
            yield
        except BaseException:
            game.__dict__.update(saved.__dict__)
            self.coordinator.pending = pending
            del self.events[n_events:]
            raise

    def _emit(self, event: Any) -> None:
        self.events.append(event)

    def game(self, game_id: int) -> Game:
        game = self.games.get(game_id)
        if game is None:
            raise UnknownGame(f"Game {game_id} does not exist")
        return game

    def current_game(self) -> Game:
        return self.game(self.current_game_id)

    def participants(self, game_id: int) -> List[str]:
        return self.game(game_id).deposits.participant_list

    def holdings(self, game_id: int) -> Dict[str, int]:
        return dict(self.game(game_id).deposits.holdings)

    def winner(self, game_id: int) -> Optional[str]:
        return self.game(game_id).winner

    def claimable(self, game_id: int, payee: str) -> int:
        return self.game(game_id).claims.balance_of(payee)

    def allow_token(self, caller: str, token: Token, feed: PriceFeed) -> None:
        self._only_owner(caller)
        self.allowed[token.address] = AllowedToken(token, feed)
        self.known_tokens[token.address] = token
        log.info("Token allowed: %s", token.address)

    def disallow_token(self, caller: str, token_address: str) -> None:
        self._only_owner(caller)
        if self.allowed.pop(token_address, None) is None:
            raise TokenNotAllowed(f"{token_address} is not on the allow-list")
        log.info("Token disallowed: %s", token_address)

    def set_fees(self, caller: str, platform_fee_bps: int, founder_fee_bps: int) -> None:
        self._only_owner(caller)
        self.settings = self.settings.with_fees(platform_fee_bps, founder_fee_bps)
        log.info("Fees set: platform=%d bps founder=%d bps", platform_fee_bps, founder_fee_bps)

    def set_fee_wallets(self, caller: str, platform_wallet: str, founder_wallet: str) -> None:
        self._only_owner(caller)
        self.platform_wallet = platform_wallet
        self.founder_wallet = founder_wallet

    def _expired_empty(self, game: Game) -> bool:
        return (
            game.state == GameState.OPEN
            and game.pool_usd == 0
            and game.elapsed(self.clock())
        )

    def _close_empty(self, game: Game) -> None:
        """An expired game nobody entered can never be drawn; settle it with nothing owed."""
        game.claims.credit_settlement({})
        game.settled = True
        game.state = GameState.SETTLED
        self._emit(GameSettled(game.game_id, 0, 0, 0, 0))
        log.info("Game %d closed with no deposits", game.game_id)

    def start_new_game(self, caller: str) -> Game:
        self._only_owner(caller)
        if self.current_game_id:
            previous = self.current_game()
            if self._expired_empty(previous):
                self._close_empty(previous)
            if not previous.settled:
                raise InvalidState(
                    f"Game {previous.game_id} is {previous.state.value}, not settled"
                )

        game = Game(
            game_id=self.current_game_id + 1,
            start_time=self.clock(),
            duration=self.settings.game_duration_s,
            deposits=DepositLedger(
                max_participants=self.settings.max_participants,
                min_deposit_usd=self.settings.min_deposit_usd,
            ),
            claims=ClaimLedger(),
        )
        self.games[game.game_id] = game
        self.current_game_id = game.game_id
        self._emit(GameStarted(game.game_id, game.start_time, game.duration))
        log.info("Game %d started (duration %ds)", game.game_id, game.duration)
        return game

    def deposit(self, caller: str, token_address: str, raw_amount: int) -> int:
        """Pulls `raw_amount` of an allowed token from `caller` into the current game.

        Returns the normalized USD value credited to the caller's new range.
        """
        game = self.current_game()
        with self._exclusive(), self._atomic(game):
            now = self.clock()
            if game.state != GameState.OPEN:
                raise InvalidState(f"Game {game.game_id} is {game.state.value}")
            if game.elapsed(now):
                raise WindowClosed(f"Game {game.game_id} closed at {game.ends_at}")
            allowed = self.allowed.get(token_address)
            if allowed is None:
                raise TokenNotAllowed(f"{token_address} is not on the allow-list")
            game.deposits.check_capacity()

            usd_value = self.normalizer.normalize(
                allowed.feed, raw_amount, allowed.token.decimals, now
            )
            game.deposits.record(caller, token_address, raw_amount, usd_value)
            allowed.token.transfer_from(self.address, caller, self.address, raw_amount)

            self._emit(
                DepositRecorded(game.game_id, caller, token_address, raw_amount, usd_value)
            )
            log.info(
                "Game %d: deposit %s %d %s = %d usd (pool %d)",
                game.game_id,
                caller,
                raw_amount,
                token_address,
                usd_value,
                game.pool_usd,
            )
            return usd_value

    def deposit_with_permit(
        self, caller: str, token_address: str, raw_amount: int, permit: Permit
    ) -> int:
        allowed = self.allowed.get(token_address)
        if allowed is None:
            raise TokenNotAllowed(f"{token_address} is not on the allow-list")
        # Best effort: the permit may already be used or the token may not
        # support it. transfer_from enforces the allowance either way.
        try:
            allowed.token.permit(
                caller, self.address, raw_amount, permit.deadline, permit.signature
            )
        except Exception as e:
            log.debug("Permit for %s on %s ignored: %s", caller, token_address, e)
        return self.deposit(caller, token_address, raw_amount)

    def _draw_blocker(self, game: Game, now: int) -> Optional[Exception]:
        if game.state != GameState.OPEN:
            return InvalidState(f"Game {game.game_id} is {game.state.value}")
        if not game.elapsed(now):
            return WindowNotElapsed(f"Game {game.game_id} runs until {game.ends_at}")
        if game.pool_usd == 0:
            return EmptyPool(f"Game {game.game_id} has no deposits")
        return None

    def check_upkeep(self) -> bool:
        """Read-only probe: may a draw be requested for the current game right now?"""
        if not self.current_game_id:
            return False
        return self._draw_blocker(self.current_game(), self.clock()) is None

    def request_draw(self) -> int:
        game = self.current_game()
        with self._atomic(game):
            blocker = self._draw_blocker(game, self.clock())
            if blocker is not None:
                raise blocker
            request_id = self.coordinator.request_draw(game.game_id)
            game.request_id = request_id
            game.state = GameState.RANDOM_REQUESTED
            self._emit(DrawRequested(game.game_id, request_id))
            return request_id

    def perform_upkeep(self) -> int:
        """Permissionless trigger; fails with the precise reason when the probe is false."""
        return self.request_draw()

    def fulfill_random_words(self, caller: str, request_id: int, words: Sequence[int]) -> None:
        game = self.game(self.coordinator.owner_of(caller, request_id))
        with self._atomic(game):
            if game.state != GameState.RANDOM_REQUESTED:
                raise InvalidState(
                    f"Game {game.game_id} is {game.state.value}, not awaiting a draw"
                )
            game.random_word = self.coordinator.consume(request_id, words)
            game.state = GameState.WINNER_SELECTED
            self._emit(RandomnessFulfilled(game.game_id, request_id, game.random_word))
            log.info("Game %d: randomness fulfilled (request %d)", game.game_id, request_id)

    def settle(self, caller: str, game_id: Optional[int] = None) -> FeeSplit:
        self._only_owner(caller)
        game = self.game(game_id or self.current_game_id)
        with self._exclusive(), self._atomic(game):
            if game.settled:
                raise AlreadySettled(f"Game {game.game_id} is already settled")
            if game.state == GameState.OPEN:
                raise InvalidState(f"Game {game.game_id} has not been drawn")
            if game.random_word == RANDOM_NOT_FULFILLED:
                raise RandomNotReady(f"Game {game.game_id} has no random word yet")

            ranges = game.deposits.ranges
            check_partition(ranges, game.pool_usd)
            point = compute_point(game.random_word, game.pool_usd)
            game.winner = find_winner(ranges, point).depositor
            self._emit(WinnerSelected(game.game_id, game.winner, point))
            log.info("Game %d: winner %s (point %d of %d)", game.game_id, game.winner, point, game.pool_usd)

            split = self.settlement.settle(
                game,
                self.known_tokens,
                {
                    "platform": self.platform_wallet,
                    "founder": self.founder_wallet,
                    "winner": game.winner,
                },
                self.settings.platform_fee_bps,
                self.settings.founder_fee_bps,
                self.clock(),
            )
            self._emit(
                GameSettled(
                    game.game_id,
                    split.total_out,
                    split.platform_amt,
                    split.founder_amt,
                    split.winner_amt,
                )
            )
            log.info(
                "Game %d settled: total=%d platform=%d founder=%d winner=%d",
                game.game_id,
                split.total_out,
                split.platform_amt,
                split.founder_amt,
                split.winner_amt,
            )
            return split

    def claim(self, caller: str, game_id: int) -> int:
        game = self.game(game_id)
        # Checked before taking the lock so a nested claim by the same payee
        # sees the already-zeroed balance.
        if game.claims.balance_of(caller) == 0:
            raise NothingToClaim(f"{caller} has nothing to claim in game {game_id}")
        with self._exclusive(), self._atomic(game):
            amount = game.claims.take(caller)
            self.payout_token.transfer(self.address, caller, amount)
            self._emit(Claimed(game.game_id, caller, amount))
            log.info("Game %d: %s claimed %d", game.game_id, caller, amount)
            return amount
