from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from .claims import ClaimLedger
from .ledger import DepositLedger
from .project_constants import RANDOM_NOT_FULFILLED


class GameState(str, Enum):
    OPEN = "open"
    RANDOM_REQUESTED = "random_requested"
    WINNER_SELECTED = "winner_selected"
    SETTLED = "settled"


@dataclass
class Game:
    game_id: int
    start_time: int
    duration: int
    deposits: DepositLedger
    state: GameState = GameState.OPEN
    request_id: Optional[int] = None
    random_word: int = RANDOM_NOT_FULFILLED
    winner: Optional[str] = None
    total_out: int = 0
    claims: ClaimLedger = field(default_factory=ClaimLedger)
    settled: bool = False

    @property
    def pool_usd(self) -> int:
        return self.deposits.pool_usd

    @property
    def ends_at(self) -> int:
        return self.start_time + self.duration

    def elapsed(self, now: int) -> bool:
        return now - self.start_time >= self.duration


class Token(Protocol):
    address: str
    decimals: int

    def transfer(self, sender: str, to: str, amount: int) -> None: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None: ...

    def approve(self, owner: str, spender: str, amount: int) -> None: ...

    def permit(self, owner: str, spender: str, amount: int, deadline: int, signature: bytes) -> None: ...


class Exchange(Protocol):
    address: str

    def exact_input_single(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        recipient: str,
        amount_in: int,
        amount_out_minimum: int,
        deadline: int,
    ) -> int: ...
