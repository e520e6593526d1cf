from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from .errors import DepositTooSmall, ParticipantCapReached


@dataclass(frozen=True)
class WeightedRange:
    depositor: str
    start: int
    end: int  # exclusive

    @property
    def width(self) -> int:
        return self.end - self.start


@dataclass
class DepositLedger:
    """
    Per-game deposit accounting.

    Ranges are appended in deposit order and always partition [0, pool_usd).
    Participants and tokens are kept in dicts so iteration follows first
    appearance while membership stays O(1).
    """

    max_participants: int
    min_deposit_usd: int
    pool_usd: int = 0
    ranges: List[WeightedRange] = field(default_factory=list)
    participants: Dict[str, None] = field(default_factory=dict)
    holdings: Dict[str, int] = field(default_factory=dict)

    def check_capacity(self) -> None:
        if len(self.participants) >= self.max_participants:
            raise ParticipantCapReached(
                f"Game already has {len(self.participants)} participants "
                f"(cap {self.max_participants})"
            )

    def record(self, depositor: str, token: str, raw_amount: int, usd_value: int) -> WeightedRange:
        self.check_capacity()
        # A zero-width range could never be drawn; reject it even if the minimum is 0.
        if usd_value <= 0 or usd_value < self.min_deposit_usd:
            raise DepositTooSmall(
                f"Deposit worth {usd_value} (USD, 18 dp) is below minimum "
                f"{self.min_deposit_usd}"
            )

        start = self.pool_usd
        end = start + usd_value
        rng = WeightedRange(depositor, start, end)
        self.ranges.append(rng)
        self.pool_usd = end
        self.holdings[token] = self.holdings.get(token, 0) + raw_amount
        self.participants.setdefault(depositor, None)
        return rng

    @property
    def tokens(self) -> List[str]:
        return list(self.holdings)

    @property
    def participant_list(self) -> List[str]:
        return list(self.participants)


def build_ranges(deposits: List[tuple[str, int]]) -> tuple[List[WeightedRange], int]:
    """Rebuilds the partition from (depositor, usd_value) pairs in deposit order."""
    ranges: List[WeightedRange] = []
    cursor = 0
    for depositor, value in deposits:
        start = cursor
        end = cursor + value
        ranges.append(WeightedRange(depositor, start, end))
        cursor = end
    return ranges, cursor
