from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .errors import InvalidState, NothingToClaim


@dataclass
class ClaimLedger:
    """Per-game payout-token balances owed to payees (pull payments)."""

    balances: Dict[str, int] = field(default_factory=dict)
    funded: bool = False

    def credit_settlement(self, credits: Dict[str, int]) -> None:
        # Balances are created once, by settlement, and never topped up later.
        if self.funded:
            raise InvalidState("Claimable balances were already credited.")
        for payee, amount in credits.items():
            if amount > 0:
                self.balances[payee] = self.balances.get(payee, 0) + amount
        self.funded = True

    def balance_of(self, payee: str) -> int:
        return self.balances.get(payee, 0)

    def take(self, payee: str) -> int:
        """Zeroes the payee's balance and returns what it was."""
        amount = self.balances.get(payee, 0)
        if amount == 0:
            raise NothingToClaim(f"{payee} has nothing to claim")
        self.balances[payee] = 0
        return amount
