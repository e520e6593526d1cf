from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import StalePrice
from .project_constants import PRICE_FRESHNESS_WINDOW_S, USD_DECIMALS


@dataclass(frozen=True)
class PriceQuote:
    price: int
    updated_at: int
    decimals: int


class PriceFeed(Protocol):
    def latest_quote(self) -> PriceQuote: ...


def scale_to_usd_decimals(price: int, decimals: int) -> int:
    if decimals <= USD_DECIMALS:
        return price * 10 ** (USD_DECIMALS - decimals)
    return price // 10 ** (decimals - USD_DECIMALS)


def check_fresh(quote: PriceQuote, now: int) -> None:
    if quote.price <= 0:
        raise StalePrice(f"Feed returned non-positive price {quote.price}")
    age = now - quote.updated_at
    if age > PRICE_FRESHNESS_WINDOW_S:
        raise StalePrice(
            f"Quote is {age}s old (freshness window {PRICE_FRESHNESS_WINDOW_S}s)"
        )


class PriceNormalizer:
    """
    Converts a raw token amount into 18-decimal USD.

    Only reads the bound feed; holds no ledger state.
    """

    def normalize(
        self, feed: PriceFeed, raw_amount: int, token_decimals: int, now: int
    ) -> int:
        return self.normalize_quote(feed.latest_quote(), raw_amount, token_decimals, now)

    def normalize_quote(
        self, quote: PriceQuote, raw_amount: int, token_decimals: int, now: int
    ) -> int:
        check_fresh(quote, now)
        price18 = scale_to_usd_decimals(quote.price, quote.decimals)
        return raw_amount * price18 // 10**token_decimals
