from __future__ import annotations

from typing import Any, Dict, List

import httpx

from .pricing import PriceQuote

# Function selectors of the aggregator interface price feeds implement
DECIMALS_SELECTOR = "0x313ce567"  # decimals()
LATEST_ROUND_DATA_SELECTOR = "0xfeaf968c"  # latestRoundData()

WORD_HEX_CHARS = 64


def split_words(hex_data: str) -> List[int]:
    """Splits ABI-encoded return data into 32-byte words (unsigned)."""
    body = hex_data[2:] if hex_data.startswith("0x") else hex_data
    if len(body) % WORD_HEX_CHARS != 0:
        raise RuntimeError(f"Return data is not word aligned ({len(body)} hex chars)")
    return [
        int(body[i : i + WORD_HEX_CHARS], 16)
        for i in range(0, len(body), WORD_HEX_CHARS)
    ]


def to_int256(word: int) -> int:
    if word >= 1 << 255:
        return word - (1 << 256)
    return word


def decode_latest_round_data(hex_data: str, decimals: int) -> PriceQuote:
    """
    latestRoundData() returns
    roundId(uint80) | answer(int256) | startedAt | updatedAt | answeredInRound
    """
    words = split_words(hex_data)
    if len(words) < 5:
        raise RuntimeError(f"latestRoundData returned {len(words)} words, expected 5")
    return PriceQuote(
        price=to_int256(words[1]), updated_at=words[3], decimals=decimals
    )


class RpcClient:
    def __init__(self, rpc_url: str, timeout_s: float = 60.0, **client_kwargs: Any) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, **client_kwargs)

    def close(self) -> None:
        self.client.close()

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data

    def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [{"to": to, "data": data}, block],
        }
        result = self._post(payload).get("result")
        if not isinstance(result, str):
            raise RuntimeError(f"eth_call to {to}: no result returned.")
        return result

    def get_block_time(self, block: str = "latest") -> int:
        """Returns the Unix timestamp of a block."""
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_getBlockByNumber",
            "params": [block, False],
        }
        result = self._post(payload).get("result")
        if not result or "timestamp" not in result:
            raise RuntimeError(f"Timestamp not available for block {block}")
        return int(result["timestamp"], 16)


class RpcPriceFeed:
    """A price feed read over JSON-RPC from an on-chain aggregator."""

    def __init__(self, rpc: RpcClient, address: str) -> None:
        self.rpc = rpc
        self.address = address
        self._decimals: int | None = None

    def decimals(self) -> int:
        # Aggregator decimals never change; read once.
        if self._decimals is None:
            words = split_words(self.rpc.eth_call(self.address, DECIMALS_SELECTOR))
            if not words:
                raise RuntimeError(f"Feed {self.address}: decimals() returned nothing")
            self._decimals = words[0]
        return self._decimals

    def latest_quote(self) -> PriceQuote:
        raw = self.rpc.eth_call(self.address, LATEST_ROUND_DATA_SELECTOR)
        return decode_latest_round_data(raw, self.decimals())
