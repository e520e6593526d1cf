from __future__ import annotations

import argparse
import json
import logging
import random
from collections import Counter
from decimal import Decimal
from typing import Dict, List, Tuple

from .config import resolve_rpc_url
from .draw import resolve, to_usd
from .ledger import build_ranges
from .pricing import PriceNormalizer
from .project_constants import USD_UNIT
from .rpc import RpcClient, RpcPriceFeed
from .verify import verify_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def load_deposits(path: str) -> List[Tuple[str, int]]:
    """
    Reads [{"depositor": "...", "usd": "12.50"}, ...] and returns
    (depositor, 18-dp USD value) pairs in file order.
    """
    with open(path, "r", encoding="utf-8") as f:
        items = json.load(f)
    return [(d["depositor"], int(Decimal(str(d["usd"])) * USD_UNIT)) for d in items]


def simulate_win_rates(
    deposits: List[Tuple[str, int]], draws: int, seed: int
) -> Dict[str, Tuple[float, float]]:
    """Returns depositor -> (USD share, empirical win rate)."""
    ranges, pool = build_ranges(deposits)
    if pool <= 0:
        raise SystemExit("Deposits file has no value to draw from.")

    rng = random.Random(seed)
    wins: Counter[str] = Counter()
    for _ in range(draws):
        wins[resolve(ranges, rng.getrandbits(256), pool)] += 1

    stake: Counter[str] = Counter()
    for depositor, value in deposits:
        stake[depositor] += value
    return {d: (stake[d] / pool, wins[d] / draws) for d in stake}


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Game          : {result['game_id']}")
    print(f"Winner        : {result['winner']}")
    print(f"Draw point    : {to_usd(result['draw_point'])} USD")
    print(f"Pool          : {to_usd(result['pool_usd'])} USD")
    return 0


def cmd_quote(args: argparse.Namespace) -> int:
    """Reads a live price feed and normalizes an amount the way a deposit would."""
    log = logging.getLogger("quote")
    rpc = RpcClient(resolve_rpc_url(args.rpc_url), timeout_s=args.timeout)
    try:
        feed = RpcPriceFeed(rpc, args.feed)
        now = rpc.get_block_time()
        quote = feed.latest_quote()
        log.debug("Quote: price=%d decimals=%d updated_at=%d", quote.price, quote.decimals, quote.updated_at)
        usd = PriceNormalizer().normalize_quote(
            quote, args.amount, args.token_decimals, now
        )
    finally:
        rpc.close()

    print("--- PRICE QUOTE ---")
    print(f"Feed          : {args.feed}")
    print(f"Quote age     : {now - quote.updated_at}s")
    print(f"Raw amount    : {args.amount}")
    print(f"USD value     : {to_usd(usd)}")
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    deposits = load_deposits(args.deposits)
    rates = simulate_win_rates(deposits, args.draws, args.seed)

    print(f"{'Depositor':<44} {'Share':>8} {'Won':>8}")
    for depositor, (share, won) in sorted(rates.items(), key=lambda x: -x[1][0]):
        print(f"{depositor:<44} {share:>8.4f} {won:>8.4f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pooled-raffle",
        description="Tooling for the USD-weighted pooled raffle.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    v = sub.add_parser(
        "verify", help="Verify an existing game audit JSON deterministically."
    )
    v.add_argument("--audit", required=True, help="Path to the audit JSON.")
    v.set_defaults(func=cmd_verify)

    q = sub.add_parser("quote", help="Normalize a token amount using a live price feed.")
    q.add_argument("--feed", required=True, help="Price feed contract address.")
    q.add_argument("--amount", required=True, type=int, help="Raw token amount.")
    q.add_argument(
        "--token-decimals", required=True, type=int, help="Decimals of the token."
    )
    q.set_defaults(func=cmd_quote)

    s = sub.add_parser(
        "simulate", help="Compare empirical win rates with USD shares."
    )
    s.add_argument("--deposits", required=True, help="JSON list of deposits.")
    s.add_argument("--draws", type=int, default=100_000, help="Number of draws.")
    s.add_argument("--seed", type=int, default=0, help="PRNG seed.")
    s.set_defaults(func=cmd_simulate)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
