from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .draw import check_partition, compute_point, find_winner
from .errors import InvalidState
from .ledger import build_ranges
from .models import Game


def build_audit(game: Game) -> Dict[str, Any]:
    """Everything needed to re-derive a settled game's winner offline."""
    if game.winner is None:
        raise InvalidState(f"Game {game.game_id} has no winner to audit")

    point = compute_point(game.random_word, game.pool_usd)
    return {
        "metadata": {
            "tool": "pooled-raffle",
            "version": "1.0.0",
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "game_id": game.game_id,
            "start_time": game.start_time,
            "duration": game.duration,
            "request_id": game.request_id,
            "random_word": str(game.random_word),  # big int; store as string for safety
            "pool_usd": str(game.pool_usd),
            "draw_point": str(point),
            "total_out": str(game.total_out),
        },
        "winner": {"address": game.winner},
        "holdings": {k: str(v) for k, v in game.deposits.holdings.items()},
        # Ranges in deposit order so anyone can re-run the draw.
        "ranges": [
            {"depositor": r.depositor, "start": str(r.start), "end": str(r.end)}
            for r in game.deposits.ranges
        ],
    }


def write_audit(game: Game, path: str) -> None:
    """For hosts embedding the engine; the CLI has no live engine to export from."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_audit(game), f, indent=2)


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    pool_usd = int(meta["pool_usd"])
    random_word = int(meta["random_word"])
    point_expected = int(meta["draw_point"])

    # Rebuild from widths only; stored boundaries must agree with the rebuild.
    stored = audit["ranges"]
    deposits = [(r["depositor"], int(r["end"]) - int(r["start"])) for r in stored]
    ranges, total = build_ranges(deposits)
    for rebuilt, r in zip(ranges, stored):
        if rebuilt.start != int(r["start"]) or rebuilt.end != int(r["end"]):
            raise RuntimeError(
                f"Range mismatch for {r['depositor']}: audit=[{r['start']}, {r['end']}) "
                f"recomputed=[{rebuilt.start}, {rebuilt.end})"
            )
    if total != pool_usd:
        raise RuntimeError(f"Pool mismatch: audit={pool_usd} recomputed={total}")
    check_partition(ranges, pool_usd)

    point = compute_point(random_word, pool_usd)
    if point != point_expected:
        raise RuntimeError(
            f"Draw point mismatch: audit={point_expected} recomputed={point}"
        )

    winner = find_winner(ranges, point)
    winner_expected = audit["winner"]["address"]
    if winner.depositor != winner_expected:
        raise RuntimeError(
            f"Winner mismatch: audit={winner_expected} recomputed={winner.depositor}"
        )

    return {
        "ok": True,
        "game_id": meta["game_id"],
        "winner": winner.depositor,
        "draw_point": point,
        "pool_usd": pool_usd,
    }
