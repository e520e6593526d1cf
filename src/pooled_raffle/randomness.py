from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Protocol, Sequence

from .errors import InvalidState, UnauthorizedCallback, UnknownRequest
from .project_constants import NUM_WORDS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrawConfig:
    key_hash: str
    subscription_id: int
    request_confirmations: int
    callback_gas_limit: int
    num_words: int = NUM_WORDS


class RandomnessService(Protocol):
    address: str

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int: ...


class RandomnessCoordinator:
    """
    Binds outstanding randomness requests to the game that issued them.

    A request id is removed from the pending map when it is fulfilled, so a
    replayed callback for the same id fails with UnknownRequest.
    """

    def __init__(self, service: RandomnessService, coordinator: str, config: DrawConfig) -> None:
        self.service = service
        self.coordinator = coordinator
        self.config = config
        self.pending: Dict[int, int] = {}

    def request_draw(self, game_id: int) -> int:
        if game_id in self.pending.values():
            raise InvalidState(f"Game {game_id} already has a draw in flight")
        cfg = self.config
        request_id = self.service.request_random_words(
            cfg.key_hash,
            cfg.subscription_id,
            cfg.request_confirmations,
            cfg.callback_gas_limit,
            cfg.num_words,
        )
        self.pending[request_id] = game_id
        log.info("Draw requested: game=%d request_id=%d", game_id, request_id)
        return request_id

    def owner_of(self, caller: str, request_id: int) -> int:
        """Authenticates the callback and returns the game the request belongs to."""
        if caller != self.coordinator:
            raise UnauthorizedCallback(
                f"Callback from {caller}, expected coordinator {self.coordinator}"
            )
        game_id = self.pending.get(request_id)
        if game_id is None:
            raise UnknownRequest(f"No pending randomness request {request_id}")
        return game_id

    def consume(self, request_id: int, words: Sequence[int]) -> int:
        if len(words) < 1:
            raise InvalidState(f"Request {request_id} fulfilled with no words")
        del self.pending[request_id]
        return int(words[0])
