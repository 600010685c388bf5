"""
Load-balancing strategy engine.

Three selection policies over a tier's eligible candidates:

- failover: always the first candidate; on failure the caller asks again with
  the failed provider excluded, cascading in tier order
- round-robin: a cursor per tier, advanced on every selection
- weighted: a uniform draw over the cumulative weights of the candidates

The active strategy, the cursors and the weights share one lock. A strategy
switch is a single write under that lock and only affects selections that
start afterwards.
"""

import bisect
import itertools
import logging
import random
import threading
from typing import Collection, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..exceptions import AllProvidersExhausted, InvalidWeight, NoEligibleProvider, UnknownStrategy
from ..providers.models import Provider, SelectionStrategy

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 1.0


def parse_strategy(name: Union[str, SelectionStrategy]) -> SelectionStrategy:
    """
    Parse a strategy name.

    Raises:
        UnknownStrategy: If the name is not a known strategy
    """
    try:
        return SelectionStrategy(name)
    except ValueError:
        raise UnknownStrategy(str(name), [s.value for s in SelectionStrategy])


class StrategyEngine:
    """
    Picks the provider that serves a request.

    Args:
        strategy: Initial strategy
        weights: Provider weights for the weighted strategy
        rng: Random source; inject a seeded or scripted one for deterministic tests
    """

    def __init__(
        self,
        strategy: Union[str, SelectionStrategy] = SelectionStrategy.FAILOVER,
        weights: Optional[Mapping[str, float]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._lock = threading.Lock()
        self._strategy = parse_strategy(strategy)
        self._weights: Dict[str, float] = {}
        self._cursors: Dict[str, int] = {}
        self._rng = rng or random.Random()

        for provider_id, weight in (weights or {}).items():
            self.set_weight(provider_id, weight)

    @property
    def strategy(self) -> SelectionStrategy:
        with self._lock:
            return self._strategy

    def set_strategy(self, name: Union[str, SelectionStrategy]) -> SelectionStrategy:
        strategy = parse_strategy(name)
        with self._lock:
            previous, self._strategy = self._strategy, strategy
        logger.info(f"Load balancing strategy changed: {previous.value} -> {strategy.value}")
        return strategy

    def set_weight(self, provider_id: str, weight: float) -> None:
        try:
            value = float(weight)
        except (TypeError, ValueError):
            raise InvalidWeight(provider_id, weight)
        if not value > 0:
            raise InvalidWeight(provider_id, weight)
        with self._lock:
            self._weights[provider_id] = value
        logger.info(f"Weight for {provider_id} set to {value}")

    def weights(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._weights)

    def cursor(self, tier: str) -> int:
        with self._lock:
            return self._cursors.get(tier, 0)

    def reset_cursor(self, tier: str) -> None:
        """Forget the round-robin position of a tier (its candidate list emptied)."""
        with self._lock:
            if self._cursors.pop(tier, None) is not None:
                logger.debug(f"Round-robin cursor reset for tier {tier}")

    def select(
        self,
        tier: str,
        candidates: Sequence[Provider],
        exclude: Collection[str] = (),
        strategy: Optional[SelectionStrategy] = None,
    ) -> Provider:
        """
        Pick one provider.

        Args:
            tier: Tier the request belongs to (keys the round-robin cursor)
            candidates: Eligible providers in tier order
            exclude: Provider ids already attempted for this request
            strategy: Strategy snapshot; defaults to the active strategy

        Raises:
            NoEligibleProvider: If the candidate list is empty
            AllProvidersExhausted: If every candidate is excluded
        """
        if not candidates:
            self.reset_cursor(tier)
            raise NoEligibleProvider(tier)

        remaining = [c for c in candidates if c.id not in exclude]
        if not remaining:
            raise AllProvidersExhausted([])

        if strategy is None:
            strategy = self.strategy

        if strategy is SelectionStrategy.ROUND_ROBIN:
            return self._select_round_robin(tier, remaining)
        if strategy is SelectionStrategy.WEIGHTED:
            return self._select_weighted(remaining)
        return remaining[0]

    def iter_candidates(self, tier: str, candidates: Sequence[Provider]) -> Iterator[Provider]:
        """
        Yield providers in the order a request should attempt them.

        The strategy is read once, when the first provider is selected. Each
        candidate is yielded at most once, so a request can never attempt more
        providers than it has candidates.
        """
        strategy = self.strategy
        first = self.select(tier, candidates, strategy=strategy)
        yield first

        if strategy is SelectionStrategy.ROUND_ROBIN:
            # Continue cyclically after the provider the cursor chose
            start = next(i for i, c in enumerate(candidates) if c.id == first.id)
            for provider in itertools.chain(candidates[start + 1:], candidates[:start]):
                yield provider
            return

        attempted = [first.id]
        while len(attempted) < len(candidates):
            provider = self.select(tier, candidates, exclude=attempted, strategy=strategy)
            attempted.append(provider.id)
            yield provider

    def _select_round_robin(self, tier: str, candidates: List[Provider]) -> Provider:
        if len(candidates) == 1:
            # A lone candidate (an explicitly requested provider) leaves the cursor alone
            return candidates[0]
        with self._lock:
            cursor = self._cursors.get(tier, 0)
            provider = candidates[cursor % len(candidates)]
            self._cursors[tier] = (cursor + 1) % len(candidates)
        return provider

    def _select_weighted(self, candidates: List[Provider]) -> Provider:
        with self._lock:
            weights = [self._weights.get(c.id, DEFAULT_WEIGHT) for c in candidates]
            draw = self._rng.random()
        cumulative = list(itertools.accumulate(weights))
        index = bisect.bisect_right(cumulative, draw * cumulative[-1])
        return candidates[min(index, len(candidates) - 1)]
