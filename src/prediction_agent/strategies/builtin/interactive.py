"""
Interactive Strategy - Weighted multi-signal scorer.

Scores every candidate market by blending three components, each in [0, 1]:

    sentiment  (1 + sentiment) / 2               bullish news -> 1
    price      0.5 + (fair - price), clamped     underpriced  -> 1
    volume     min(1, volume_24h / normalizer)   active market -> 1

The bullish confidence is the weighted mean of the three. The bearish
confidence mirrors sentiment and price while keeping volume as is.

Signal Logic:
    - BUY:  bullish >= min_confidence and bullish >= bearish
    - SELL: bearish >= min_confidence and the agent holds the token
"""
from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..config import StrategyConfig, StrategyConfigError, StrategyType
from ..filters import apply_snapshot_filters
from ..protocol import MarketSnapshot
from ..signals import Side, TradeSignal


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class InteractiveStrategy:
    """
    Strategy that trades where sentiment, mispricing and activity agree.

    Configuration:
        min_confidence: Minimum combined score to emit (default 0.70)
        sentiment_weight: Weight of the sentiment component (default 0.4)
        price_weight: Weight of the price-deviation component (default 0.4)
        volume_weight: Weight of the volume component (default 0.2)
        volume_normalizer: 24h volume that scores 1.0 (default 10000)
        order_size: Shares per signal (default 10)

    Weights are individually non-negative and must sum to a positive total.
    They do not need to sum to 1; the score is normalized by the total.
    """

    def __init__(
        self,
        min_confidence: float = 0.70,
        sentiment_weight: float = 0.4,
        price_weight: float = 0.4,
        volume_weight: float = 0.2,
        volume_normalizer: Decimal = Decimal("10000"),
        order_size: Decimal = Decimal("10"),
    ) -> None:
        for key, weight in (
            ("SENTIMENT_WEIGHT", sentiment_weight),
            ("PRICE_WEIGHT", price_weight),
            ("VOLUME_WEIGHT", volume_weight),
        ):
            if weight < 0:
                raise StrategyConfigError(key, weight, "weights must not be negative")

        total = sentiment_weight + price_weight + volume_weight
        if total <= 0:
            raise StrategyConfigError(
                "SENTIMENT_WEIGHT+PRICE_WEIGHT+VOLUME_WEIGHT",
                total,
                "weights must sum to a positive total",
            )
        if not (0.0 <= min_confidence <= 1.0):
            raise StrategyConfigError(
                "MIN_CONFIDENCE_THRESHOLD", min_confidence, "must be between 0 and 1"
            )
        if volume_normalizer <= 0:
            raise StrategyConfigError(
                "INTERACTIVE_VOLUME_NORMALIZER", volume_normalizer, "must be positive"
            )
        if order_size <= 0:
            raise StrategyConfigError("INTERACTIVE_ORDER_SIZE", order_size, "must be positive")

        self._min_confidence = min_confidence
        self._sentiment_weight = sentiment_weight
        self._price_weight = price_weight
        self._volume_weight = volume_weight
        self._total_weight = total
        self._volume_normalizer = volume_normalizer
        self._order_size = order_size

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "InteractiveStrategy":
        return cls(
            min_confidence=config.get_float("MIN_CONFIDENCE_THRESHOLD", 0.70),
            sentiment_weight=config.get_float("SENTIMENT_WEIGHT", 0.4),
            price_weight=config.get_float("PRICE_WEIGHT", 0.4),
            volume_weight=config.get_float("VOLUME_WEIGHT", 0.2),
            volume_normalizer=config.get_decimal("INTERACTIVE_VOLUME_NORMALIZER", Decimal("10000")),
            order_size=config.get_decimal("INTERACTIVE_ORDER_SIZE", Decimal("10")),
        )

    @property
    def name(self) -> str:
        """Strategy identifier."""
        return StrategyType.INTERACTIVE.strategy_name

    @property
    def weights(self) -> tuple[float, float, float]:
        """(sentiment, price, volume) weights as configured."""
        return (self._sentiment_weight, self._price_weight, self._volume_weight)

    def score(self, snapshot: MarketSnapshot) -> tuple[float, float]:
        """
        Score a snapshot.

        Returns:
            (bullish, bearish) confidences, each in [0, 1]
        """
        sentiment = snapshot.sentiment or 0.0
        deviation = float(snapshot.fair_price - snapshot.price)
        volume = snapshot.volume_24h or Decimal("0")
        volume_component = _clamp(float(volume / self._volume_normalizer))

        bullish = (
            self._sentiment_weight * (1.0 + sentiment) / 2.0
            + self._price_weight * _clamp(0.5 + deviation)
            + self._volume_weight * volume_component
        ) / self._total_weight
        bearish = (
            self._sentiment_weight * (1.0 - sentiment) / 2.0
            + self._price_weight * _clamp(0.5 - deviation)
            + self._volume_weight * volume_component
        ) / self._total_weight

        return _clamp(bullish), _clamp(bearish)

    def evaluate(self, snapshots: Sequence[MarketSnapshot]) -> list[TradeSignal]:
        signals = []
        for snapshot in snapshots:
            should_skip, _ = apply_snapshot_filters(snapshot)
            if should_skip:
                continue

            bullish, bearish = self.score(snapshot)

            if bullish >= self._min_confidence and bullish >= bearish:
                signals.append(
                    TradeSignal(
                        strategy_name=self.name,
                        token_id=snapshot.token_id,
                        side=Side.BUY,
                        size=self._order_size,
                        limit_price=snapshot.price,
                        confidence=bullish,
                        rationale=f"Bullish score {bullish:.2f} >= {self._min_confidence:.2f}",
                    )
                )
            elif bearish >= self._min_confidence and snapshot.held_size > 0:
                signals.append(
                    TradeSignal(
                        strategy_name=self.name,
                        token_id=snapshot.token_id,
                        side=Side.SELL,
                        size=min(self._order_size, snapshot.held_size),
                        limit_price=snapshot.price,
                        confidence=bearish,
                        rationale=f"Bearish score {bearish:.2f} >= {self._min_confidence:.2f}",
                    )
                )

        return signals

    def __repr__(self) -> str:
        return (
            f"InteractiveStrategy("
            f"min_confidence={self._min_confidence}, "
            f"weights={self.weights})"
        )
