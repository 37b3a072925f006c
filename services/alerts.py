"""
Price alert evaluation.

Runs once per refresh cycle after quotes are assembled. Alerts are armed by
their first quote and can only fire on a later one; fired alerts are removed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from models import PriceAlert, Quote

logger = logging.getLogger(__name__)


@dataclass
class FiredAlert:
    """An alert that crossed its target, with the price that crossed it."""
    alert: PriceAlert
    price: float
    currency_symbol: str = "$"

    @property
    def title(self) -> str:
        return f"{self.alert.symbol} Price Alert"

    @property
    def body(self) -> str:
        cur = self.currency_symbol
        return (
            f"{self.alert.symbol} is now {cur}{self.price:.2f}, "
            f"{self.alert.direction_label} your target of {cur}{self.alert.target_price:.2f}"
        )


@dataclass
class AlertCheckResult:
    remaining: List[PriceAlert] = field(default_factory=list)
    fired: List[FiredAlert] = field(default_factory=list)
    newly_armed: List[PriceAlert] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.fired or self.newly_armed)


class AlertEngine:
    """
    Evaluates armed alerts against fresh quotes and sends notifications.

    Args:
        notifier: Object with notify(title, body); delivery is fire-and-forget
    """

    def __init__(self, notifier=None):
        self.notifier = notifier

    def check(self, alerts: Iterable[PriceAlert], quotes: Iterable[Quote]) -> AlertCheckResult:
        """Evaluate and notify in one step."""
        result = self.evaluate(alerts, quotes)
        self.dispatch(result.fired)
        return result

    def evaluate(self, alerts: Iterable[PriceAlert], quotes: Iterable[Quote]) -> AlertCheckResult:
        """
        Arm new alerts and collect armed ones whose condition holds.

        Alerts are updated in place (armed flag). Alerts whose symbol has no
        current quote are returned untouched. Fired alerts are left out of
        result.remaining.
        """
        by_symbol: Dict[str, Quote] = {}
        for quote in quotes:
            by_symbol.setdefault(quote.symbol, quote)

        result = AlertCheckResult()
        for alert in alerts:
            quote = by_symbol.get(alert.symbol)
            if quote is None:
                result.remaining.append(alert)
                continue

            if not alert.armed:
                # First sighting only arms; never fires in the same cycle
                alert.armed = True
                result.newly_armed.append(alert)
                result.remaining.append(alert)
                continue

            if alert.is_triggered(quote.display_price):
                result.fired.append(FiredAlert(alert, quote.display_price, quote.currency_symbol))
            else:
                result.remaining.append(alert)

        return result

    def dispatch(self, fired: Iterable[FiredAlert]) -> None:
        """Send one notification per fired alert; failures are logged."""
        for item in fired:
            logger.warning(f"ALERT: {item.body}")
            if self.notifier is None:
                continue
            try:
                self.notifier.notify(item.title, item.body)
            except Exception as e:
                logger.error(f"Failed to deliver alert for {item.alert.symbol}: {e}")


def alerts_for_symbol(alerts: Iterable[PriceAlert], symbol: str) -> List[PriceAlert]:
    return [a for a in alerts if a.symbol == symbol]


def find_alert(alerts: Iterable[PriceAlert], alert_id: str) -> Optional[PriceAlert]:
    for alert in alerts:
        if alert.id == alert_id:
            return alert
    return None
