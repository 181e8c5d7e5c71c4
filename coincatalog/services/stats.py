"""Collection statistics derived from the owned set."""

from collections.abc import Sequence
from dataclasses import dataclass

from coincatalog.models.user_coin import UserCoin


@dataclass(frozen=True, slots=True)
class CollectionStats:
    collection_count: int = 0
    wishlist_count: int = 0
    total_value: float = 0.0
    total_purchase_price: float = 0.0
    profit_loss: float = 0.0
    profit_loss_percent: float = 0.0


def current_value(coin: UserCoin) -> float:
    """
    Current value of an owned coin.

    The user's own valuation wins; otherwise the catalog estimate midpoint.
    Coins without either are worth 0.
    """
    if coin.current_value is not None:
        return coin.current_value
    if coin.catalog_coin is None:
        return 0.0
    return coin.catalog_coin.estimated_midpoint() or 0.0


def compute_collection_stats(
    owned: Sequence[UserCoin],
    wishlist_count: int = 0,
) -> CollectionStats:
    """Compute value and profit/loss over the owned coins."""
    total_value = sum(current_value(coin) for coin in owned)
    total_purchase_price = sum(coin.purchase_price or 0 for coin in owned)
    profit_loss = total_value - total_purchase_price

    if total_purchase_price > 0:
        profit_loss_percent = profit_loss / total_purchase_price * 100
    else:
        profit_loss_percent = 0.0

    return CollectionStats(
        collection_count=len(owned),
        wishlist_count=wishlist_count,
        total_value=float(total_value),
        total_purchase_price=float(total_purchase_price),
        profit_loss=float(profit_loss),
        profit_loss_percent=float(profit_loss_percent),
    )
