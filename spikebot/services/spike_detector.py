"""Price spike detection."""
from typing import Tuple


def percent_change(previous_price: float, current_price: float) -> float:
    """
    Percentage change from ``previous_price`` to ``current_price``.
    
    Raises:
        ValueError: If previous_price is not positive
    """
    if previous_price <= 0:
        raise ValueError(f"previous_price must be positive, got {previous_price}")
    return (current_price - previous_price) / previous_price * 100


def detect(previous_price: float, current_price: float, threshold_pct: float) -> Tuple[float, bool]:
    """
    Compare two prices against a threshold.
    
    Upward and downward moves are checked against the same magnitude.
    
    Args:
        previous_price: Baseline price (must be > 0)
        current_price: Latest price
        threshold_pct: Trigger magnitude in percent, e.g. 20 for ±20%
        
    Returns:
        (change_pct, triggered)
    """
    change_pct = percent_change(previous_price, current_price)
    return change_pct, abs(change_pct) >= threshold_pct
