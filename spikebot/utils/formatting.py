"""Telegram message formatting utilities."""
from datetime import datetime
from typing import Dict, List, Optional
from spikebot.utils.time import format_timestamp


# Characters with meaning in Telegram's legacy Markdown parse mode
_MARKDOWN_SPECIAL = ("\\", "_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape user-provided text for Telegram Markdown."""
    for char in _MARKDOWN_SPECIAL:
        text = text.replace(char, f"\\{char}")
    return text


def format_alert_notification(
    market_title: str,
    market_id: str,
    previous_price: float,
    current_price: float,
    change_pct: float,
    threshold_pct: float,
    lookback_seconds: int = 60,
    triggered_at: Optional[datetime] = None,
    timezone_str: str = "UTC"
) -> str:
    """
    Format a price spike alert into a Telegram message.
    
    Args:
        market_title: Market display title
        market_id: Market ID
        previous_price: Baseline price
        current_price: Latest price
        change_pct: Signed percentage change
        threshold_pct: Subscription threshold
        lookback_seconds: Age of the baseline
        triggered_at: Trigger time (defaults to now)
        timezone_str: Display timezone
        
    Returns:
        Formatted message string
    """
    emoji = "📈" if change_pct >= 0 else "📉"
    sign = "+" if change_pct >= 0 else ""
    lookback = f"{lookback_seconds // 60} min" if lookback_seconds % 60 == 0 else f"{lookback_seconds}s"
    
    message = f"""
{emoji} *Price Spike Alert!*

*Market:* {escape_markdown(market_title)} (#{market_id})
*Current Price:* ${current_price:.4f}
*{lookback} ago:* ${previous_price:.4f}
*Change:* {sign}{change_pct:.2f}% (threshold: ±{threshold_pct:.1f}%)

*Triggered:* {format_timestamp(triggered_at, timezone_str)}
    """.strip()
    
    return message


def format_alerts_list(alerts: Dict[str, List[dict]], max_markets: int = 10) -> str:
    """
    Format a user's alerts grouped by market.
    
    Args:
        alerts: Mapping of market ID to dicts with 'id' and 'threshold_pct'
        max_markets: Market limit shown in the footer
        
    Returns:
        Formatted alert list
    """
    if not alerts:
        return "You don't have any alerts set up yet. Use Create Alert to get started!"
    
    lines = ["*Your Alerts*", ""]
    
    for market_id in sorted(alerts):
        lines.append(f"*Market #{market_id}*")
        for i, alert in enumerate(alerts[market_id], start=1):
            lines.append(f"{i}. Threshold: ±{alert['threshold_pct']:.1f}% (ID: {alert['id']})")
        lines.append("")
    
    lines.append(f"_Total markets tracked: {len(alerts)}/{max_markets}_")
    return "\n".join(lines)


def format_markets_list(market_ids: List[str], max_markets: int = 10) -> str:
    """
    Format the list of tracked markets.
    
    Args:
        market_ids: Tracked market IDs
        max_markets: Market limit shown in the header
        
    Returns:
        Formatted markets list
    """
    if not market_ids:
        return "You're not tracking any markets yet."
    
    lines = [f"*Tracked Markets* ({len(market_ids)}/{max_markets})", ""]
    lines.extend(f"{i}. Market #{market_id}" for i, market_id in enumerate(market_ids, start=1))
    return "\n".join(lines)
