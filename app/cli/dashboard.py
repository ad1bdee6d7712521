"""CLI dashboard — prints a market snapshot to the console."""

from app.strategy.models import zone_from_dict


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "N/A"


def print_snapshot(snapshot: dict) -> str:
    """Format and print a market snapshot.

    Args:
        snapshot: Dict with ``ticker`` (``Ticker.to_dict()`` plus
            ``synthetic``), ``levels`` (zone dicts) and ``signals``
            (``Signal.to_dict()`` items).

    Returns:
        The formatted string (also printed to stdout).
    """
    ticker = snapshot.get("ticker", {})
    levels = snapshot.get("levels", [])
    signals = snapshot.get("signals", [])

    change = ticker.get("priceChangePercent")
    change_str = f"{change:+.2f}%" if change is not None else "N/A"
    source = ticker.get("source", "unknown")
    if ticker.get("synthetic"):
        source = f"{source} (synthetic)"

    lines = [
        "──────────────── BTC Dashboard ────────────────",
        f"  Symbol:          {ticker.get('symbol', 'N/A')}",
        f"  Price:           {_money(ticker.get('price'))}",
        f"  24h Change:      {change_str}",
        f"  24h High / Low:  {_money(ticker.get('high'))} / {_money(ticker.get('low'))}",
        f"  Source:          {source}",
        "  Levels:",
    ]
    zones = [zone_from_dict(level) for level in levels if isinstance(level, dict)]
    zones = [z for z in zones if z is not None]
    if not zones:
        lines.append("    none")
    for zone in zones:
        lines.append(
            f"    {zone.zone_type:<10} {_money(zone.min_price)} – {_money(zone.max_price)}"
        )
    lines.append("  Signals:")
    if not signals:
        lines.append("    none")
    for sig in signals:
        lines.append(
            f"    {sig.get('timeframe', '?'):<4} {sig.get('signal', '?'):<8} "
            f"strength {sig.get('strength', 0):>3}  SL {_money(sig.get('stopLoss'))}  "
            f"TP {_money(sig.get('takeProfit'))}"
        )
    lines.append("───────────────────────────────────────────────")
    output = "\n".join(lines)
    print(output)
    return output
