"""Reference backtest report and comparison tables shown on the statistics page.

The figures are illustrative reference data, not the output of a live
backtest.  Callers should surface them as synthetic.
"""

from app.backtest.stats import calculate_stats

REFERENCE_TRADES: list[dict] = [
    {"date": "2024-01-03", "type": "Long", "entry": 46950, "exit": 47500, "return": 1.17, "duration": "2d 14h"},
    {"date": "2024-01-08", "type": "Short", "entry": 47100, "exit": 46500, "return": 1.27, "duration": "1d 8h"},
    {"date": "2024-01-12", "type": "Long", "entry": 46600, "exit": 47200, "return": 1.29, "duration": "3d 2h"},
    {"date": "2024-01-17", "type": "Short", "entry": 47300, "exit": 46800, "return": 1.06, "duration": "2d 6h"},
    {"date": "2024-01-22", "type": "Long", "entry": 46900, "exit": 47400, "return": 1.07, "duration": "1d 18h"},
    {"date": "2024-01-26", "type": "Short", "entry": 47000, "exit": 46400, "return": 1.28, "duration": "3d 10h"},
    {"date": "2024-01-31", "type": "Long", "entry": 46500, "exit": 47100, "return": 1.29, "duration": "2d 4h"},
    {"date": "2024-02-05", "type": "Short", "entry": 47200, "exit": 46600, "return": 1.27, "duration": "1d 12h"},
    {"date": "2024-02-09", "type": "Long", "entry": 46700, "exit": 47300, "return": 1.29, "duration": "3d 8h"},
    {"date": "2024-02-14", "type": "Short", "entry": 47400, "exit": 46900, "return": 1.05, "duration": "2d 16h"},
]

STRATEGY_COMPARISON: list[dict] = [
    {"name": "Moving Average Crossover", "winRate": 62.5, "profitFactor": 1.8, "maxDrawdown": 8.2, "sharpe": 1.25, "return": 15.7, "trades": 48},
    {"name": "RSI Following", "winRate": 58.2, "profitFactor": 1.65, "maxDrawdown": 10.5, "sharpe": 1.35, "return": 18.3, "trades": 42},
    {"name": "Bollinger Bands Following", "winRate": 65.0, "profitFactor": 1.9, "maxDrawdown": 7.5, "sharpe": 1.15, "return": 12.8, "trades": 55},
    {"name": "MACD Following", "winRate": 60.8, "profitFactor": 1.75, "maxDrawdown": 9.0, "sharpe": 1.2, "return": 14.2, "trades": 50},
    {"name": "Support/Resistance", "winRate": 59.5, "profitFactor": 1.7, "maxDrawdown": 8.8, "sharpe": 1.3, "return": 16.5, "trades": 45},
]

TIMEFRAME_BASELINES: dict[str, dict] = {
    "5m": {"winRate": 50, "profitFactor": 1.1, "avgTrades": 25, "avgReturn": 0.7},
    "15m": {"winRate": 55, "profitFactor": 1.3, "avgTrades": 15, "avgReturn": 1.0},
    "30m": {"winRate": 60, "profitFactor": 1.6, "avgTrades": 10, "avgReturn": 1.5},
    "1h": {"winRate": 58, "profitFactor": 1.5, "avgTrades": 7, "avgReturn": 1.8},
    "4h": {"winRate": 65, "profitFactor": 1.9, "avgTrades": 3, "avgReturn": 2.8},
    "1d": {"winRate": 70, "profitFactor": 2.2, "avgTrades": 1, "avgReturn": 4.0},
}

# Profit factor is scaled onto the win-rate axis for charting
_CHART_PROFIT_FACTOR_SCALE = 20


def build_backtest_report(
    strategy: str = "Support/Resistance",
    timeframe: str = "4h",
    period: str = "3m",
    symbol: str = "BTCUSDT",
) -> dict:
    """Reference trade log with its summary statistics."""
    longs = [t for t in REFERENCE_TRADES if t["type"] == "Long"]
    shorts = [t for t in REFERENCE_TRADES if t["type"] == "Short"]
    return {
        "strategy": strategy,
        "timeframe": timeframe,
        "period": period,
        "symbol": symbol,
        "summary": calculate_stats(REFERENCE_TRADES),
        "long": calculate_stats(longs),
        "short": calculate_stats(shorts),
        "trades": [dict(t) for t in REFERENCE_TRADES],
    }


def compare_strategies() -> list[dict]:
    """Strategy comparison rows, best return first."""
    return sorted((dict(row) for row in STRATEGY_COMPARISON), key=lambda r: r["return"], reverse=True)


def timeframe_performance() -> dict:
    """Per-timeframe baseline table plus chart-ready series."""
    rows = [{"timeframe": tf, **values} for tf, values in TIMEFRAME_BASELINES.items()]
    chart = [
        {
            "name": row["timeframe"],
            "winRate": row["winRate"],
            "profitFactor": round(row["profitFactor"] * _CHART_PROFIT_FACTOR_SCALE, 2),
        }
        for row in rows
    ]
    return {"timeframeData": rows, "chartData": chart}
