"""Stock-signal notices broadcast to registered users."""

from __future__ import annotations

from typing import Protocol


class SignalFields(Protocol):
    ticker: str
    last_date: str
    last_close: int
    entry_price: int
    entry_gap_percent: float
    stop: float
    target: float
    risk_reward: float
    backtest_win_rate: float
    total_trades: int
    confluence_score: float
    confluence_hits: str
    overall_sentiment: str
    confidence_score: float
    sentiment_score: float
    analysis_summary: str


def format_signal_message(signal: SignalFields) -> str:
    """Render a signal as the WhatsApp text sent to each user.

    Optional sections (confluence hits, sentiment, summary) are left out
    when empty.
    """
    lines = [
        f"SIGNAL: {signal.ticker.upper()}",
        f"Date: {signal.last_date}",
    ]
    if signal.last_close:
        lines.append(f"Last close: {signal.last_close}")
    lines += [
        f"Entry: {signal.entry_price} (gap {signal.entry_gap_percent:.2f}%)",
        f"Stop: {signal.stop:g} | Target: {signal.target:g}",
        f"Risk/Reward: {signal.risk_reward:.2f}",
        f"Backtest win rate: {signal.backtest_win_rate:.1f}% over {signal.total_trades} trades",
    ]

    confluence = f"Confluence: {signal.confluence_score:g}"
    if signal.confluence_hits:
        confluence += f" ({signal.confluence_hits})"
    lines.append(confluence)

    if signal.overall_sentiment:
        lines.append(
            f"Sentiment: {signal.overall_sentiment} "
            f"(confidence {signal.confidence_score:.2f}, score {signal.sentiment_score:.2f})"
        )

    if signal.analysis_summary:
        lines += ["", signal.analysis_summary]

    return "\n".join(lines)
