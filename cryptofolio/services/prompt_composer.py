"""Portfolio-aware system prompt composition.

Pure string building: no network or storage access. The context block is
deterministic for a given portfolio snapshot and tracked-coin list.
"""
from typing import Dict, Iterable, List, Sequence

from cryptofolio.services.schemas import PortfolioEntry

NO_PORTFOLIO_SENTENCE = "User has not entered any portfolio data yet."
NO_TRACKED_COINS_SENTENCE = "User has not selected specific coins to track."
OFF_TOPIC_REDIRECT = (
    "I'm a cryptocurrency specialist. Please ask me about crypto investments, "
    "market analysis, or your portfolio."
)

SYSTEM_PROMPT_TEMPLATE = """You are a cryptocurrency portfolio advisor and market analyst. You have access to the user's portfolio data and their selected coins for tracking.

{context_block}

IMPORTANT RULES:
1. ONLY answer questions related to cryptocurrency, blockchain, trading, investments, and financial markets
2. If asked about anything else (weather, cooking, general topics, etc.), politely redirect: "{redirect}"
3. If the user has no portfolio data, encourage them to add their investments first for personalized advice

Your role is to:
1. Analyze the user's portfolio performance and provide insights
2. Suggest investment strategies based on their current holdings
3. Provide market analysis and trends for their tracked coins
4. Help with risk management and portfolio diversification
5. Answer questions about cryptocurrency markets and investment strategies
6. Provide education about blockchain technology and crypto fundamentals

Always be helpful, accurate, and provide actionable advice. If you don't have real-time data, make that clear and provide general guidance based on historical trends and market principles. Keep responses concise but informative."""


def format_currency(value: float) -> str:
    return f"${value:.2f}"


def format_quantity(value: float) -> str:
    """Render a token amount without float noise (1.0 -> "1", 0.5 -> "0.5")."""
    text = f"{value:.8f}".rstrip("0").rstrip(".")
    return text or "0"


def format_entry_line(entry: PortfolioEntry) -> str:
    coin_id = entry.coin_id.upper()
    label = f"{entry.coin_name} ({coin_id})" if entry.coin_name else coin_id
    line = (
        f"- {label}: {format_quantity(entry.amount)} tokens at "
        f"{format_currency(entry.avg_buy_price)} average buy price "
        f"(Total invested: {format_currency(entry.total_invested)})"
    )
    if entry.buy_date:
        line += f", bought on {entry.buy_date}"
    return line


def portfolio_section(portfolio: Sequence[PortfolioEntry]) -> str:
    if not portfolio:
        return NO_PORTFOLIO_SENTENCE
    lines = ["User's Portfolio:"]
    lines.extend(format_entry_line(entry) for entry in portfolio)
    return "\n".join(lines)


def tracked_coins_section(tracked_coins: Iterable[str]) -> str:
    coins: List[str] = [c.strip().upper() for c in tracked_coins if c and c.strip()]
    if not coins:
        return NO_TRACKED_COINS_SENTENCE
    return f"User is tracking these coins: {', '.join(coins)}"


def compose_context_block(portfolio: Sequence[PortfolioEntry], tracked_coins: Iterable[str]) -> str:
    """Natural-language summary of the portfolio and tracked coins."""
    return f"{portfolio_section(portfolio)}\n\n{tracked_coins_section(tracked_coins)}"


def build_system_prompt(context_block: str) -> str:
    """Wrap a context block in the advisor persona and domain-scoping rules.

    The scoping is instruction text only; model output is not checked
    against it.
    """
    return SYSTEM_PROMPT_TEMPLATE.format(context_block=context_block, redirect=OFF_TOPIC_REDIRECT)


def snapshot_context(portfolio: Sequence[PortfolioEntry], tracked_coins: Sequence[str]) -> Dict[str, int]:
    """Metadata stored alongside a chat turn."""
    return {"portfolio_entries": len(portfolio), "tracked_coins": len(tracked_coins)}
