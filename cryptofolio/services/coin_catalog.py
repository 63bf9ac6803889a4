"""Static coin lookup data: popular coins and sample market statistics.

Coin ids follow the CoinGecko vocabulary (``bitcoin``, ``avalanche-2``) so
tracked coins line up with the price-data collaborator.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from cryptofolio.core.errors import ValidationError

COIN_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")

POPULAR_COINS: List[Dict[str, str]] = [
    {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC"},
    {"id": "ethereum", "name": "Ethereum", "symbol": "ETH"},
    {"id": "cardano", "name": "Cardano", "symbol": "ADA"},
    {"id": "ripple", "name": "XRP", "symbol": "XRP"},
    {"id": "binancecoin", "name": "BNB", "symbol": "BNB"},
    {"id": "solana", "name": "Solana", "symbol": "SOL"},
    {"id": "polkadot", "name": "Polkadot", "symbol": "DOT"},
    {"id": "dogecoin", "name": "Dogecoin", "symbol": "DOGE"},
    {"id": "avalanche-2", "name": "Avalanche", "symbol": "AVAX"},
    {"id": "chainlink", "name": "Chainlink", "symbol": "LINK"},
    {"id": "polygon", "name": "Polygon", "symbol": "MATIC"},
    {"id": "shiba-inu", "name": "Shiba Inu", "symbol": "SHIB"},
    {"id": "litecoin", "name": "Litecoin", "symbol": "LTC"},
    {"id": "ethereum-classic", "name": "Ethereum Classic", "symbol": "ETC"},
    {"id": "stellar", "name": "Stellar", "symbol": "XLM"},
    {"id": "cosmos", "name": "Cosmos", "symbol": "ATOM"},
    {"id": "algorand", "name": "Algorand", "symbol": "ALGO"},
    {"id": "tron", "name": "TRON", "symbol": "TRX"},
    {"id": "near", "name": "NEAR Protocol", "symbol": "NEAR"},
    {"id": "uniswap", "name": "Uniswap", "symbol": "UNI"},
]

_COINS_BY_ID = {coin["id"]: coin for coin in POPULAR_COINS}

# Display-only sample figures; not a price feed
MARKET_STATS: Dict[str, Dict[str, object]] = {
    "bitcoin": {
        "name": "Bitcoin",
        "market_cap": "$1.2T",
        "market_cap_change": 2.4,
        "volume": "$28.5B",
        "volume_change": 5.1,
        "dominance": "42.1%",
        "dominance_change": -0.8,
    },
    "ethereum": {
        "name": "Ethereum",
        "market_cap": "$421.8B",
        "market_cap_change": 3.2,
        "volume": "$15.2B",
        "volume_change": 7.3,
        "dominance": "18.2%",
        "dominance_change": 0.5,
    },
    "solana": {
        "name": "Solana",
        "market_cap": "$58.9B",
        "market_cap_change": 8.7,
        "volume": "$3.1B",
        "volume_change": 12.4,
        "dominance": "2.8%",
        "dominance_change": 1.2,
    },
    "cardano": {
        "name": "Cardano",
        "market_cap": "$22.1B",
        "market_cap_change": -1.3,
        "volume": "$1.8B",
        "volume_change": 4.2,
        "dominance": "1.1%",
        "dominance_change": -0.2,
    },
}

DEFAULT_STATS_COIN = "bitcoin"


def coin_name(coin_id: str) -> str:
    """Display name for a coin id, falling back to a title-cased id."""
    coin = _COINS_BY_ID.get(coin_id)
    if coin:
        return coin["name"]
    return coin_id.replace("-", " ").title()


def default_coin_pairs(coin_ids: Iterable[str]) -> List[Tuple[str, str]]:
    """(coin_id, coin_name) pairs for seeding tracked coins."""
    return [(cid, coin_name(cid)) for cid in coin_ids]


def search_coins(query: str = "", exclude: Iterable[str] = ()) -> List[Dict[str, str]]:
    """Filter popular coins by name or id substring, skipping excluded ids."""
    q = (query or "").strip().lower()
    excluded = set(exclude)
    return [
        coin for coin in POPULAR_COINS
        if coin["id"] not in excluded
        and (not q or q in coin["name"].lower() or q in coin["id"])
    ]


def market_stats(coin_id: Optional[str]) -> Dict[str, object]:
    """Sample stats for a coin; unknown ids fall back to bitcoin."""
    key = coin_id if coin_id in MARKET_STATS else DEFAULT_STATS_COIN
    return {"coin_id": key, **MARKET_STATS[key]}


def validate_custom_coin(coin_id: Optional[str], coin_name_input: Optional[str]) -> Tuple[str, str]:
    """Normalize a user-supplied coin.

    Raises:
        ValidationError: when either field is blank or the id is not a
            CoinGecko-style slug.
    """
    cid = (coin_id or "").strip().lower()
    name = (coin_name_input or "").strip()
    if not cid or not name:
        raise ValidationError("Please provide both coin ID and name.")
    if not COIN_ID_PATTERN.match(cid):
        raise ValidationError(
            "Coin ID must be a CoinGecko id (lowercase letters, digits and dashes).",
            details={"coin_id": cid},
        )
    return cid, name[:100]
