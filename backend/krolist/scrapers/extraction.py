"""Pattern-based price extraction from static page content.

Each strategy is a pure function ``content -> Optional[Decimal]``. Strategies
are grouped per store key and tried in order; the first finite positive
value wins. When no store strategy succeeds, the store-agnostic fallbacks
run. Values that parse to zero or below count as a miss and the cascade
moves on.
"""

import json
import re
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional, Tuple

import structlog
from bs4 import BeautifulSoup

from krolist.scrapers.utils.normalizer import PriceNormalizer

logger = structlog.get_logger(__name__)

Strategy = Callable[[str], Optional[Decimal]]


def regex_strategy(pattern: str, flags: int = re.IGNORECASE | re.DOTALL) -> Strategy:
    """Build a strategy that parses capture group 1 of every match of ``pattern``.

    Every match is tried in document order so a leading ``0.00`` placeholder
    does not hide the real price further down.
    """
    compiled = re.compile(pattern, flags)

    def _extract(content: str) -> Optional[Decimal]:
        for match in compiled.finditer(content):
            value = PriceNormalizer.clean_price_string(match.group(1))
            if PriceNormalizer.is_valid_price(value):
                return value
        return None

    _extract.__name__ = f"regex<{pattern[:40]}>"
    return _extract


# ---------------------------------------------------------------------------
# Amazon
# ---------------------------------------------------------------------------

amazon_offscreen_price = regex_strategy(
    r'<span[^>]*class="[^"]*\ba-offscreen\b[^"]*"[^>]*>([^<]+)</span>'
)
amazon_visible_price_input = regex_strategy(
    r'<input[^>]*name="[^"]*customerVisiblePrice[^"]*\[amount\]"[^>]*value="([^"]+)"'
)
amazon_price_to_pay = regex_strategy(r'"priceAmount"\s*:\s*"?([\d.,]+)')


def amazon_whole_and_fraction(content: str) -> Optional[Decimal]:
    """Split rendering: ``<span class="a-price-whole">1,299.</span><span class="a-price-fraction">00</span>``."""
    match = re.search(
        r'class="a-price-whole"[^>]*>([\d,٬]+).{0,120}?class="a-price-fraction"[^>]*>(\d+)<',
        content,
        re.IGNORECASE | re.DOTALL,
    )
    if not match:
        return None
    value = PriceNormalizer.clean_price_string(f"{match.group(1)}.{match.group(2)}")
    return value if PriceNormalizer.is_valid_price(value) else None


amazon_priceblock = regex_strategy(
    r'id="(?:priceblock_ourprice|priceblock_dealprice|corePrice_feature_div)"[^>]*>\s*(?:<[^>]+>\s*)*([^<]+)<'
)

# ---------------------------------------------------------------------------
# Noon
# ---------------------------------------------------------------------------

noon_sale_price = regex_strategy(r'"sale_price"\s*:\s*"?([\d.,]+)')
noon_json_price = regex_strategy(r'["\']price["\']\s*:\s*"?([\d.,]+)')
noon_price_now = regex_strategy(r'data-qa="div-price-now"[^>]*>\s*(?:<[^>]+>\s*)*([^<]*\d[^<]*)<')

# ---------------------------------------------------------------------------
# Fashion / home stores
# ---------------------------------------------------------------------------

shein_sale_price = regex_strategy(r'"salePrice"\s*:\s*\{[^}]*?"amount"\s*:\s*"([\d.,]+)"')
shein_retail_price = regex_strategy(r'"retailPrice"\s*:\s*\{[^}]*?"amount"\s*:\s*"([\d.,]+)"')
namshi_sale_price = regex_strategy(r'"salePrice"\s*:\s*"?([\d.,]+)')
trendyol_selling_price = regex_strategy(r'"sellingPrice"\s*:\s*\{?[^}]*?"value"\s*:\s*([\d.,]+)')
trendyol_discounted_price = regex_strategy(r'"discountedPrice"\s*:\s*\{?[^}]*?"value"\s*:\s*([\d.,]+)')
ikea_price_integer = regex_strategy(r'class="[^"]*pip-price__integer[^"]*"[^>]*>([\d,.]+)<')
abyat_special_price = regex_strategy(r'data-price-type="finalPrice"[^>]*data-price-amount="([\d.]+)"')
asos_current_price = regex_strategy(r'"current"\s*:\s*\{[^}]*?"value"\s*:\s*([\d.]+)')

# ---------------------------------------------------------------------------
# Store-agnostic fallbacks
# ---------------------------------------------------------------------------

_META_PRICE_SELECTORS = (
    {"itemprop": "price"},
    {"property": "product:price:amount"},
    {"property": "og:price:amount"},
    {"name": "twitter:data1"},
)


def meta_price(content: str) -> Optional[Decimal]:
    """Structured price fields: microdata ``itemprop=price`` and OpenGraph meta tags."""
    soup = BeautifulSoup(content, "html.parser")
    for attrs in _META_PRICE_SELECTORS:
        for tag in soup.find_all(attrs=attrs):
            raw = tag.get("content") or tag.get_text(" ", strip=True)
            value = PriceNormalizer.clean_price_string(raw)
            if PriceNormalizer.is_valid_price(value):
                return value
    return None


def _find_offer_price(node) -> Optional[Decimal]:
    """Depth-first search for ``offers.price`` / ``offers.lowPrice`` in JSON-LD."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            offers = current.get("offers")
            candidates = offers if isinstance(offers, list) else [offers]
            for offer in candidates:
                if isinstance(offer, dict):
                    for key in ("price", "lowPrice"):
                        value = PriceNormalizer.clean_price_string(offer.get(key))
                        if PriceNormalizer.is_valid_price(value):
                            return value
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)
    return None


def json_ld_offer_price(content: str) -> Optional[Decimal]:
    """Price from ``<script type="application/ld+json">`` Product offers."""
    soup = BeautifulSoup(content, "html.parser")
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (TypeError, ValueError):
            continue
        value = _find_offer_price(data)
        if value is not None:
            return value
    return None


generic_json_price = regex_strategy(r'"price"\s*:\s*"?([\d][\d.,]*)')
generic_price_class = regex_strategy(
    r'class="[^"]*\bprice\b[^"]*"[^>]*>\s*(?:<[^>]+>\s*)*([^<]*\d[^<]*)<'
)


STORE_STRATEGIES: Dict[str, Tuple[Strategy, ...]] = {
    "amazon": (
        amazon_offscreen_price,
        amazon_whole_and_fraction,
        amazon_visible_price_input,
        amazon_price_to_pay,
        amazon_priceblock,
    ),
    "noon": (
        noon_sale_price,
        noon_price_now,
        noon_json_price,
    ),
    "shein": (shein_sale_price, shein_retail_price),
    "namshi": (namshi_sale_price,),
    "trendyol": (trendyol_discounted_price, trendyol_selling_price),
    "ikea": (ikea_price_integer,),
    "abyat": (abyat_special_price,),
    "asos": (asos_current_price,),
}

FALLBACK_STRATEGIES: Tuple[Strategy, ...] = (
    meta_price,
    json_ld_offer_price,
    generic_json_price,
    generic_price_class,
)


class PriceExtractionEngine:
    """Runs the per-store strategy cascade followed by the fallbacks."""

    def __init__(
        self,
        store_strategies: Optional[Dict[str, Iterable[Strategy]]] = None,
        fallback_strategies: Optional[Iterable[Strategy]] = None,
    ):
        source = STORE_STRATEGIES if store_strategies is None else store_strategies
        self.store_strategies = {key.lower(): tuple(value) for key, value in source.items()}
        self.fallback_strategies = tuple(
            FALLBACK_STRATEGIES if fallback_strategies is None else fallback_strategies
        )
        self.logger = logger.bind(service="price_extraction")

    def strategies_for(self, store_key: Optional[str]) -> Tuple[Strategy, ...]:
        """Ordered strategies for a store, fallbacks last."""
        store = (store_key or "").strip().lower()
        return self.store_strategies.get(store, ()) + self.fallback_strategies

    def extract_price(self, raw_content: str, store_key: Optional[str]) -> Optional[Decimal]:
        """Recover a price from raw page content.

        Args:
            raw_content: Static HTML or JSON text
            store_key: Store key such as ``amazon`` or ``noon``

        Returns:
            Finite positive Decimal price, or None when nothing matched
        """
        if not raw_content:
            return None

        for strategy in self.strategies_for(store_key):
            try:
                value = strategy(raw_content)
            except Exception as e:
                self.logger.warning(
                    "extraction_strategy_error",
                    strategy=getattr(strategy, "__name__", repr(strategy)),
                    error=str(e),
                )
                continue

            if PriceNormalizer.is_valid_price(value):
                self.logger.debug(
                    "price_extracted",
                    store=store_key,
                    strategy=getattr(strategy, "__name__", repr(strategy)),
                    price=str(value),
                )
                return value

        self.logger.debug("price_not_found", store=store_key)
        return None


_default_engine = PriceExtractionEngine()


def extract_price(raw_content: str, store_key: Optional[str]) -> Optional[Decimal]:
    """Module-level shortcut using the default strategy tables."""
    return _default_engine.extract_price(raw_content, store_key)
