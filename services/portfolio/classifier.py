"""
Position → asset class classification.

classify() walks CLASSIFIER_STRATEGIES in order and the first strategy that
returns a match wins:

    option            options are grouped under the option class, tagged with their underlying
    symbol            curated symbol sets, in the taxonomy's rule order
    description       case-insensitive keyword heuristics
    instrument_type   e.g. mutual funds → non-tech equities
    default           taxonomy default class

A second pass (sub_classify) picks the sub-asset class inside the assigned
parent. Everything here is a pure function of its inputs and the taxonomy.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from schemas.portfolio import Classification
from schemas.taxonomy import Taxonomy
from services.portfolio.taxonomy import get_default_taxonomy

_OPTION_SUFFIX = re.compile(r"\d{6}[CP]\d+$")
_AFTER_SPACE = re.compile(r"\s.*$")


@dataclass(frozen=True)
class _Query:
    symbol: str
    instrument_type: str
    description: str


@dataclass(frozen=True)
class _Match:
    asset_class_id: str
    sub_category: Optional[str] = None
    underlying_class_id: Optional[str] = None


Strategy = Callable[[_Query, Taxonomy], Optional[_Match]]


def option_underlying(symbol: str) -> str:
    """'AAPL 250117C00150000' / 'AAPL250117C00150000' → 'AAPL'."""
    sym = _AFTER_SPACE.sub("", symbol.strip().upper())
    return _OPTION_SUFFIX.sub("", sym)


def _by_option(q: _Query, tx: Taxonomy) -> Optional[_Match]:
    if q.instrument_type not in tx.option_instrument_types:
        return None
    underlying = option_underlying(q.symbol)
    if not underlying:
        return _Match(tx.option_class)
    # Every option lands in the option class; the underlying's own class is kept alongside.
    inner = _resolve(_Query(underlying, "EQUITY", ""), tx, _NON_OPTION_STRATEGIES)
    return _Match(
        tx.option_class,
        sub_category=f"{underlying} Option",
        underlying_class_id=inner.asset_class_id,
    )


def _by_symbol(q: _Query, tx: Taxonomy) -> Optional[_Match]:
    for rule in tx.symbol_rules:
        if tx.in_sets(q.symbol, rule.symbol_sets):
            return _Match(rule.asset_class, rule.sub_category)
    return None


def _by_description(q: _Query, tx: Taxonomy) -> Optional[_Match]:
    if not q.description:
        return None
    for rule in tx.description_rules:
        if any(kw in q.description for kw in rule.keywords):
            return _Match(rule.asset_class, rule.sub_category)
    return None


def _by_instrument_type(q: _Query, tx: Taxonomy) -> Optional[_Match]:
    for rule in tx.instrument_type_rules:
        if q.instrument_type in rule.instrument_types:
            return _Match(rule.asset_class)
    return None


def _by_default(q: _Query, tx: Taxonomy) -> Optional[_Match]:
    return _Match(tx.default_class)


CLASSIFIER_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("option", _by_option),
    ("symbol", _by_symbol),
    ("description", _by_description),
    ("instrument_type", _by_instrument_type),
    ("default", _by_default),
)

_NON_OPTION_STRATEGIES = tuple(s for s in CLASSIFIER_STRATEGIES if s[0] != "option")


def _resolve(q: _Query, tx: Taxonomy, strategies) -> _Match:
    for _name, strategy in strategies:
        match = strategy(q, tx)
        if match is not None:
            return match
    return _Match(tx.default_class)


def _query(symbol: str, instrument_type: Optional[str], description: Optional[str]) -> _Query:
    return _Query(
        symbol=(symbol or "").strip().upper(),
        instrument_type=(instrument_type or "").strip().upper(),
        description=(description or "").upper(),
    )


def matching_strategy(
    symbol: str,
    instrument_type: Optional[str],
    description: Optional[str] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> str:
    """Name of the strategy that decides the class; handy when debugging a surprising result."""
    tx = taxonomy or get_default_taxonomy()
    q = _query(symbol, instrument_type, description)
    for name, strategy in CLASSIFIER_STRATEGIES:
        if strategy(q, tx) is not None:
            return name
    return "default"


def sub_classify(
    asset_class_id: str,
    symbol: str,
    instrument_type: Optional[str],
    description: Optional[str] = None,
    sub_category: Optional[str] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> Optional[str]:
    tx = taxonomy or get_default_taxonomy()
    q = _query(symbol, instrument_type, description)
    for rule in tx.sub_class_rules:
        if rule.parent != asset_class_id:
            continue
        checks = []
        if rule.symbol_sets:
            checks.append(tx.in_sets(q.symbol, rule.symbol_sets))
        if rule.instrument_types:
            checks.append(q.instrument_type in rule.instrument_types)
        if rule.description_keywords:
            checks.append(any(kw in q.description for kw in rule.description_keywords))
        if rule.symbol_contains:
            # TODO: parse the OCC root instead; any 'P' in the symbol currently counts as a put
            checks.append(any(part in q.symbol for part in rule.symbol_contains))
        if rule.sub_categories:
            checks.append(sub_category in rule.sub_categories)
        if checks and all(checks):
            return rule.sub_class
    return tx.default_sub_classes.get(asset_class_id)


def classify(
    symbol: str,
    instrument_type: Optional[str],
    description: Optional[str] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> Classification:
    tx = taxonomy or get_default_taxonomy()
    q = _query(symbol, instrument_type, description)
    match = _resolve(q, tx, CLASSIFIER_STRATEGIES)
    sub_class_id = sub_classify(
        match.asset_class_id,
        symbol,
        instrument_type,
        description,
        sub_category=match.sub_category,
        taxonomy=tx,
    )
    return Classification(
        asset_class_id=match.asset_class_id,
        sub_class_id=sub_class_id,
        sub_category=match.sub_category,
        underlying_class_id=match.underlying_class_id,
    )


# ─── Display categories (positions table grouping) ──────────────────

DISPLAY_CATEGORIES = (
    ("equity", "Equity"),
    ("etf", "ETF"),
    ("closed_end", "Closed End"),
    ("options", "Options"),
    ("mutual_fund", "Mutual Fund"),
    ("cash", "Cash"),
    ("fixed_income", "Fixed Income"),
    ("other", "Other"),
)

_ASSET_TYPE_TO_DISPLAY = {
    "EQUITY": "equity",
    "ETF": "etf",
    "OPTION": "options",
    "MUTUAL_FUND": "mutual_fund",
    "CASH_EQUIVALENT": "cash",
    "FIXED_INCOME": "fixed_income",
}

# closed-end funds are reported with asset type ETF
_CLOSED_END_KEYWORDS = ("CLOSED END", "CLOSED-END", "CEF")


def display_category(asset_type: Optional[str], description: Optional[str] = None) -> str:
    t = (asset_type or "").strip().upper()
    if t == "ETF" and description:
        upper = description.upper()
        if any(kw in upper for kw in _CLOSED_END_KEYWORDS):
            return "closed_end"
    return _ASSET_TYPE_TO_DISPLAY.get(t, "other")


def display_category_label(category_id: str) -> str:
    return dict(DISPLAY_CATEGORIES).get(category_id, "Other")
