"""
Asset-class taxonomy models.

Plain, immutable reference data: asset class definitions, sub-asset classes,
curated symbol sets and the ordered rule tables the classifier walks. Loading
from disk lives in services/portfolio/taxonomy.py.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class AssetClassDef(_Frozen):
    id: str
    label: str
    color: str
    chart_color: str
    order: int


class SubAssetClassDef(_Frozen):
    id: str
    parent: str
    label: str
    order: int


class SymbolRule(_Frozen):
    symbol_sets: Tuple[str, ...]
    asset_class: str
    sub_category: Optional[str] = None


class DescriptionRule(_Frozen):
    keywords: Tuple[str, ...]
    asset_class: str
    sub_category: Optional[str] = None

    @field_validator("keywords")
    @classmethod
    def _upper(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(k.upper() for k in v)


class InstrumentTypeRule(_Frozen):
    instrument_types: Tuple[str, ...]
    asset_class: str


class SubClassRule(_Frozen):
    """
    A rule matches when every criterion it names holds. Criteria left empty
    are ignored; a rule naming no criterion never matches.
    """
    parent: str
    sub_class: str
    symbol_sets: Tuple[str, ...] = ()
    instrument_types: Tuple[str, ...] = ()
    description_keywords: Tuple[str, ...] = ()
    symbol_contains: Tuple[str, ...] = ()
    sub_categories: Tuple[str, ...] = ()

    @field_validator("description_keywords", "symbol_contains")
    @classmethod
    def _upper(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(k.upper() for k in v)


class Taxonomy(_Frozen):
    version: str
    cash_class: str
    debt_class: str
    option_class: str
    default_class: str
    option_instrument_types: Tuple[str, ...]
    liability_categories: frozenset[str]
    asset_classes: Tuple[AssetClassDef, ...]
    sub_asset_classes: Tuple[SubAssetClassDef, ...] = ()
    symbol_sets: Dict[str, frozenset[str]] = Field(default_factory=dict)
    symbol_rules: Tuple[SymbolRule, ...] = ()
    description_rules: Tuple[DescriptionRule, ...] = ()
    instrument_type_rules: Tuple[InstrumentTypeRule, ...] = ()
    sub_class_rules: Tuple[SubClassRule, ...] = ()
    default_sub_classes: Dict[str, str] = Field(default_factory=dict)

    @field_validator("symbol_sets")
    @classmethod
    def _upper_symbols(cls, v: Dict[str, frozenset[str]]) -> Dict[str, frozenset[str]]:
        return {name: frozenset(s.strip().upper() for s in syms) for name, syms in v.items()}

    @model_validator(mode="after")
    def _check_references(self) -> "Taxonomy":
        class_ids = {ac.id for ac in self.asset_classes}
        if len(class_ids) != len(self.asset_classes):
            raise ValueError("duplicate asset class id")
        for cid in (self.cash_class, self.debt_class, self.option_class, self.default_class):
            if cid not in class_ids:
                raise ValueError(f"unknown asset class {cid!r}")

        sub_ids = {}
        for sub in self.sub_asset_classes:
            if sub.parent not in class_ids:
                raise ValueError(f"sub class {sub.id!r} has unknown parent {sub.parent!r}")
            sub_ids[sub.id] = sub.parent

        for rule in (*self.symbol_rules, *self.description_rules, *self.instrument_type_rules):
            if rule.asset_class not in class_ids:
                raise ValueError(f"rule references unknown asset class {rule.asset_class!r}")
        for rule in self.symbol_rules:
            for name in rule.symbol_sets:
                if name not in self.symbol_sets:
                    raise ValueError(f"rule references unknown symbol set {name!r}")
        for rule in self.sub_class_rules:
            if sub_ids.get(rule.sub_class) != rule.parent:
                raise ValueError(f"sub class rule {rule.sub_class!r} does not belong to {rule.parent!r}")
            for name in rule.symbol_sets:
                if name not in self.symbol_sets:
                    raise ValueError(f"sub class rule references unknown symbol set {name!r}")
        for parent, sub in self.default_sub_classes.items():
            if sub_ids.get(sub) != parent:
                raise ValueError(f"default sub class {sub!r} does not belong to {parent!r}")
        return self

    # ── lookups ─────────────────────────────────────────────

    def asset_class(self, class_id: str) -> AssetClassDef:
        for ac in self.asset_classes:
            if ac.id == class_id:
                return ac
        raise KeyError(class_id)

    def ordered_asset_classes(self) -> List[AssetClassDef]:
        return sorted(self.asset_classes, key=lambda ac: ac.order)

    def sub_classes_for(self, parent: str) -> List[SubAssetClassDef]:
        return sorted((s for s in self.sub_asset_classes if s.parent == parent), key=lambda s: s.order)

    def in_sets(self, symbol: str, set_names: Tuple[str, ...]) -> bool:
        return any(symbol in self.symbol_sets.get(name, frozenset()) for name in set_names)

    def is_liability(self, account_category: Optional[str]) -> bool:
        return (account_category or "").lower() in self.liability_categories
