import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from services.portfolio.classifier import (
    CLASSIFIER_STRATEGIES,
    classify,
    display_category,
    display_category_label,
    matching_strategy,
    option_underlying,
    sub_classify,
)
from schemas.taxonomy import Taxonomy


class TestClassify(unittest.TestCase):
    def test_strategy_order_is_fixed(self):
        self.assertEqual(
            [name for name, _ in CLASSIFIER_STRATEGIES],
            ["option", "symbol", "description", "instrument_type", "default"],
        )

    def test_bitcoin_etf_by_symbol(self):
        c = classify("IBIT", "ETF")
        self.assertEqual(c.asset_class_id, "crypto")
        self.assertEqual(c.sub_category, "Bitcoin ETF")
        self.assertEqual(c.sub_class_id, "bitcoin_etf")
        self.assertEqual(matching_strategy("IBIT", "ETF"), "symbol")

    def test_unknown_symbol_falls_back_to_default(self):
        c = classify("ZZZZ_UNKNOWN", "EQUITY")
        self.assertEqual(c.asset_class_id, "non_tech_equities")
        self.assertEqual(c.sub_class_id, "non_tech_individual")
        self.assertIsNone(c.sub_category)
        self.assertEqual(matching_strategy("ZZZZ_UNKNOWN", "EQUITY"), "default")

    def test_symbol_is_normalized(self):
        self.assertEqual(classify(" ibit ", "etf").asset_class_id, "crypto")

    def test_classification_is_deterministic(self):
        first = classify("NVDA", "EQUITY", "NVIDIA CORP")
        second = classify("NVDA", "EQUITY", "NVIDIA CORP")
        self.assertEqual(first, second)

    def test_symbol_sets(self):
        cases = {
            ("VMFXX", "MUTUAL_FUND"): ("cash", "money_market"),
            ("ETHA", "ETF"): ("crypto", "ethereum_etf"),
            ("MSTR", "EQUITY"): ("crypto", "crypto_stocks"),
            ("GLD", "ETF"): ("gold_metals", "physical_gold"),
            ("NEM", "EQUITY"): ("gold_metals", "gold_miners"),
            ("SLV", "ETF"): ("gold_metals", "other_metals"),
            ("VNQ", "ETF"): ("real_estate", "real_estate_funds"),
            ("O", "EQUITY"): ("real_estate", "reits"),
            ("NVDA", "EQUITY"): ("tech_equities", "tech_individual"),
            ("QQQ", "ETF"): ("tech_equities", "tech_etfs"),
            ("FCNTX", "MUTUAL_FUND"): ("tech_equities", "tech_funds"),
            ("SPY", "ETF"): ("non_tech_equities", "broad_market_etfs"),
            ("KO", "EQUITY"): ("non_tech_equities", "non_tech_individual"),
        }
        for (symbol, itype), expected in cases.items():
            with self.subTest(symbol=symbol):
                c = classify(symbol, itype)
                self.assertEqual((c.asset_class_id, c.sub_class_id), expected)

    def test_description_keywords(self):
        c = classify("ZZMM", "MUTUAL_FUND", "Fidelity Government Money Market Fund")
        self.assertEqual(c.asset_class_id, "cash")

        c = classify("ZZGT", "ETF", "iShares Gold Trust")
        self.assertEqual((c.asset_class_id, c.sub_class_id), ("gold_metals", "physical_gold"))

        c = classify("ZZGM", "ETF", "Junior Gold Miners ETF")
        self.assertEqual((c.asset_class_id, c.sub_class_id), ("gold_metals", "gold_miners"))

        c = classify("ZZSW", "ETF", "Global Software Leaders")
        self.assertEqual((c.asset_class_id, c.sub_class_id), ("tech_equities", "tech_etfs"))
        self.assertEqual(matching_strategy("ZZSW", "ETF", "Global Software Leaders"), "description")

    def test_ethereum_rule_runs_before_bitcoin(self):
        c = classify("ZZBE", "ETF", "Bitcoin and Ethereum Fund")
        self.assertEqual(c.asset_class_id, "crypto")
        self.assertEqual(c.sub_category, "Ethereum ETF")
        self.assertEqual(c.sub_class_id, "ethereum_etf")

    def test_mutual_fund_without_hints_is_non_tech_fund(self):
        c = classify("ZZMF", "MUTUAL_FUND", "Vanguard Wellington")
        self.assertEqual((c.asset_class_id, c.sub_class_id), ("non_tech_equities", "non_tech_funds"))
        self.assertEqual(matching_strategy("ZZMF", "MUTUAL_FUND", "Vanguard Wellington"), "instrument_type")

    def test_symbol_beats_description(self):
        c = classify("IBIT", "ETF", "Real Estate Income Fund")
        self.assertEqual(c.asset_class_id, "crypto")


class TestOptions(unittest.TestCase):
    def test_option_underlying(self):
        self.assertEqual(option_underlying("AAPL 250117C00150000"), "AAPL")
        self.assertEqual(option_underlying("TSLA250117P00200000"), "TSLA")
        self.assertEqual(option_underlying("nvda"), "NVDA")

    def test_call_option_on_tech_underlying(self):
        c = classify("TSLA250117C00250000", "OPTION")
        self.assertEqual(c.asset_class_id, "tech_options")
        self.assertEqual(c.sub_category, "TSLA Option")
        self.assertEqual(c.underlying_class_id, "tech_equities")
        self.assertEqual(c.sub_class_id, "tech_calls")
        self.assertEqual(matching_strategy("TSLA250117C00250000", "OPTION"), "option")

    def test_put_option(self):
        c = classify("TSLA250117P00200000", "OPTION")
        self.assertEqual(c.sub_class_id, "tech_puts")

        c = classify("KO 250117C00050000", "OPTION", "KO Jan 17 2025 50 Put")
        self.assertEqual(c.sub_class_id, "tech_puts")

    def test_every_option_lands_in_option_class(self):
        c = classify("KO 250117C00050000", "OPTION")
        self.assertEqual(c.asset_class_id, "tech_options")
        self.assertEqual(c.underlying_class_id, "non_tech_equities")
        self.assertEqual(c.sub_category, "KO Option")


class TestSubClassify(unittest.TestCase):
    def test_falls_back_to_parent_default(self):
        self.assertEqual(sub_classify("crypto", "BTC", "CRYPTO"), "other_crypto")
        self.assertEqual(sub_classify("real_estate", "ZZRE", "EQUITY"), "reits")

    def test_direct_property(self):
        self.assertEqual(sub_classify("real_estate", "HOME", "REAL_ESTATE"), "direct_property")

    def test_parent_without_sub_classes(self):
        self.assertIsNone(sub_classify("debt", "CARD", "CREDIT"))


class TestInjectedTaxonomy(unittest.TestCase):
    def setUp(self):
        self.tx = Taxonomy.model_validate({
            "version": "fixture",
            "cash_class": "cash",
            "debt_class": "debt",
            "option_class": "derivatives",
            "default_class": "other",
            "option_instrument_types": ["OPTION"],
            "liability_categories": ["credit", "loan"],
            "asset_classes": [
                {"id": "growth", "label": "Growth", "color": "green", "chart_color": "#0f0", "order": 1},
                {"id": "derivatives", "label": "Derivatives", "color": "violet", "chart_color": "#f0f", "order": 2},
                {"id": "other", "label": "Other", "color": "gray", "chart_color": "#999", "order": 3},
                {"id": "debt", "label": "Debt", "color": "red", "chart_color": "#f00", "order": 4},
                {"id": "cash", "label": "Cash", "color": "slate", "chart_color": "#555", "order": 5},
            ],
            "symbol_sets": {"growth_names": ["ABC"]},
            "symbol_rules": [{"symbol_sets": ["growth_names"], "asset_class": "growth", "sub_category": "Growth Pick"}],
        })

    def test_uses_the_given_universe(self):
        c = classify("ABC", "EQUITY", taxonomy=self.tx)
        self.assertEqual(c.asset_class_id, "growth")
        self.assertEqual(c.sub_category, "Growth Pick")
        self.assertIsNone(c.sub_class_id)

        self.assertEqual(classify("NVDA", "EQUITY", taxonomy=self.tx).asset_class_id, "other")

    def test_option_class_comes_from_taxonomy(self):
        c = classify("ABC 250117C00010000", "OPTION", taxonomy=self.tx)
        self.assertEqual(c.asset_class_id, "derivatives")
        self.assertEqual(c.underlying_class_id, "growth")


class TestDisplayCategory(unittest.TestCase):
    def test_instrument_types(self):
        self.assertEqual(display_category("EQUITY"), "equity")
        self.assertEqual(display_category("etf", "SPDR S&P 500"), "etf")
        self.assertEqual(display_category("OPTION"), "options")
        self.assertEqual(display_category("MUTUAL_FUND"), "mutual_fund")
        self.assertEqual(display_category("CASH_EQUIVALENT"), "cash")
        self.assertEqual(display_category("FIXED_INCOME"), "fixed_income")
        self.assertEqual(display_category("WARRANT"), "other")
        self.assertEqual(display_category(None), "other")

    def test_closed_end_fund_reported_as_etf(self):
        self.assertEqual(display_category("ETF", "Adams Diversified Closed-End Fund"), "closed_end")
        self.assertEqual(display_category("EQUITY", "Closed End Fund"), "equity")

    def test_labels(self):
        self.assertEqual(display_category_label("closed_end"), "Closed End")
        self.assertEqual(display_category_label("unknown"), "Other")


if __name__ == "__main__":
    unittest.main()
