import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import build_engine, get_db, init_db
from main import app
from models.account import Account


class TestPortfolioRoutes(unittest.TestCase):
    def setUp(self):
        self.engine = build_engine(
            "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
        init_db(bind=self.engine)
        Session = sessionmaker(bind=self.engine, autoflush=False)

        with Session() as db:
            db.add(Account(id="brk", user_id="u1", account_category="brokerage"))
            db.commit()

        def _override_get_db():
            db = Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.engine.dispose()

    def test_taxonomy(self):
        res = self.client.get("/api/portfolio/taxonomy")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body[0]["id"], "tech_equities")
        self.assertEqual(body[-1]["id"], "cash")

    def test_taxonomy_sub_classes(self):
        res = self.client.get("/api/portfolio/taxonomy/crypto/sub-classes")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            [s["id"] for s in res.json()],
            ["bitcoin_etf", "ethereum_etf", "crypto_stocks", "other_crypto"],
        )

        res = self.client.get("/api/portfolio/taxonomy/private_equity/sub-classes")
        self.assertEqual(res.status_code, 404)

    def test_snapshot_then_portfolio(self):
        res = self.client.post("/api/accounts/brk/snapshot", json={
            "user_id": "u1",
            "provenance": "upload:statement-1",
            "positions": [
                {"symbol": "AAPL", "quantity": 10, "market_value": 1500.0},
                {"symbol": "aapl", "quantity": 5, "market_value": 750.0},
                {"symbol": "IBIT", "asset_type": "ETF", "quantity": 20, "market_value": 750.0},
            ],
            "balance": {"cash_balance": 1000.0, "liquidation_value": 4000.0},
        })
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["reconciliation"]["created"], 2)
        self.assertEqual(body["account"]["holdings_count"], 2)
        self.assertEqual(body["account"]["total_market_value"], 4000.0)

        res = self.client.get("/api/portfolio/u1")
        self.assertEqual(res.status_code, 200)
        portfolio = res.json()
        self.assertEqual(portfolio["total_market_value"], 4000.0)
        self.assertEqual(
            [c["asset_class"]["id"] for c in portfolio["asset_classes"]],
            ["tech_equities", "crypto", "cash"],
        )
        self.assertEqual(portfolio["asset_classes"][0]["positions"][0]["quantity"], 15.0)

    def test_account_holdings_hide_closed_rows_by_default(self):
        snapshot = {
            "user_id": "u1",
            "provenance": "upload:statement-1",
            "positions": [
                {"symbol": "AAPL", "quantity": 10, "market_value": 1500.0},
                {"symbol": "KO", "quantity": 5, "market_value": 300.0},
            ],
        }
        self.client.post("/api/accounts/brk/snapshot", json=snapshot)
        snapshot["provenance"] = "upload:statement-2"
        snapshot["positions"] = snapshot["positions"][:1]
        self.client.post("/api/accounts/brk/snapshot", json=snapshot)

        res = self.client.get("/api/accounts/brk/holdings")
        self.assertEqual(res.status_code, 200)
        self.assertEqual([h["symbol"] for h in res.json()], ["AAPL"])

        res = self.client.get("/api/accounts/brk/holdings", params={"include_closed": "true"})
        rows = {h["symbol"]: h for h in res.json()}
        self.assertEqual(rows["KO"]["quantity"], 0.0)
        self.assertEqual(rows["KO"]["last_updated_from"], "upload:statement-2")

        self.assertEqual(self.client.get("/api/accounts/missing/holdings").status_code, 404)

    def test_snapshot_for_unknown_account(self):
        res = self.client.post("/api/accounts/missing/snapshot", json={
            "user_id": "u1",
            "provenance": "upload:statement-1",
            "positions": [],
        })
        self.assertEqual(res.status_code, 404)

    def test_requests_are_logged_by_route_template(self):
        with self.assertLogs("middleware.request_logging", level="INFO") as logs:
            self.client.get("/api/portfolio/secret-user-id")
        line = logs.output[-1]
        self.assertIn("route=/api/portfolio/{user_id}", line)
        self.assertNotIn("secret-user-id", line)

    def test_invalid_body(self):
        res = self.client.post("/api/accounts/brk/snapshot", json={"user_id": "u1"})
        self.assertEqual(res.status_code, 422)


if __name__ == "__main__":
    unittest.main()
