# main.py
from fastapi import FastAPI

from config.logging_config import configure_logging
from middleware.request_logging import RequestLoggingMiddleware
from routers.portfolio_routes import router as portfolio_router

configure_logging()

app = FastAPI(title="Portfolio Ledger")

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(portfolio_router)

# db startup
from database import init_db  # noqa: E402

init_db()
