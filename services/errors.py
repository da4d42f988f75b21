# services/errors.py
class PortfolioError(Exception):
    """Base class for errors raised by the holdings/portfolio services."""


class TaxonomyError(PortfolioError):
    """Reference data could not be loaded or references unknown ids."""


class AccountNotFoundError(PortfolioError):
    def __init__(self, account_id: str):
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id
