class ProviderUnavailableError(Exception):
    """A price provider could not answer (network, parse or missing data)."""


class PortfolioNotFoundError(LookupError):
    def __init__(self, portfolio_id: int):
        super().__init__(f"Portfolio not found with ID: {portfolio_id}")
        self.portfolio_id = portfolio_id
