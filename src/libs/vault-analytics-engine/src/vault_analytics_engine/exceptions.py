# src/libs/vault-analytics-engine/src/vault_analytics_engine/exceptions.py

class VaultAnalyticsError(Exception):
    """Base exception for all vault analytics errors."""
    def __init__(self, message="An unspecified error occurred in the vault analytics engine."):
        self.message = message
        super().__init__(self.message)


class PriceUnavailableError(VaultAnalyticsError):
    """Raised by a price oracle when no USD rate can be resolved for an asset."""
    def __init__(self, message="No USD rate is available for the requested asset."):
        self.message = message
        super().__init__(self.message)


class VaultNotFoundError(VaultAnalyticsError):
    """Raised when a named vault does not exist in the ledger."""
    def __init__(self, message="The requested vault was not found."):
        self.message = message
        super().__init__(self.message)
