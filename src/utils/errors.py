"""Error handling utilities."""


class IziBrokerzError(Exception):
    """Base exception for the iziBrokerz backend."""
    pass


class DataStoreError(IziBrokerzError):
    """Supabase operation error."""
    pass


class AssistantError(IziBrokerzError):
    """AI text-completion error."""
    pass


class NotificationError(IziBrokerzError):
    """Push notification delivery error."""
    pass


class LeadPipelineError(IziBrokerzError):
    """Invalid lead status transition or missing lead."""
    pass


class MarketDataError(IziBrokerzError):
    """Invalid market aggregation request."""
    pass
