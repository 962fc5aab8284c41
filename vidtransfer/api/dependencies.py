"""FastAPI dependency providers."""
from fastapi import Request

from vidtransfer.core.config import Settings
from vidtransfer.core.exceptions import ConfigurationException
from vidtransfer.services.transfer_service import TransferService


def get_transfer_service(request: Request) -> TransferService:
    """Return the transfer service built during application startup."""
    service = getattr(request.app.state, "transfer_service", None)
    if service is None:
        raise ConfigurationException("Transfer service is not initialized", config_key="transfer_service")
    return service


def get_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings
