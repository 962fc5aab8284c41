"""Client side of chunked transfers: transports, orchestration and HTTP access."""
from vidtransfer.client.http_gateway import TransferApiClient
from vidtransfer.client.orchestrator import TransferOrchestrator, plan_parts
from vidtransfer.client.signed_url import SignedUrlClient
from vidtransfer.client.transport import (
    DirectPartTransport,
    DownloadSource,
    PartTransport,
    ProxiedPartTransport,
)

__all__ = [
    "PartTransport",
    "ProxiedPartTransport",
    "DirectPartTransport",
    "DownloadSource",
    "SignedUrlClient",
    "TransferApiClient",
    "TransferOrchestrator",
    "plan_parts",
]
