"""HTTP clients for the runs and key services."""

from relay.clients.keys import CallerInfo, DecryptedKey, KeyServiceClient
from relay.clients.runs import Run, RunsClient

__all__ = ["CallerInfo", "DecryptedKey", "KeyServiceClient", "Run", "RunsClient"]
