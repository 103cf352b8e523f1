from mapnotes.client.protocols import AuthProvider, MapStoreClient
from mapnotes.client.http import HttpMapStoreClient

__all__ = ["AuthProvider", "HttpMapStoreClient", "MapStoreClient"]
