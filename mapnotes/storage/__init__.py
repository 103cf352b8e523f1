from mapnotes.storage.protocols import DocumentStore, DocumentStoreError
from mapnotes.storage.local import LocalDocumentStore, LocalDocumentStoreError
from mapnotes.storage.sql import SqlDocumentStore

__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "LocalDocumentStore",
    "LocalDocumentStoreError",
    "SqlDocumentStore",
]
