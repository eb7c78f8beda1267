from legal_common.infrastructure.interfaces import MessagePublisher, StorageClient

__all__ = ["MessagePublisher", "StorageClient"]
