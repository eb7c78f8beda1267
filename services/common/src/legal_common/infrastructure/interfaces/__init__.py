from legal_common.infrastructure.interfaces.message_broker import MessagePublisher
from legal_common.infrastructure.interfaces.storage import StorageClient

__all__ = [
    "StorageClient",
    "MessagePublisher",
]
