from .client import UnifiedChatClient
from .cancellation import CancellationToken
from .config import (
    Settings, load_settings, InMemoryProviderStore, InMemoryKeyStore, EnvKeyStore,
)
from .errors import (
    ByomuxError, ConfigurationError, AuthenticationError, DiscoveryError, ConversionError,
    ProtocolViolationError, StreamAbortedError, TransportError,
)
from .providers import create_provider, BaseCustomProvider
from .types import (
    Message, Part, ProviderConfig, ModelDescriptor, StreamDelta, ToolDefinition, ApiFormat,
    generate_provider_id,
)
from .rich_llm_printer import RichPrinter, RichStreamPrinter

__all__ = [
    "UnifiedChatClient",
    "CancellationToken",
    "Settings",
    "load_settings",
    "InMemoryProviderStore",
    "InMemoryKeyStore",
    "EnvKeyStore",
    "ByomuxError",
    "ConfigurationError",
    "AuthenticationError",
    "DiscoveryError",
    "ConversionError",
    "ProtocolViolationError",
    "StreamAbortedError",
    "TransportError",
    "create_provider",
    "BaseCustomProvider",
    "Message",
    "Part",
    "ProviderConfig",
    "ModelDescriptor",
    "StreamDelta",
    "ToolDefinition",
    "ApiFormat",
    "generate_provider_id",
    "RichPrinter",
    "RichStreamPrinter",
]
