from .openai_client import OpenAIClient
from .qdrant_client import QdrantClient
from .ultramsg_client import DeliveryResult, UltraMsgClient

__all__ = ["DeliveryResult", "OpenAIClient", "QdrantClient", "UltraMsgClient"]
