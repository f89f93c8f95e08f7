"""WhatsApp persona agent with bounded conversation history and identity-scoped semantic memory."""

__version__ = "0.1.0"
