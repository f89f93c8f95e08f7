from __future__ import annotations


class PersonaRelayError(Exception):
    """Base class for conversation pipeline failures."""


class StoreUnavailableError(PersonaRelayError):
    """A document store read could not be completed."""


class HistoryUnavailableError(StoreUnavailableError):
    pass


class HistoryWriteError(PersonaRelayError):
    """Persisting a turn failed; the append-only log is missing an entry."""


class SemanticMemoryError(PersonaRelayError):
    """Embedding or vector store call failed."""


class TurnProcessingError(PersonaRelayError):
    """The current turn cannot produce a reply."""


class CompletionError(TurnProcessingError):
    pass
