from .history import HistoryStore
from .models import Direction, ToneProfile, Turn
from .persona import PersonaResolver
from .postgres_store import PostgresDocumentStore
from .semantic import KeywordRememberPolicy, SemanticMemoryStore
from .store import DocumentStore
from .summarizer import Summarizer

__all__ = [
    "Direction",
    "DocumentStore",
    "HistoryStore",
    "KeywordRememberPolicy",
    "PersonaResolver",
    "PostgresDocumentStore",
    "SemanticMemoryStore",
    "Summarizer",
    "ToneProfile",
    "Turn",
]
