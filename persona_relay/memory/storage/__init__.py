from .schema import MemorySchemaMixin
from .tone_rules import MemoryToneRulesMixin
from .turns import MemoryTurnsMixin

__all__ = [
    "MemorySchemaMixin",
    "MemoryToneRulesMixin",
    "MemoryTurnsMixin",
]
