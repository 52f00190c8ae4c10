"""
Core data models for the Egyptian History Riddle Bot.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class Era(Enum):
    """Historical period used to scope riddle generation."""
    ANCIENT = "ancient"
    ISLAMIC = "islamic"
    MODERN = "modern"
    ALL = "all"

    @property
    def label(self) -> str:
        """Human readable name shown to players."""
        return _ERA_LABELS[self]

    @property
    def prompt_phrase(self) -> str:
        """Phrase describing the era inside a generation prompt."""
        if self is Era.ALL:
            return "any era of Egyptian history"
        return f"the {self.label} of Egypt"

    @classmethod
    def from_text(cls, text: str) -> Optional["Era"]:
        """
        Look up an era by value, name or label (case-insensitive).

        Returns:
            Matching Era, or None if the text names no era
        """
        if not isinstance(text, str):
            return None
        needle = text.strip().lower()
        for era in cls:
            if needle in (era.value, era.name.lower(), era.label.lower()):
                return era
        return None


_ERA_LABELS = {
    Era.ANCIENT: "Ancient Era",
    Era.ISLAMIC: "Islamic Era",
    Era.MODERN: "Modern Era",
    Era.ALL: "All Eras",
}


class Feedback(Enum):
    """Result shown for the player's last selection."""
    NEUTRAL = "neutral"
    CORRECT = "correct"
    INCORRECT = "incorrect"


class Rank(Enum):
    """Title earned from the running score."""
    BEGINNER = "beginner"
    RESEARCHER = "researcher"
    EXPERT = "expert"

    @property
    def title(self) -> str:
        return _RANK_TITLES[self]


_RANK_TITLES = {
    Rank.BEGINNER: "Beginner Historian",
    Rank.RESEARCHER: "Historical Researcher",
    Rank.EXPERT: "Egyptian History Expert",
}


@dataclass(frozen=True)
class Riddle:
    """A single riddle as produced by a provider. Immutable once received."""
    question: str
    answer: str
    options: Tuple[str, ...]
    hints: Tuple[str, ...]
    fun_fact: str
    era: Era


@dataclass(frozen=True)
class HistoryEntry:
    """A solved riddle."""
    question: str
    correct: bool


@dataclass
class GameSettings:
    """Tunable timings for a game session."""
    cooldown_seconds: float = 1.5
    provider_timeout: float = 30.0
    max_asked_questions: int = 20


@dataclass
class GameSession:
    """Complete mutable state of one player's play-through."""
    score: int = 0
    current_riddle: Optional[Riddle] = None
    loading: bool = False
    feedback: Feedback = Feedback.NEUTRAL
    attempts: int = 0
    show_hint: bool = False
    history: List[HistoryEntry] = field(default_factory=list)
    selected_era: Optional[Era] = None
    selected_option: Optional[str] = None
    show_fun_fact: bool = False
    asked_questions: List[str] = field(default_factory=list)
    last_error: Optional[str] = None
