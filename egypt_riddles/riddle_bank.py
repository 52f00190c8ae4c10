"""
Offline riddle provider backed by JSON riddle files.
"""
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import Era, Riddle
from .riddle_engine import RiddleEngine
from .riddle_provider import MalformedRiddle, RiddleProvider, RiddlesExhausted, answers_match, parse_riddle

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit

SAMPLE_RIDDLES = {
    "riddles": [
        {
            "question": "I built the largest pyramid at Giza and my name is also Khufu. By what Greek name am I known?",
            "answer": "Cheops",
            "options": ["Cheops", "Chephren", "Mycerinus", "Sesostris"],
            "hints": [
                "Herodotus wrote about me.",
                "My son built the second pyramid at Giza.",
                "My Greek name starts with the letters 'Ch' and ends in 'ops'."
            ],
            "funFact": "The Great Pyramid was the tallest man-made structure in the world for almost 4,000 years.",
            "era": "ancient"
        },
        {
            "question": "Which mosque, founded in 970, became one of the oldest continuously running universities in the world?",
            "answer": "Al-Azhar",
            "options": ["Al-Azhar", "Ibn Tulun", "Al-Hakim", "Sultan Hassan"],
            "hints": [
                "It was founded by the Fatimids.",
                "It stands in the heart of historic Cairo.",
                "Its name is linked to Fatima al-Zahra."
            ],
            "funFact": "Al-Azhar's name is usually traced to Fatima al-Zahra, daughter of the Prophet Muhammad.",
            "era": "islamic"
        },
        {
            "question": "Which waterway, opened in 1869, links the Mediterranean Sea to the Red Sea?",
            "answer": "Suez Canal",
            "options": ["Suez Canal", "Mahmoudiya Canal", "Ismailia Canal", "Canal of the Pharaohs"],
            "hints": [
                "Ferdinand de Lesseps led the project.",
                "It was nationalised in 1956.",
                "Its northern end is at Port Said."
            ],
            "funFact": "Verdi's opera Aida is often said to have been written for the canal's opening, though it premiered two years later.",
            "era": "modern"
        }
    ]
}


class RiddleBank(RiddleProvider):
    """Serves riddles from JSON files and judges answers by exact match."""

    def __init__(self, riddle_directory: str = "./riddles/", rng: Optional[random.Random] = None):
        """
        Initialize RiddleBank with riddle directory path.

        Args:
            riddle_directory: Path to directory containing JSON riddle files
            rng: Optional random generator used to pick and shuffle riddles
        """
        self.riddle_directory = Path(riddle_directory)
        self.logger = logging.getLogger(__name__)
        self._rng = rng or random.Random()
        self._engine = RiddleEngine(self._rng)
        self._payloads: List[Dict[str, Any]] = []
        self._eras: List[Era] = []
        self.load_errors: List[str] = []

    def load_riddle_files(self) -> int:
        """
        Load all JSON files from the riddle directory.

        A sample file is written when the directory holds no JSON files.

        Returns:
            Number of riddles loaded
        """
        self._payloads.clear()
        self._eras.clear()
        self.load_errors.clear()

        try:
            self.riddle_directory.mkdir(parents=True, exist_ok=True)
            json_files = sorted(self.riddle_directory.glob("*.json"))
            if not json_files:
                self.logger.warning(f"No JSON files found in {self.riddle_directory}")
                json_files = [self._create_sample_file()]
        except OSError as e:
            self.load_errors.append(f"Cannot access {self.riddle_directory}: {e}")
            self.logger.error(self.load_errors[-1])
            return 0

        for json_file in json_files:
            load_result = self._load_riddle_file_safely(json_file)
            if not load_result['success']:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        self.logger.info(f"Loaded {len(self._payloads)} riddles from {self.riddle_directory}")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")
        return len(self._payloads)

    def _create_sample_file(self) -> Path:
        sample_file_path = self.riddle_directory / "sample_riddles.json"
        with open(sample_file_path, 'w', encoding='utf-8') as f:
            json.dump(SAMPLE_RIDDLES, f, indent=2, ensure_ascii=False)
        self.logger.info(f"Created sample riddle file: {sample_file_path}")
        return sample_file_path

    def _load_riddle_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single riddle file, keeping every riddle that validates.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if json_file.stat().st_size > MAX_FILE_SIZE:
                return {'success': False, 'error': f"File too large. Maximum size is {MAX_FILE_SIZE // 1024 // 1024}MB"}

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            return {'success': False, 'error': f"Invalid JSON: {e}"}
        except OSError as e:
            return {'success': False, 'error': f"System error: {e}"}

        if not isinstance(data, dict) or not isinstance(data.get("riddles"), list):
            return {'success': False, 'error': "File must contain a 'riddles' array"}

        loaded = 0
        for i, payload in enumerate(data["riddles"]):
            try:
                riddle = parse_riddle(payload, Era.ALL, self._engine)
            except MalformedRiddle as e:
                self.load_errors.append(f"{json_file.name} riddle {i}: {e}")
                continue
            if riddle.era is Era.ALL:
                playable = ", ".join(era.value for era in Era if era is not Era.ALL)
                self.load_errors.append(f"{json_file.name} riddle {i}: 'era' must be one of {playable}")
                continue
            self._payloads.append(payload)
            self._eras.append(riddle.era)
            loaded += 1

        if loaded == 0:
            return {'success': False, 'error': "No valid riddles found in file"}

        self.logger.info(f"Loaded {loaded} riddles from '{json_file.name}'")
        return {'success': True}

    def get_riddle_count(self, era: Era = Era.ALL) -> int:
        """Number of loaded riddles that match the era."""
        return sum(1 for riddle_era in self._eras if era is Era.ALL or riddle_era is era)

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_riddles': len(self._payloads),
            'riddles_per_era': {era.value: self.get_riddle_count(era) for era in Era if era is not Era.ALL},
            'has_errors': bool(self.load_errors),
            'error_count': len(self.load_errors),
            'errors': list(self.load_errors),
            'riddle_directory': str(self.riddle_directory)
        }

    async def generate_riddle(self, era: Era, asked_questions: Sequence[str] = ()) -> Riddle:
        asked = set(asked_questions)
        candidates = [
            payload for payload, riddle_era in zip(self._payloads, self._eras)
            if (era is Era.ALL or riddle_era is era) and payload["question"].strip() not in asked
        ]
        if not candidates:
            raise RiddlesExhausted(f"No unused riddles left for era {era.value}")
        return parse_riddle(self._rng.choice(candidates), era, self._engine)

    async def judge_answer(self, candidate: str, correct_answer: str, question: str) -> bool:
        return answers_match(candidate, correct_answer)
