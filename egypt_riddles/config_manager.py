"""
Configuration manager for Riddle Bot game and provider settings.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import GameSettings
from .riddle_provider import DEFAULT_BASE_URL, DEFAULT_MODEL


class ConfigManager:
    """Manages game timings and riddle provider settings."""

    # Default configuration values
    DEFAULT_COOLDOWN_SECONDS = 1.5
    DEFAULT_PROVIDER_TIMEOUT = 30.0
    DEFAULT_MAX_ASKED_QUESTIONS = 20
    DEFAULT_PROVIDER_TYPE = "ollama"
    DEFAULT_TEMPERATURE = 0.8
    DEFAULT_RIDDLE_DIRECTORY = "./riddles/"

    PROVIDER_TYPES = ("ollama", "bank")

    # Validation limits
    MIN_COOLDOWN_SECONDS = 0.5
    MAX_COOLDOWN_SECONDS = 10.0
    MIN_PROVIDER_TIMEOUT = 5.0
    MAX_PROVIDER_TIMEOUT = 300.0  # 5 minutes
    MAX_ASKED_QUESTIONS = 100
    MAX_TEMPERATURE = 2.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self.reset_to_defaults()

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._game_settings = GameSettings(
            cooldown_seconds=self.DEFAULT_COOLDOWN_SECONDS,
            provider_timeout=self.DEFAULT_PROVIDER_TIMEOUT,
            max_asked_questions=self.DEFAULT_MAX_ASKED_QUESTIONS
        )
        self._provider_type = self.DEFAULT_PROVIDER_TYPE
        self._ollama_base_url = DEFAULT_BASE_URL
        self._ollama_model = DEFAULT_MODEL
        self._temperature = self.DEFAULT_TEMPERATURE
        self._riddle_directory = self.DEFAULT_RIDDLE_DIRECTORY

    def _failure(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def _success(self, message: str, user_message: str) -> Dict[str, Any]:
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': user_message
        }

    def get_game_settings(self) -> GameSettings:
        """
        Get current game settings.

        Returns:
            Copy of the GameSettings in effect
        """
        return GameSettings(
            cooldown_seconds=self._game_settings.cooldown_seconds,
            provider_timeout=self._game_settings.provider_timeout,
            max_asked_questions=self._game_settings.max_asked_questions
        )

    def set_cooldown_seconds(self, seconds: float) -> Dict[str, Any]:
        """
        Set the pause after an incorrect answer.

        Args:
            seconds: Cooldown duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return self._failure(
                f"Cooldown must be a number, got {type(seconds).__name__}",
                f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            )

        if not self.MIN_COOLDOWN_SECONDS <= seconds <= self.MAX_COOLDOWN_SECONDS:
            return self._failure(
                f"Cooldown must be between {self.MIN_COOLDOWN_SECONDS} and {self.MAX_COOLDOWN_SECONDS} seconds",
                f"❌ Cooldown out of range: use {self.MIN_COOLDOWN_SECONDS}-{self.MAX_COOLDOWN_SECONDS} seconds"
            )

        self._game_settings.cooldown_seconds = float(seconds)
        return self._success(
            f"Cooldown set to {seconds} seconds",
            f"✅ Cooldown set to {seconds} seconds"
        )

    def set_provider_timeout(self, seconds: float) -> Dict[str, Any]:
        """
        Set the ceiling for a single riddle provider call.

        Args:
            seconds: Timeout in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return self._failure(
                f"Provider timeout must be a number, got {type(seconds).__name__}",
                f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            )

        if seconds < self.MIN_PROVIDER_TIMEOUT:
            return self._failure(
                f"Provider timeout must be at least {self.MIN_PROVIDER_TIMEOUT} seconds",
                f"❌ Timeout too short: Minimum is {self.MIN_PROVIDER_TIMEOUT} seconds"
            )

        if seconds > self.MAX_PROVIDER_TIMEOUT:
            return self._failure(
                f"Provider timeout cannot exceed {self.MAX_PROVIDER_TIMEOUT} seconds",
                f"❌ Timeout too long: Maximum is {self.MAX_PROVIDER_TIMEOUT} seconds"
            )

        self._game_settings.provider_timeout = float(seconds)
        return self._success(
            f"Provider timeout set to {seconds} seconds",
            f"✅ Provider timeout set to {seconds} seconds"
        )

    def set_max_asked_questions(self, count: int) -> Dict[str, Any]:
        """Set how many earlier questions are sent to the provider to avoid repeats."""
        if isinstance(count, bool) or not isinstance(count, int):
            return self._failure(
                f"Asked question limit must be an integer, got {type(count).__name__}",
                f"❌ Invalid input: Expected a whole number, got {type(count).__name__}"
            )

        if not 0 <= count <= self.MAX_ASKED_QUESTIONS:
            return self._failure(
                f"Asked question limit must be between 0 and {self.MAX_ASKED_QUESTIONS}",
                f"❌ Limit out of range: use 0-{self.MAX_ASKED_QUESTIONS}"
            )

        self._game_settings.max_asked_questions = count
        return self._success(
            f"Asked question limit set to {count}",
            f"✅ Up to {count} earlier riddles will be avoided"
        )

    def set_provider_type(self, provider_type: str) -> Dict[str, Any]:
        """Select the riddle backend ('ollama' or 'bank')."""
        if not isinstance(provider_type, str) or provider_type.strip().lower() not in self.PROVIDER_TYPES:
            return self._failure(
                f"Unknown provider type: {provider_type!r}",
                f"❌ Provider must be one of: {', '.join(self.PROVIDER_TYPES)}"
            )

        self._provider_type = provider_type.strip().lower()
        return self._success(
            f"Provider type set to {self._provider_type}",
            f"✅ Riddles will come from {self._provider_type}"
        )

    def set_ollama_endpoint(self, base_url: str, model: Optional[str] = None) -> Dict[str, Any]:
        """
        Set the Ollama server URL and, optionally, the model.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(base_url, str) or not base_url.strip().startswith(("http://", "https://")):
            return self._failure(
                f"Ollama base URL must be an http(s) URL, got {base_url!r}",
                "❌ Invalid URL: it must start with http:// or https://"
            )

        if model is not None and (not isinstance(model, str) or not model.strip()):
            return self._failure(
                "Ollama model name cannot be empty",
                "❌ Model name cannot be empty"
            )

        self._ollama_base_url = base_url.strip().rstrip('/')
        if model is not None:
            self._ollama_model = model.strip()
        return self._success(
            f"Ollama endpoint set to {self._ollama_base_url} ({self._ollama_model})",
            f"✅ Using model {self._ollama_model} at {self._ollama_base_url}"
        )

    def set_temperature(self, temperature: float) -> Dict[str, Any]:
        """Set the sampling temperature used for riddle generation."""
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            return self._failure(
                f"Temperature must be a number, got {type(temperature).__name__}",
                f"❌ Invalid input: Expected a number, got {type(temperature).__name__}"
            )

        if not 0 <= temperature <= self.MAX_TEMPERATURE:
            return self._failure(
                f"Temperature must be between 0 and {self.MAX_TEMPERATURE}",
                f"❌ Temperature out of range: use 0-{self.MAX_TEMPERATURE}"
            )

        self._temperature = float(temperature)
        return self._success(
            f"Temperature set to {temperature}",
            f"✅ Temperature set to {temperature}"
        )

    def set_riddle_directory(self, directory: str) -> Dict[str, Any]:
        """Set the directory the offline riddle bank reads from."""
        if not isinstance(directory, str) or not directory.strip():
            return self._failure(
                "Riddle directory must be a non-empty path",
                "❌ Directory path cannot be empty"
            )

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._failure(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        self._riddle_directory = normalized_path
        return self._success(
            f"Riddle directory set to {normalized_path}",
            f"✅ Riddle directory set to {normalized_path}"
        )

    def get_provider_type(self) -> str:
        return self._provider_type

    def get_ollama_base_url(self) -> str:
        return self._ollama_base_url

    def get_ollama_model(self) -> str:
        return self._ollama_model

    def get_temperature(self) -> float:
        return self._temperature

    def get_riddle_directory(self) -> str:
        return self._riddle_directory

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'provider' and 'game' sections of a loaded config.json.

        Invalid values are skipped and the defaults kept.

        Args:
            config: Parsed configuration dictionary

        Returns:
            User-friendly messages for every rejected value
        """
        provider_config = config.get('provider', {}) or {}
        game_config = config.get('game', {}) or {}
        results = []

        if 'type' in provider_config:
            results.append(self.set_provider_type(provider_config['type']))
        if 'base_url' in provider_config or 'model' in provider_config:
            results.append(self.set_ollama_endpoint(
                provider_config.get('base_url', self._ollama_base_url),
                provider_config.get('model')
            ))
        if 'temperature' in provider_config:
            results.append(self.set_temperature(provider_config['temperature']))
        if 'riddle_directory' in provider_config:
            results.append(self.set_riddle_directory(provider_config['riddle_directory']))

        if 'cooldown_seconds' in game_config:
            results.append(self.set_cooldown_seconds(game_config['cooldown_seconds']))
        if 'provider_timeout' in game_config:
            results.append(self.set_provider_timeout(game_config['provider_timeout']))
        if 'max_asked_questions' in game_config:
            results.append(self.set_max_asked_questions(game_config['max_asked_questions']))

        return [result['user_message'] for result in results if not result['success']]

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        issues = []
        settings = self._game_settings

        if not self.MIN_COOLDOWN_SECONDS <= settings.cooldown_seconds <= self.MAX_COOLDOWN_SECONDS:
            issues.append(f"Invalid cooldown: {settings.cooldown_seconds}")

        if not self.MIN_PROVIDER_TIMEOUT <= settings.provider_timeout <= self.MAX_PROVIDER_TIMEOUT:
            issues.append(f"Invalid provider timeout: {settings.provider_timeout}")

        if not 0 <= settings.max_asked_questions <= self.MAX_ASKED_QUESTIONS:
            issues.append(f"Invalid asked question limit: {settings.max_asked_questions}")

        if self._provider_type not in self.PROVIDER_TYPES:
            issues.append(f"Invalid provider type: {self._provider_type}")

        return {
            "valid": not issues,
            "issues": issues
        }

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        if self._provider_type == "ollama":
            provider_str = f"ollama ({self._ollama_model} at {self._ollama_base_url})"
        else:
            provider_str = f"riddle bank ({self._riddle_directory})"

        return (
            f"Game Settings:\n"
            f"• Provider: {provider_str}\n"
            f"• Cooldown: {self._game_settings.cooldown_seconds} seconds\n"
            f"• Provider timeout: {self._game_settings.provider_timeout} seconds\n"
            f"• Riddles remembered: {self._game_settings.max_asked_questions}"
        )
