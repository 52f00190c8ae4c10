"""
Unit tests for ConfigManager class.
"""
import logging
import unittest

from egypt_riddles.config_manager import ConfigManager
from egypt_riddles.models import GameSettings


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_game_settings()

        self.assertEqual(settings, GameSettings(cooldown_seconds=1.5, provider_timeout=30.0, max_asked_questions=20))
        self.assertEqual(self.config_manager.get_provider_type(), "ollama")
        self.assertEqual(self.config_manager.get_ollama_base_url(), "http://localhost:11434")
        self.assertEqual(self.config_manager.get_ollama_model(), "llama3.1")
        self.assertEqual(self.config_manager.get_temperature(), 0.8)
        self.assertEqual(self.config_manager.get_riddle_directory(), "./riddles/")

    def test_set_cooldown_seconds(self):
        """Test cooldown boundaries."""
        for value in (0.5, 1, 10):
            with self.subTest(value=value):
                self.assertTrue(self.config_manager.set_cooldown_seconds(value)['success'])
                self.assertEqual(self.config_manager.get_game_settings().cooldown_seconds, value)

        for value in (0.4, 10.5, -1, "1.5", None, True):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_cooldown_seconds(value)['success'])

    def test_set_provider_timeout(self):
        """Test provider timeout boundaries."""
        self.assertTrue(self.config_manager.set_provider_timeout(5)['success'])
        self.assertTrue(self.config_manager.set_provider_timeout(300)['success'])
        self.assertEqual(self.config_manager.get_game_settings().provider_timeout, 300.0)

        result = self.config_manager.set_provider_timeout(4)
        self.assertFalse(result['success'])
        self.assertIn("Timeout too short", result['user_message'])

        result = self.config_manager.set_provider_timeout(301)
        self.assertFalse(result['success'])
        self.assertIn("Timeout too long", result['user_message'])

        self.assertFalse(self.config_manager.set_provider_timeout("30")['success'])

    def test_set_max_asked_questions(self):
        self.assertTrue(self.config_manager.set_max_asked_questions(0)['success'])
        self.assertTrue(self.config_manager.set_max_asked_questions(100)['success'])
        self.assertEqual(self.config_manager.get_game_settings().max_asked_questions, 100)

        for value in (-1, 101, 5.5, "10", False):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_max_asked_questions(value)['success'])

    def test_set_provider_type(self):
        result = self.config_manager.set_provider_type(" Bank ")
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_provider_type(), "bank")

        for value in ("openai", "", None):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_provider_type(value)['success'])
        self.assertEqual(self.config_manager.get_provider_type(), "bank")

    def test_set_ollama_endpoint(self):
        result = self.config_manager.set_ollama_endpoint("http://gpu-box:11434/", "mistral")

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_ollama_base_url(), "http://gpu-box:11434")
        self.assertEqual(self.config_manager.get_ollama_model(), "mistral")

        # URL alone keeps the model
        self.config_manager.set_ollama_endpoint("https://ollama.example.com")
        self.assertEqual(self.config_manager.get_ollama_model(), "mistral")

    def test_set_ollama_endpoint_invalid(self):
        self.assertFalse(self.config_manager.set_ollama_endpoint("localhost:11434")['success'])
        self.assertFalse(self.config_manager.set_ollama_endpoint(None)['success'])
        self.assertFalse(self.config_manager.set_ollama_endpoint("http://localhost:11434", "  ")['success'])
        self.assertEqual(self.config_manager.get_ollama_base_url(), "http://localhost:11434")

    def test_set_temperature(self):
        self.assertTrue(self.config_manager.set_temperature(0)['success'])
        self.assertTrue(self.config_manager.set_temperature(2)['success'])
        self.assertFalse(self.config_manager.set_temperature(2.1)['success'])
        self.assertFalse(self.config_manager.set_temperature(-0.1)['success'])
        self.assertEqual(self.config_manager.get_temperature(), 2.0)

    def test_set_riddle_directory(self):
        result = self.config_manager.set_riddle_directory("./my riddles/")
        self.assertTrue(result['success'])
        self.assertIn("my riddles", self.config_manager.get_riddle_directory())

        for value in (123, None, "", "   "):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_riddle_directory(value)['success'])

    def test_enhanced_error_handling(self):
        """Test error responses carry both a log message and a user message."""
        result = self.config_manager.set_cooldown_seconds("invalid")

        self.assertFalse(result['success'])
        self.assertIn('error', result)
        self.assertIn('user_message', result)
        self.assertTrue(result['user_message'].startswith("❌"))

        result = self.config_manager.set_cooldown_seconds(2)
        self.assertTrue(result['success'])
        self.assertTrue(result['user_message'].startswith("✅"))

    def test_reset_to_defaults(self):
        """Test resetting all settings to default values."""
        self.config_manager.set_cooldown_seconds(3)
        self.config_manager.set_provider_type("bank")
        self.config_manager.set_riddle_directory("./custom/")

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_game_settings(), GameSettings())
        self.assertEqual(self.config_manager.get_provider_type(), "ollama")
        self.assertEqual(self.config_manager.get_riddle_directory(), "./riddles/")

    def test_get_game_settings_returns_copy(self):
        """Test that get_game_settings returns a copy, not reference."""
        settings = self.config_manager.get_game_settings()
        settings.cooldown_seconds = 9

        self.assertEqual(self.config_manager.get_game_settings().cooldown_seconds, 1.5)

    def test_apply_config(self):
        """Test applying the provider and game sections of config.json."""
        rejected = self.config_manager.apply_config({
            'provider': {
                'type': 'bank',
                'base_url': 'http://remote:11434',
                'model': 'gemma2',
                'temperature': 0.5,
                'riddle_directory': './bank/'
            },
            'game': {
                'cooldown_seconds': 2,
                'provider_timeout': 45,
                'max_asked_questions': 5
            }
        })

        self.assertEqual(rejected, [])
        self.assertEqual(self.config_manager.get_provider_type(), "bank")
        self.assertEqual(self.config_manager.get_ollama_base_url(), "http://remote:11434")
        self.assertEqual(self.config_manager.get_ollama_model(), "gemma2")
        self.assertEqual(self.config_manager.get_temperature(), 0.5)
        self.assertEqual(
            self.config_manager.get_game_settings(),
            GameSettings(cooldown_seconds=2.0, provider_timeout=45.0, max_asked_questions=5)
        )

    def test_apply_config_keeps_defaults_for_invalid_values(self):
        rejected = self.config_manager.apply_config({
            'provider': {'type': 'mystery'},
            'game': {'cooldown_seconds': 60, 'provider_timeout': 20}
        })

        self.assertEqual(len(rejected), 2)
        self.assertEqual(self.config_manager.get_provider_type(), "ollama")
        self.assertEqual(self.config_manager.get_game_settings().cooldown_seconds, 1.5)
        self.assertEqual(self.config_manager.get_game_settings().provider_timeout, 20.0)

    def test_apply_empty_config(self):
        self.assertEqual(self.config_manager.apply_config({}), [])
        self.assertEqual(self.config_manager.apply_config({'provider': None, 'game': None}), [])
        self.assertEqual(self.config_manager.get_game_settings(), GameSettings())

    def test_validate_settings(self):
        """Test validation with default and corrupted settings."""
        self.assertEqual(self.config_manager.validate_settings(), {"valid": True, "issues": []})

        # Manually corrupt settings to test validation
        self.config_manager._game_settings.cooldown_seconds = 0
        self.config_manager._game_settings.provider_timeout = 1000
        self.config_manager._provider_type = "other"

        result = self.config_manager.validate_settings()

        self.assertFalse(result["valid"])
        self.assertEqual(len(result["issues"]), 3)
        issues_text = " ".join(result["issues"]).lower()
        self.assertIn("cooldown", issues_text)
        self.assertIn("provider timeout", issues_text)
        self.assertIn("provider type", issues_text)

    def test_get_settings_summary(self):
        """Test getting formatted settings summary."""
        summary = self.config_manager.get_settings_summary()

        self.assertTrue(summary.startswith("Game Settings:"))
        self.assertIn("ollama (llama3.1 at http://localhost:11434)", summary)
        self.assertIn("1.5 seconds", summary)
        self.assertIn("30.0 seconds", summary)

        self.config_manager.set_provider_type("bank")
        summary = self.config_manager.get_settings_summary()
        self.assertIn("riddle bank (./riddles/)", summary)


if __name__ == '__main__':
    unittest.main()
