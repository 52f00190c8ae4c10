"""
Unit tests for the offline RiddleBank provider.
"""
import json
import random
import shutil
import tempfile
import unittest
from pathlib import Path

from egypt_riddles.models import Era
from egypt_riddles.riddle_bank import SAMPLE_RIDDLES, RiddleBank
from egypt_riddles.riddle_provider import RiddlesExhausted
from tests.test_fixtures import TestFixtures


def payload_for(era: str, question: str):
    return TestFixtures.create_riddle_payload(era=era, question=question)


class TestRiddleBankLoading(unittest.TestCase):
    """Test cases for loading riddle files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.bank = RiddleBank(self.temp_dir, rng=random.Random(1))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_valid_file(self):
        TestFixtures.create_riddle_file(self.temp_dir, "riddles.json", [
            payload_for("ancient", "Ancient one?"),
            payload_for("ancient", "Ancient two?"),
            payload_for("modern", "Modern one?"),
        ])

        self.assertEqual(self.bank.load_riddle_files(), 3)
        self.assertEqual(self.bank.get_riddle_count(), 3)
        self.assertEqual(self.bank.get_riddle_count(Era.ANCIENT), 2)
        self.assertEqual(self.bank.get_riddle_count(Era.MODERN), 1)
        self.assertEqual(self.bank.get_riddle_count(Era.ISLAMIC), 0)
        self.assertEqual(self.bank.load_errors, [])

    def test_sample_file_created_for_empty_directory(self):
        """Test that an empty directory gets the sample riddles."""
        count = self.bank.load_riddle_files()

        sample_path = Path(self.temp_dir) / "sample_riddles.json"
        self.assertTrue(sample_path.exists())
        self.assertEqual(count, len(SAMPLE_RIDDLES["riddles"]))
        with open(sample_path, encoding='utf-8') as f:
            self.assertEqual(json.load(f), SAMPLE_RIDDLES)
        self.assertEqual(self.bank.get_riddle_count(Era.ISLAMIC), 1)

    def test_missing_directory_is_created(self):
        bank = RiddleBank(str(Path(self.temp_dir) / "nested" / "riddles"))

        self.assertGreater(bank.load_riddle_files(), 0)
        self.assertTrue((Path(self.temp_dir) / "nested" / "riddles").is_dir())

    def test_invalid_riddles_are_skipped(self):
        TestFixtures.create_riddle_file(self.temp_dir, "mixed.json", [
            payload_for("islamic", "Valid one?"),
            TestFixtures.create_riddle_payload(era="islamic", question="Broken one?", hints=["just one"]),
        ])

        self.assertEqual(self.bank.load_riddle_files(), 1)
        self.assertEqual(len(self.bank.load_errors), 1)
        self.assertIn("mixed.json riddle 1", self.bank.load_errors[0])

    def test_riddles_without_playable_era_are_rejected(self):
        """Test that a riddle must name the Ancient, Islamic or Modern era."""
        TestFixtures.create_riddle_file(self.temp_dir, "eras.json", [
            payload_for("modern", "Placed one?"),
            payload_for("Ptolemaic Egypt", "Unknown era?"),
            payload_for("all", "Every era?"),
        ])

        self.assertEqual(self.bank.load_riddle_files(), 1)
        self.assertEqual(self.bank.get_riddle_count(), 1)
        self.assertEqual(len(self.bank.load_errors), 2)
        self.assertIn("eras.json riddle 1: 'era' must be one of ancient, islamic, modern", self.bank.load_errors[0])
        self.assertIn("eras.json riddle 2", self.bank.load_errors[1])

    def test_invalid_files_are_reported(self):
        """Test that broken files are recorded without stopping the load."""
        with open(Path(self.temp_dir) / "broken.json", 'w', encoding='utf-8') as f:
            f.write("{ not json")
        with open(Path(self.temp_dir) / "wrong_shape.json", 'w', encoding='utf-8') as f:
            json.dump([1, 2, 3], f)
        TestFixtures.create_riddle_file(self.temp_dir, "good.json", [payload_for("modern", "Good one?")])

        self.assertEqual(self.bank.load_riddle_files(), 1)

        summary = self.bank.get_loading_summary()
        self.assertTrue(summary['has_errors'])
        self.assertEqual(summary['error_count'], 2)
        self.assertEqual(summary['total_riddles'], 1)
        self.assertEqual(summary['riddles_per_era'], {'ancient': 0, 'islamic': 0, 'modern': 1})
        self.assertTrue(any(error.startswith("broken.json") for error in summary['errors']))
        self.assertTrue(any(error.startswith("wrong_shape.json") for error in summary['errors']))

    def test_reload_replaces_riddles(self):
        path = TestFixtures.create_riddle_file(self.temp_dir, "riddles.json", [payload_for("ancient", "First?")])
        self.bank.load_riddle_files()

        path.unlink()
        TestFixtures.create_riddle_file(self.temp_dir, "other.json", [
            payload_for("modern", "Second?"),
            payload_for("modern", "Third?"),
        ])

        self.assertEqual(self.bank.load_riddle_files(), 2)
        self.assertEqual(self.bank.get_riddle_count(Era.ANCIENT), 0)


class TestRiddleBankProvider(unittest.IsolatedAsyncioTestCase):
    """Test cases for serving riddles from the bank."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.create_riddle_file(self.temp_dir, "riddles.json", [
            payload_for("ancient", "Ancient one?"),
            payload_for("ancient", "Ancient two?"),
            payload_for("islamic", "Islamic one?"),
        ])
        self.bank = RiddleBank(self.temp_dir, rng=random.Random(5))
        self.bank.load_riddle_files()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_generate_filters_by_era(self):
        for _ in range(10):
            riddle = await self.bank.generate_riddle(Era.ISLAMIC)
            self.assertEqual(riddle.question, "Islamic one?")
            self.assertEqual(riddle.era, Era.ISLAMIC)

    async def test_all_eras_draws_from_every_riddle(self):
        questions = {(await self.bank.generate_riddle(Era.ALL)).question for _ in range(50)}
        self.assertEqual(questions, {"Ancient one?", "Ancient two?", "Islamic one?"})

    async def test_asked_questions_are_excluded(self):
        riddle = await self.bank.generate_riddle(Era.ANCIENT, ["Ancient one?"])
        self.assertEqual(riddle.question, "Ancient two?")

    async def test_exhausted_era(self):
        with self.assertRaises(RiddlesExhausted):
            await self.bank.generate_riddle(Era.ANCIENT, ["Ancient one?", "Ancient two?"])

        with self.assertRaises(RiddlesExhausted):
            await self.bank.generate_riddle(Era.MODERN)

    async def test_generated_riddle_is_valid(self):
        riddle = await self.bank.generate_riddle(Era.ANCIENT)

        self.assertEqual(len(riddle.options), 4)
        self.assertEqual(len(riddle.hints), 3)
        self.assertIn(riddle.answer, riddle.options)

    async def test_judge_answer_exact_match(self):
        self.assertTrue(await self.bank.judge_answer(" Hatshepsut", "Hatshepsut", "q"))
        self.assertFalse(await self.bank.judge_answer("Nefertiti", "Hatshepsut", "q"))


if __name__ == '__main__':
    unittest.main()
