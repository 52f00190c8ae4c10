#!/usr/bin/env python3
"""
Test runner for the Egyptian History Riddle Bot.
Runs the unit and Discord handler tests and prints a summary report.
"""
import sys
import time
import unittest
from pathlib import Path

# Make the project root importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

TEST_MODULES = [
    'tests.test_riddle_engine',
    'tests.test_riddle_provider',
    'tests.test_riddle_bank',
    'tests.test_config_manager',
    'tests.test_game_controller',
    'tests.test_bot_discord_integration',
    'tests.test_main'
]

CATEGORIES = {
    'unit': TEST_MODULES[:5],
    'bot': ['tests.test_bot_discord_integration', 'tests.test_main'],
    'engine': ['tests.test_riddle_engine'],
    'provider': ['tests.test_riddle_provider', 'tests.test_riddle_bank'],
    'config': ['tests.test_config_manager'],
    'controller': ['tests.test_game_controller']
}


def load_suite(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
            return None
    return suite


def print_details(title, entries):
    if not entries:
        return
    print("\n" + "-" * 50)
    print(f"{title}:")
    print("-" * 50)
    for test, traceback in entries:
        print(f"\n{test}:")
        print(traceback)


def run_test_suite(module_names=TEST_MODULES):
    """Run the given test modules and print a summary report."""
    print("=" * 70)
    print("Egyptian History Riddle Bot - Test Suite")
    print("=" * 70)

    suite = load_suite(module_names)
    if suite is None:
        return False

    print("\n" + "=" * 70)
    print("Running Tests...")
    print("=" * 70)

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    print_details("FAILURES", result.failures)
    print_details("ERRORS", result.errors)

    return failures == 0 and errors == 0


def run_specific_test_category(category):
    """Run tests for a specific category."""
    if category not in CATEGORIES:
        print(f"Unknown category: {category}")
        print(f"Available categories: {', '.join(CATEGORIES.keys())}")
        return False

    print(f"Running {category} tests...")
    return run_test_suite(CATEGORIES[category])


if __name__ == '__main__':
    if len(sys.argv) > 1:
        success = run_specific_test_category(sys.argv[1])
    else:
        success = run_test_suite()

    sys.exit(0 if success else 1)
