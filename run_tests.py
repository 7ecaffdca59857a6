#!/usr/bin/env python3
"""
Simple test runner for Voice Diary

Usage:
    python run_tests.py --unit           # Model, store, pipeline and stats tests
    python run_tests.py --integration    # End-to-end workflows and CLI
    python run_tests.py --coverage       # Everything, with a coverage report
"""

import sys
import subprocess
import argparse

def run_pytest(label: str, args: list) -> bool:
    print(f"🧪 Running {label}")
    print("="*60)
    try:
        subprocess.run([sys.executable, '-m', 'pytest'] + args, check=True, cwd='.')
        return True
    except subprocess.CalledProcessError:
        return False

def main():
    parser = argparse.ArgumentParser(description="Run Voice Diary tests")
    parser.add_argument("--unit", action="store_true", help="Run unit tests")
    parser.add_argument("--integration", action="store_true", help="Run integration tests")
    parser.add_argument("--coverage", action="store_true", help="Run all tests with coverage")
    args = parser.parse_args()

    results = []
    if args.unit:
        results.append(run_pytest("Unit Tests", ['tests/unit', '-q']))
    if args.integration:
        results.append(run_pytest("Integration Tests", ['tests/integration', '-q']))
    if args.coverage:
        results.append(run_pytest("All Tests with Coverage",
                                  ['tests', '--cov=voicediary', '--cov-report=term-missing']))
    if not results:
        results.append(run_pytest("All Tests", ['tests', '-q']))

    if all(results):
        print("🎉 All selected tests passed")
        sys.exit(0)
    print("❌ Some tests failed")
    sys.exit(1)

if __name__ == "__main__":
    main()
