#!/usr/bin/env python3
"""
Test runner script for SafeTrack.
Provides convenient commands for running different groups of tests.
"""
import sys
import subprocess
import argparse


def run_command(cmd, description):
    """Run a command and handle errors."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print(f"{'='*60}")

    try:
        subprocess.run(cmd, check=True, capture_output=False)
        print(f"\n{description} completed successfully")
        return True
    except subprocess.CalledProcessError as e:
        print(f"\n{description} failed with exit code {e.returncode}")
        return False
    except FileNotFoundError:
        print(f"\nCommand not found: {cmd[0]}")
        print("Make sure the test extra is installed: pip install -e .[test]")
        return False


def main():
    parser = argparse.ArgumentParser(description="SafeTrack Test Runner")
    parser.add_argument("--unit", action="store_true", help="Run unit tests only")
    parser.add_argument("--property", action="store_true", help="Run hypothesis property tests only")
    parser.add_argument("--coverage", action="store_true", help="Run tests with coverage report (requires pytest-cov)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--file", "-f", help="Run specific test file")
    parser.add_argument("--test", "-t", help="Run tests matching an expression")

    args = parser.parse_args()

    cmd = [sys.executable, "-m", "pytest", "-v" if args.verbose else "-q"]

    if args.coverage:
        cmd.extend(["--cov=safetrack", "--cov-report=term-missing"])

    if args.unit:
        cmd.append("tests/unit")
        description = "Unit Tests"
    elif args.property:
        cmd.append("tests/property")
        description = "Property Tests"
    elif args.file:
        cmd.append(args.file)
        description = f"Tests in file: {args.file}"
    elif args.test:
        cmd.extend(["-k", args.test])
        description = f"Tests matching: {args.test}"
    else:
        description = "All Tests"

    if run_command(cmd, description):
        print("\nAll tests passed!")
    else:
        print("\nSome tests failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
