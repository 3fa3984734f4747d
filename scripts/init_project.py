#!/usr/bin/env python3
"""
Initialize the dispatcher payroll engine.

This script sets up the project by:
- Checking the Python version
- Loading environment variables
- Validating the configuration file
- Creating the database schema (sql backend)
- Running a reconciliation health check against the configured store
"""

import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def check_python_version() -> bool:
    """Verify Python version is 3.12 or higher."""
    if sys.version_info < (3, 12):
        print(f"❌ Python 3.12+ required. Current version: {sys.version}")
        return False
    print(f"✅ Python version: {sys.version_info.major}.{sys.version_info.minor}")
    return True


def load_env() -> bool:
    """Load .env if present; every variable has a default."""
    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        print("✅ .env loaded")
    else:
        print("⚠️  .env file not found, using defaults")

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        print(f"✅ DATABASE_URL set")
    else:
        print("⚠️  DATABASE_URL not set, falling back to local SQLite")
    return True


def check_config_file() -> bool:
    """Validate config/config.yaml exists and names a known backend."""
    config_path = PROJECT_ROOT / "config" / "config.yaml"
    if not config_path.exists():
        print(f"❌ Configuration not found: {config_path}")
        return False

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        print(f"❌ Error parsing config.yaml: {e}")
        return False

    if not config:
        print("❌ config.yaml is empty")
        return False

    backend = (config.get("storage") or {}).get("backend", "memory")
    if backend not in ("memory", "sql"):
        print(f"❌ Unknown storage backend: {backend}")
        return False

    print(f"✅ config.yaml is valid (storage backend: {backend})")
    return True


def check_store() -> bool:
    """Open the configured store and run one reconciliation pass."""
    from dispatch_payroll.core import PersistenceError, configure_logging, get_config
    from dispatch_payroll.services import create_state

    config = get_config()
    logging_config = config.get_logging_config()
    configure_logging(logging_config["level"], logging_config["json"])

    try:
        state = create_state(config)
        result = state.reconcile_bonuses()
    except PersistenceError as e:
        print(f"❌ Store check failed: {e}")
        return False

    print(
        f"✅ Store reachable: {len(state.drivers)} drivers, "
        f"{len(state.loads)} loads, {len(state.bonuses)} bonuses"
    )
    if result is not None:
        print(
            f"✅ Week of {result.week_start}: {len(result.created)} created, "
            f"{len(result.updated)} updated, {len(result.deleted)} deleted"
        )
    return True


def main():
    """Run all initialization checks."""
    print("=" * 60)
    print("Dispatcher Payroll - Initialization")
    print("=" * 60)
    print()

    checks = [
        ("Python version", check_python_version),
        ("Environment variables", load_env),
        ("Configuration file", check_config_file),
        ("Store", check_store),
    ]

    passed = 0
    failed = 0

    for name, check_func in checks:
        print(f"\nChecking {name}...")
        if check_func():
            passed += 1
        else:
            failed += 1

    print("\n" + "=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    if failed == 0:
        return 0
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
