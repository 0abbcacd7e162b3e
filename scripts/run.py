#!/usr/bin/env python3
"""DAO Notifier — Application Runner.

Checks the environment against .env.example and config/settings.yaml,
then launches the HTTP service.

Usage:
    python scripts/run.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import dotenv_values, load_dotenv

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

ENV_EXAMPLE = PROJECT_ROOT / ".env.example"
SETTINGS_FILE = PROJECT_ROOT / "config" / "settings.yaml"
RUNTIME_DIRS = ("data", "logs")

BANNER = r"""
╔══════════════════════════════════════════════════════════╗
║              DAO Notifier v1.0                           ║
║      Governance Events → Telegram Chats                  ║
╚══════════════════════════════════════════════════════════╝
"""


def read_env_example(path: Path = ENV_EXAMPLE) -> dict[str, str]:
    """Map each variable named in .env.example to its placeholder value.

    Args:
        path: The example file.

    Returns:
        {name: placeholder}; empty if the file is missing.
    """
    if not path.exists():
        return {}
    return {name: value or "" for name, value in dotenv_values(path).items()}


def find_env_problems(
    required: dict[str, str], environ: dict[str, str],
) -> dict[str, str]:
    """Find required variables that are unset or still hold their placeholder.

    Args:
        required: {name: placeholder} from .env.example.
        environ: The environment to check.

    Returns:
        {name: reason} for every variable that is not usable.
    """
    problems = {}
    for name, placeholder in required.items():
        value = environ.get(name, "").strip()
        if not value:
            problems[name] = "not set"
        elif placeholder and value == placeholder:
            problems[name] = "still the .env.example placeholder"
    return problems


def _mask(value: str) -> str:
    return value[:6] + "..." + value[-4:] if len(value) > 10 else "***"


def preflight_checks() -> bool:
    """Run pre-flight checks before starting the service.

    Returns:
        True if all checks pass, False otherwise.
    """
    os.chdir(str(PROJECT_ROOT))

    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        print("✅ .env loaded")
    else:
        print("⚠️  .env file not found, using the process environment")

    required = read_env_example()
    if not required:
        print(f"❌ {ENV_EXAMPLE.name} not found or empty")
        return False

    problems = find_env_problems(required, dict(os.environ))
    for name in required:
        if name in problems:
            print(f"❌ {name}: {problems[name]}")
        else:
            print(f"✅ {name} = {_mask(os.environ[name].strip())}")

    settings_ok = SETTINGS_FILE.exists()
    print(("✅ " if settings_ok else "❌ ") + f"{SETTINGS_FILE.relative_to(PROJECT_ROOT)}")

    for d in RUNTIME_DIRS:
        (PROJECT_ROOT / d).mkdir(exist_ok=True)

    return settings_ok and not problems


def main() -> None:
    """Entry point: run checks then start the service."""
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")

    from dao_notifier.main import main as app_main
    app_main()


if __name__ == "__main__":
    main()
