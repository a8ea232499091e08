"""Configuration management for paths, audio and recognition settings."""

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# config.py is in allears/, .env is in project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=True)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Config:
    """Application configuration from environment variables."""

    # Local state file (key-value store backing the draft and last brief)
    STATE_FILE: str = os.getenv("ALLEARS_STATE_FILE") or str(Path.home() / ".allears" / "state.json")

    # Optional JSON catalog (app config, tiers, interview questions)
    CATALOG_FILE: Optional[str] = os.getenv("ALLEARS_CATALOG_FILE") or None

    # Where exported briefs land
    EXPORT_DIR: str = os.getenv("ALLEARS_EXPORT_DIR") or "."

    # Quiet period before a debounced save hits the store
    SAVE_DEBOUNCE_MS: int = _int_env("SAVE_DEBOUNCE_MS", 300)

    # Deepgram API key (required for voice dictation)
    DEEPGRAM_API_KEY: Optional[str] = os.getenv("DEEPGRAM_API_KEY")
    DEEPGRAM_MODEL: str = os.getenv("DEEPGRAM_MODEL", "nova-2")

    # Audio capture
    AUDIO_DEVICE: Optional[str] = os.getenv("AUDIO_DEVICE")
    AUDIO_SAMPLE_RATE: int = _int_env("AUDIO_SAMPLE_RATE", 48000)

    # Local shell (loopback only)
    HOST: str = os.getenv("ALLEARS_HOST", "127.0.0.1")
    PORT: int = _int_env("ALLEARS_PORT", 8010)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of problems."""
        problems = []

        if cls.CATALOG_FILE and not Path(cls.CATALOG_FILE).exists():
            problems.append(f"ALLEARS_CATALOG_FILE not found: {cls.CATALOG_FILE}")

        if cls.SAVE_DEBOUNCE_MS < 0:
            problems.append("SAVE_DEBOUNCE_MS must be >= 0")

        # Voice is optional; without a key the app runs in text-only mode
        if not cls.DEEPGRAM_API_KEY:
            problems.append("DEEPGRAM_API_KEY not set (voice dictation disabled)")

        return problems

    @classmethod
    def audio_device(cls) -> Optional[int | str]:
        """Device index when numeric, else the device name (or None for default)."""
        dev = (cls.AUDIO_DEVICE or "").strip()
        if not dev:
            return None
        return int(dev) if dev.isdigit() else dev
