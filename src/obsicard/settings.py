"""
Pipeline configuration.

A single ``Settings`` value is passed explicitly to every component and
swapped through their ``reconfigure`` methods; nothing reads configuration
from global state after construction.

Environment Variables (see ``Settings.from_env``):
    GROQ_API_KEY: Groq API key (required for generation)
    LLM_MODEL: Model name or alias (default: llama-3.1-8b-instant)
    ANKI_CONNECT_URL: AnkiConnect endpoint (default: http://127.0.0.1:8765)
    ANKI_DECK_NAME: Target deck (default: ObsiCard)
    MAX_CHUNK_SIZE: Max estimated tokens per chunk (default: 3500)
    MAX_PARALLEL_REQUESTS: Max concurrent generation calls (default: 3)
    ENABLE_OFFLINE_QUEUE: Queue cards when Anki is unreachable (default: true)
    MAX_RETRIES: Max delivery re-attempts per queued card (default: 3)
    DEFAULT_TAGS: Comma-separated default tags (default: obsidian)
    AUTO_SYNC_TO_ANKI: Deliver cards right after approval (default: true)
    OBSICARD_QUEUE_PATH: File backing the offline queue
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

DEFAULT_QUEUE_PATH = os.path.join("~", ".obsicard", "sync_queue.json")


def _env_bool(env: Dict[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Dict[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def parse_tag_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated tag string into stripped, non-empty tags."""
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


@dataclass
class Settings:
    """Configuration consumed by the generator and the sync queue."""

    groq_api_key: str = ""
    groq_model: str = "llama-3.1-8b-instant"
    anki_connect_url: str = "http://127.0.0.1:8765"
    anki_deck_name: str = "ObsiCard"
    max_chunk_size: int = 3500
    max_parallel_requests: int = 3
    enable_offline_queue: bool = True
    max_retries: int = 3
    default_tags: List[str] = field(default_factory=lambda: ["obsidian"])
    auto_sync_to_anki: bool = True
    queue_path: str = DEFAULT_QUEUE_PATH

    def __post_init__(self):
        if self.max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if self.max_parallel_requests <= 0:
            raise ValueError(
                f"max_parallel_requests must be positive, got {self.max_parallel_requests}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries cannot be negative, got {self.max_retries}")

    @property
    def has_api_key(self) -> bool:
        return bool(self.groq_api_key and self.groq_api_key.strip())

    @property
    def default_tag(self) -> str:
        """First default tag, used when a card ends up with no tags at all."""
        for tag in self.default_tags:
            if tag and tag.strip():
                return tag.strip().lower()
        return "obsidian"

    def replace(self, **changes) -> "Settings":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        env = dict(os.environ if env is None else env)
        defaults = cls()

        default_tags = parse_tag_list(env.get("DEFAULT_TAGS"))

        return cls(
            groq_api_key=env.get("GROQ_API_KEY", defaults.groq_api_key),
            groq_model=env.get("LLM_MODEL") or defaults.groq_model,
            anki_connect_url=env.get("ANKI_CONNECT_URL") or defaults.anki_connect_url,
            anki_deck_name=env.get("ANKI_DECK_NAME") or defaults.anki_deck_name,
            max_chunk_size=_env_int(env, "MAX_CHUNK_SIZE", defaults.max_chunk_size),
            max_parallel_requests=_env_int(
                env, "MAX_PARALLEL_REQUESTS", defaults.max_parallel_requests
            ),
            enable_offline_queue=_env_bool(
                env, "ENABLE_OFFLINE_QUEUE", defaults.enable_offline_queue
            ),
            max_retries=_env_int(env, "MAX_RETRIES", defaults.max_retries),
            default_tags=default_tags or defaults.default_tags,
            auto_sync_to_anki=_env_bool(env, "AUTO_SYNC_TO_ANKI", defaults.auto_sync_to_anki),
            queue_path=env.get("OBSICARD_QUEUE_PATH") or defaults.queue_path,
        )
