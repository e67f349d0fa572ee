from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from loguru import logger


class AvatarGenerator(Protocol):
    def generate(self, color: str) -> Optional[str]:
        ...


@dataclass(slots=True)
class NullAvatarGenerator:
    """Default generator: no avatar, the UI shows a placeholder."""

    def generate(self, color: str) -> Optional[str]:
        return None


def safe_generate(generator: Optional[AvatarGenerator], color: str) -> Optional[str]:
    """Run a generator, turning any failure into a missing avatar."""
    if generator is None:
        return None
    try:
        return generator.generate(color)
    except Exception as e:
        logger.warning(f"Avatar generation failed for color {color}: {e}")
        return None
