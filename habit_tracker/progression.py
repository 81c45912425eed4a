"""
XP and level arithmetic.

XP is cumulative. A user at ``level`` moves up once their XP reaches
``threshold(level)``; un-completing a day walks back down through the same
thresholds, so a completion followed by a removal is always a no-op.
"""
from dataclasses import dataclass

from .config import Settings


@dataclass(frozen=True)
class ProgressUpdate:
    new_xp: int
    new_level: int
    leveled_up: bool = False


@dataclass(frozen=True)
class ProgressionRules:
    xp_per_checkin: int = 100
    level_xp_step: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProgressionRules":
        return cls(xp_per_checkin=settings.xp_per_checkin, level_xp_step=settings.level_xp_step)

    def threshold(self, level: int) -> int:
        """XP needed to leave ``level``."""
        return self.level_xp_step * level

    def apply_completion(self, xp: int, level: int) -> ProgressUpdate:
        new_xp = xp + self.xp_per_checkin
        new_level = level
        leveled_up = False
        while new_xp >= self.threshold(new_level):
            new_level += 1
            leveled_up = True
        return ProgressUpdate(new_xp, new_level, leveled_up)

    def apply_removal(self, xp: int, level: int) -> ProgressUpdate:
        new_xp = max(0, xp - self.xp_per_checkin)
        new_level = level
        while new_level > 1 and new_xp < self.threshold(new_level - 1):
            new_level -= 1
        return ProgressUpdate(new_xp, new_level)
