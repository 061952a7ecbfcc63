"""Level computation.

Levels are flat 1000-XP bands: level = floor(xp / 1000) + 1.
"""

from __future__ import annotations

XP_PER_LEVEL = 1000


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    total_xp = max(total_xp, 0)
    level = total_xp // XP_PER_LEVEL + 1
    xp_into_level = total_xp - (level - 1) * XP_PER_LEVEL
    return {
        "level": level,
        "xp_into_level": xp_into_level,
        "xp_for_level": XP_PER_LEVEL,
        "next_level": level + 1,
        "next_level_xp": level * XP_PER_LEVEL,
    }
