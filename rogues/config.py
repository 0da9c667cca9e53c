"""
Configuration management for the battle simulator.
Uses pydantic-settings for environment variable parsing.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Simulator settings loaded from environment variables (prefix ROGUES_)."""

    # Board
    grid_width: int = Field(default=10, description="Board width in tiles")
    grid_height: int = Field(default=8, description="Board height in tiles")
    placement_columns: int = Field(
        default=2,
        description="Leftmost columns where the player places the starting army"
    )
    spawn_columns: int = Field(
        default=3,
        description="Rightmost columns where opponents spawn"
    )

    # Army selection
    army_points: int = Field(default=1000, description="Points for the starting army")

    # Mana economy
    starting_mana: int = Field(default=100)
    max_mana: int = Field(default=100)
    mana_regen: int = Field(default=1, description="Base mana regained per round")
    spells_per_round: int = Field(default=1)

    # Opponent scaling
    enemy_base_points: int = Field(default=1000)
    enemy_points_per_battle: int = Field(default=250)
    enemy_scale_per_battle: float = Field(
        default=0.15,
        description="Health/damage multiplier growth per battle"
    )
    boss_interval: int = Field(
        default=5,
        description="Every Nth battle spawns the warlord boss. 0 disables bosses"
    )

    # Rewards
    legendary_chance: float = Field(
        default=0.3,
        description="Chance that a legendary ability replaces a stat buff choice"
    )

    # Runtime
    seed: int = Field(default=42)
    time_compression: float = Field(
        default=1.0,
        description="Presentation speed-up (1.0 = real-time delays)"
    )
    log_level: str = Field(default="INFO")

    class Config:
        env_prefix = "ROGUES_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    The API module reads it once at import.
    """
    return Settings()
