"""Grid removal configuration."""

import os
from dataclasses import dataclass


@dataclass
class GridRemovalConfig:
    """Settings for grid line removal and healing."""

    # Maximum centroid separation (pixels) for two regions to be connected
    close_distance: float = 10.0

    # Luminance above this value is background
    foreground_threshold: int = 128

    # Grayscale values painted into the output image
    heal_color: int = 0  # black
    background_color: int = 255  # white

    # Export settings
    decimal_places: int = 4

    def __post_init__(self):
        if self.close_distance <= 0:
            raise ValueError(f"close_distance must be positive, got {self.close_distance}")
        for name in ("foreground_threshold", "heal_color", "background_color"):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValueError(f"{name} must be in 0..255, got {value}")

    @property
    def close_distance_squared(self) -> float:
        return self.close_distance * self.close_distance

    @classmethod
    def from_environment(cls) -> "GridRemovalConfig":
        """Load configuration from environment variables."""
        return cls(
            close_distance=float(os.environ.get("GRID_HEAL_CLOSE_DISTANCE", "10.0")),
            foreground_threshold=int(os.environ.get("GRID_HEAL_THRESHOLD", "128")),
        )


# Global configuration instance
config = GridRemovalConfig()
