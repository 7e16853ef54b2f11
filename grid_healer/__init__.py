"""Grid Healer - Reconnect curves cut by grid line removal."""

__version__ = "1.0.0"

from .config import GridRemovalConfig
from .healer import GROUP_ID_FIRST, GridHealer, PixelGrid, PixelState, Region
from .pipeline import HealResult, export_regions, remove_grid_and_heal

__all__ = [
    "GridHealer",
    "GridRemovalConfig",
    "GROUP_ID_FIRST",
    "HealResult",
    "PixelGrid",
    "PixelState",
    "Region",
    "export_regions",
    "remove_grid_and_heal",
    "__version__",
]
