"""Grid removal pipeline: erase masked grid pixels, then heal the curves."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .config import GridRemovalConfig, config as default_config
from .healer import GridHealer
from .image_utils import binarize_mask


@dataclass
class HealResult:
    """Result of grid removal and healing."""
    image: np.ndarray
    healer: GridHealer
    pixels_erased: int
    regions: int
    lines_drawn: int


def remove_grid_and_heal(
    image: np.ndarray,
    grid_mask,
    model: Optional[GridRemovalConfig] = None,
    verbose: bool = False
) -> HealResult:
    """
    Erase grid line pixels from an image and reconnect the curves they cut.

    Args:
        image: Grayscale or BGR image
        grid_mask: Mask of grid line pixels (non-zero / light = grid), same height and width
        model: Grid removal settings (default: global config)
        verbose: If True, print progress messages

    Returns:
        HealResult with the healed copy of the image
    """
    def log(msg):
        if verbose:
            print(msg)

    model = model or default_config
    image = np.asarray(image)
    mask = binarize_mask(grid_mask)

    if mask.shape != image.shape[:2]:
        raise ValueError(f"Mask shape {mask.shape} does not match image shape {image.shape[:2]}")

    healer = GridHealer(image, model, verbose=verbose)
    output = image.copy()

    # Row-major, matching the order the grid lines are swept
    erased = np.argwhere(mask)
    for row, col in erased:
        row, col = int(row), int(col)
        output[row, col] = model.background_color
        healer.erase_pixel(col, row)

    log(f"Erased {len(erased)} grid pixels")

    lines = healer.heal(output)

    return HealResult(
        image=output,
        healer=healer,
        pixels_erased=len(erased),
        regions=len(healer.regions),
        lines_drawn=lines,
    )


def export_regions(
    healer: GridHealer,
    filepath: str | Path,
    decimal_places: int = None
) -> Path:
    """Export the healer's regions to a CSV file.

    Args:
        healer: Healer after heal() has run
        filepath: Output file path
        decimal_places: Rounding for centroids (default: from healer config)

    Returns:
        Path to created file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if decimal_places is None:
        decimal_places = healer.model.decimal_places

    df = healer.region_table().round({"centroid_row": decimal_places,
                                      "centroid_col": decimal_places})
    df.to_csv(filepath, index=False)

    return filepath
