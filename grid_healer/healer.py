"""
Grid Healer

Repairs curves that were cut by grid line removal. Removing a grid line
leaves gaps wherever a curve crossed it. The healer:
- Tracks the state of every pixel (background, foreground, removed, ...)
- Marks foreground pixels that touch a removed pixel as adjacent
- Groups touching adjacent pixels into regions with a centroid each
- Draws straight connecting lines between regions whose centroids are close

Coordinates are (row, col) throughout, and images are indexed [row, col].
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, Optional, Tuple

import numpy as np
import pandas as pd

from .config import GridRemovalConfig, config as default_config
from .image_utils import to_grayscale


class PixelState(IntEnum):
    """State tag of a single pixel."""
    BACKGROUND = 0
    FOREGROUND = 1
    ADJACENT = 2  # foreground pixel touching a removed pixel
    REMOVED = 3
    HEALED = 4
    GROUPED = 5  # member of a region; group id stored separately


# Group ids start at this value
GROUP_ID_FIRST = 100
NO_GROUP = -1

NEIGHBOR_OFFSETS = [
    (row_offset, col_offset)
    for row_offset in (-1, 0, 1)
    for col_offset in (-1, 0, 1)
    if (row_offset, col_offset) != (0, 0)
]

REGION_COLUMNS = ["group_id", "size", "centroid_row", "centroid_col", "anchor_row", "anchor_col"]


@dataclass
class Region:
    """A maximal 8-connected set of adjacent pixels."""
    group_id: int
    centroid: Tuple[float, float]  # mean (row, col) of all members
    anchor: Tuple[int, int]  # (row, col) where the flood fill started
    size: int


class PixelGrid:
    """Per-pixel state buffer for one image.

    Each cell holds a PixelState tag. Cells tagged GROUPED also carry the id
    of their region in a parallel array; every other cell holds NO_GROUP there.
    """

    def __init__(self, gray: np.ndarray, threshold: int = 128):
        """
        Build the grid from a grayscale image.

        Args:
            gray: 2D grayscale image
            threshold: Luminance above this value is background
        """
        gray = np.asarray(gray)
        if gray.ndim != 2:
            raise ValueError(f"Expected a 2D grayscale image, got shape {gray.shape}")

        self.rows, self.cols = gray.shape
        self.states = np.where(
            gray > threshold, PixelState.BACKGROUND, PixelState.FOREGROUND
        ).astype(np.uint8)
        self.groups = np.full(gray.shape, NO_GROUP, dtype=np.int64)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def state(self, row: int, col: int) -> PixelState:
        return PixelState(int(self.states[row, col]))

    def group_id(self, row: int, col: int) -> Optional[int]:
        """Group id of the cell, or None if it is not part of a region."""
        if self.states[row, col] != PixelState.GROUPED:
            return None
        return int(self.groups[row, col])

    def set_state(self, row: int, col: int, state: PixelState):
        if state == PixelState.GROUPED:
            raise ValueError("Use set_group to assign a cell to a region")
        self.states[row, col] = state
        self.groups[row, col] = NO_GROUP

    def set_group(self, row: int, col: int, group_id: int):
        self.states[row, col] = PixelState.GROUPED
        self.groups[row, col] = group_id

    def neighbors(self, row: int, col: int) -> Iterator[Tuple[int, int]]:
        """In-bounds 8-neighbors of a cell, in row-major order."""
        for row_offset, col_offset in NEIGHBOR_OFFSETS:
            row_neighbor = row + row_offset
            col_neighbor = col + col_offset
            if 0 <= row_neighbor < self.rows and 0 <= col_neighbor < self.cols:
                yield row_neighbor, col_neighbor

    def count(self, state: PixelState) -> int:
        return int(np.count_nonzero(self.states == state))

    def snapshot(self) -> np.ndarray:
        """Copy of the state tags."""
        return self.states.copy()


class GridHealer:
    """Reconnects curve pixels separated by removed grid lines.

    One instance handles one image: erase_pixel is called for every removed
    grid line pixel, then heal is called once.
    """

    def __init__(
        self,
        image_before,
        model: Optional[GridRemovalConfig] = None,
        verbose: bool = False
    ):
        """
        Args:
            image_before: Image before grid removal (grayscale, BGR or PIL)
            model: Grid removal settings (default: global config)
            verbose: If True, print progress messages
        """
        # Keep region ids out of the fixed state range
        assert len(PixelState) < GROUP_ID_FIRST

        self.model = model or default_config
        self.verbose = verbose
        self.grid = PixelGrid(to_grayscale(image_before), self.model.foreground_threshold)
        self.regions: Dict[int, Region] = {}
        self._group_id_next = GROUP_ID_FIRST

        self._log(f"GridHealer: {self.grid.cols}x{self.grid.rows} pixels, "
                  f"{self.grid.count(PixelState.FOREGROUND)} foreground")

    def _log(self, msg: str):
        if self.verbose:
            print(msg)

    def erase_pixel(self, col: int, row: int):
        """
        Mark a pixel as removed and flag its foreground neighbors as adjacent.

        Args:
            col: Column of the removed pixel
            row: Row of the removed pixel
        """
        if not self.grid.in_bounds(row, col):
            raise ValueError(f"Pixel (col={col}, row={row}) is outside the "
                             f"{self.grid.cols}x{self.grid.rows} image")

        self.grid.set_state(row, col, PixelState.REMOVED)

        for row_neighbor, col_neighbor in self.grid.neighbors(row, col):
            if self.grid.states[row_neighbor, col_neighbor] == PixelState.FOREGROUND:
                self.grid.set_state(row_neighbor, col_neighbor, PixelState.ADJACENT)

    def group_contiguous_adjacent_pixels(self) -> int:
        """
        Group touching adjacent pixels into regions.

        Cells are visited in row-major order, so group ids and anchors are
        reproducible for a given image.

        Returns:
            Number of regions created
        """
        self._log("GridHealer: grouping contiguous adjacent pixels")

        created = 0
        # np.argwhere returns cells in row-major order
        for row, col in np.argwhere(self.grid.states == PixelState.ADJACENT):
            row, col = int(row), int(col)
            if self.grid.states[row, col] != PixelState.ADJACENT:
                continue  # absorbed by an earlier region

            group_id = self._group_id_next
            count, row_sum, col_sum = self._flood_fill(group_id, row, col)

            self.regions[group_id] = Region(
                group_id=group_id,
                centroid=(row_sum / count, col_sum / count),
                anchor=(row, col),
                size=count,
            )
            self._group_id_next += 1
            created += 1

        self._log(f"  Found {created} regions")
        return created

    def _flood_fill(self, group_id: int, row: int, col: int) -> Tuple[int, float, float]:
        """Assign every adjacent cell 8-connected to (row, col) to a group.

        Returns:
            (count, row_sum, col_sum) over the visited cells
        """
        assert self.grid.states[row, col] == PixelState.ADJACENT

        count = 0
        row_sum = 0.0
        col_sum = 0.0

        self.grid.set_group(row, col, group_id)
        stack = [(row, col)]
        while stack:
            row_visit, col_visit = stack.pop()
            count += 1
            row_sum += row_visit
            col_sum += col_visit

            for row_neighbor, col_neighbor in self.grid.neighbors(row_visit, col_visit):
                if self.grid.states[row_neighbor, col_neighbor] == PixelState.ADJACENT:
                    self.grid.set_group(row_neighbor, col_neighbor, group_id)
                    stack.append((row_neighbor, col_neighbor))

        return count, row_sum, col_sum

    def connect_close_groups(self, image_to_heal: np.ndarray) -> int:
        """
        Draw lines between regions whose centroids are closer than close_distance.

        Each unordered pair of regions is checked once. Lines run between the
        anchors of the two regions; their pixels are marked HEALED in the grid
        and painted with the heal color in image_to_heal.

        Args:
            image_to_heal: Image modified in place, indexed [row, col]

        Returns:
            Number of lines drawn
        """
        self._log("GridHealer: connecting close groups")

        if tuple(image_to_heal.shape[:2]) != self.grid.shape:
            raise ValueError(f"Image shape {image_to_heal.shape[:2]} does not match "
                             f"grid shape {self.grid.shape}")

        close_distance_squared = self.model.close_distance_squared

        lines = 0
        regions = list(self.regions.values())
        for index_from, region_from in enumerate(regions):
            row_from, col_from = region_from.centroid

            for region_to in regions[index_from + 1:]:
                row_to, col_to = region_to.centroid

                separation_row = row_from - row_to
                separation_col = col_from - col_to
                separation_squared = separation_row * separation_row + separation_col * separation_col

                if separation_squared < close_distance_squared:
                    if self._draw_line(region_from.anchor, region_to.anchor, image_to_heal):
                        lines += 1

        self._log(f"  Drew {lines} connecting lines")
        return lines

    def _draw_line(self, pixel_from: Tuple[int, int], pixel_to: Tuple[int, int],
                   image_to_heal: np.ndarray) -> bool:
        row_from, col_from = pixel_from
        row_to, col_to = pixel_to

        # Chebyshev step count so diagonal lines have no gaps
        count = 1 + max(abs(row_from - row_to), abs(col_from - col_to))
        if count <= 1:
            return False

        for index in range(count):
            s = index / (count - 1)
            row = int(0.5 + (1.0 - s) * row_from + s * row_to)
            col = int(0.5 + (1.0 - s) * col_from + s * col_to)

            self.grid.set_state(row, col, PixelState.HEALED)
            image_to_heal[row, col] = self.model.heal_color

        return True

    def heal(self, image_to_heal: np.ndarray) -> int:
        """
        Group adjacent pixels, then connect close groups, in a single pass.

        Regions joined by a new line are not re-evaluated. Calling heal again
        is not a no-op: no new regions are found, and the lines between the
        existing regions are drawn again.

        Returns:
            Number of lines drawn
        """
        self._log("GridHealer: heal")

        self.group_contiguous_adjacent_pixels()
        return self.connect_close_groups(image_to_heal)

    def region_table(self) -> pd.DataFrame:
        """Regions as a DataFrame, one row per group in id order."""
        rows = [
            (r.group_id, r.size, r.centroid[0], r.centroid[1], r.anchor[0], r.anchor[1])
            for r in self.regions.values()
        ]
        return pd.DataFrame(rows, columns=REGION_COLUMNS)
