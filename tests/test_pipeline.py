"""Tests for the removal pipeline, configuration, image utilities and CLI."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np
import pandas as pd

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

# Check for optional dependencies
try:
    import cv2
    HAS_CV2 = True
except ImportError:
    HAS_CV2 = False

from grid_healer.config import GridRemovalConfig
from grid_healer.healer import GROUP_ID_FIRST, PixelState


def crossing_plot():
    """5x5 plot: a horizontal curve on row 2 crossed by a vertical grid line on column 2."""
    image = np.full((5, 5), 255, dtype=np.uint8)
    image[2, :] = 0
    image[:, 2] = 0
    mask = np.zeros((5, 5), dtype=np.uint8)
    mask[:, 2] = 255
    return image, mask


class TestGridRemovalConfig(unittest.TestCase):
    """Tests for configuration."""

    def test_defaults(self):
        model = GridRemovalConfig()
        self.assertEqual(model.close_distance, 10.0)
        self.assertEqual(model.close_distance_squared, 100.0)
        self.assertEqual(model.foreground_threshold, 128)

    def test_rejects_non_positive_distance(self):
        with self.assertRaises(ValueError):
            GridRemovalConfig(close_distance=0)
        with self.assertRaises(ValueError):
            GridRemovalConfig(close_distance=-2.5)

    def test_rejects_out_of_range_colors(self):
        with self.assertRaises(ValueError):
            GridRemovalConfig(heal_color=300)
        with self.assertRaises(ValueError):
            GridRemovalConfig(foreground_threshold=-1)

    def test_from_environment(self):
        env = {"GRID_HEAL_CLOSE_DISTANCE": "3.5", "GRID_HEAL_THRESHOLD": "100"}
        with mock.patch.dict(os.environ, env):
            model = GridRemovalConfig.from_environment()
        self.assertEqual(model.close_distance, 3.5)
        self.assertEqual(model.foreground_threshold, 100)


@unittest.skipUnless(HAS_CV2, "OpenCV (cv2) not installed")
class TestImageUtils(unittest.TestCase):
    """Tests for image utilities."""

    def test_pil_to_cv2(self):
        """Test PIL to CV2 conversion."""
        from grid_healer.image_utils import pil_to_cv2
        from PIL import Image

        pil_img = Image.new("RGB", (100, 50), color=(255, 0, 0))

        cv2_img = pil_to_cv2(pil_img)
        self.assertEqual(cv2_img.shape, (50, 100, 3))
        self.assertEqual(tuple(cv2_img[0, 0]), (0, 0, 255))

    def test_luminance_weights(self):
        """Test the (11R + 16G + 5B) / 32 luminance for color input."""
        from grid_healer.image_utils import to_grayscale
        from PIL import Image

        bgr = np.array([[(0, 255, 0), (0, 0, 255), (255, 0, 0), (255, 255, 255)]],
                       dtype=np.uint8)
        self.assertEqual(to_grayscale(bgr).tolist(), [[127, 87, 39, 255]])

        bgra = np.dstack([bgr, np.zeros((1, 4), dtype=np.uint8)])
        self.assertEqual(to_grayscale(bgra).tolist(), [[127, 87, 39, 255]])

        self.assertEqual(to_grayscale(Image.new("RGB", (1, 1), color=(0, 255, 0)))[0, 0], 127)

    def test_to_uint8(self):
        from grid_healer.image_utils import to_uint8

        self.assertEqual(to_uint8(np.array([[0, 32768, 65535]], dtype=np.uint16)).tolist(),
                         [[0, 128, 255]])
        self.assertEqual(to_uint8(np.array([[False, True]])).tolist(), [[0, 255]])
        self.assertEqual(to_uint8(np.array([[0.0, 0.5, 1.0]], dtype=np.float32)).tolist(),
                         [[0, 128, 255]])

        with self.assertRaises(ValueError):
            to_uint8(np.array([[-0.1, 0.5]]))
        with self.assertRaises(ValueError):
            to_uint8(np.array([[np.nan]]))
        with self.assertRaises(ValueError):
            to_uint8(np.array([[1, 2]], dtype=np.int32))

    def test_to_grayscale(self):
        from grid_healer.image_utils import to_grayscale
        from PIL import Image

        self.assertEqual(to_grayscale(np.zeros((4, 6), dtype=np.uint8)).shape, (4, 6))
        self.assertEqual(to_grayscale(np.zeros((4, 6, 3), dtype=np.uint8)).shape, (4, 6))
        self.assertEqual(to_grayscale(np.zeros((4, 6, 4), dtype=np.uint8)).shape, (4, 6))
        self.assertEqual(to_grayscale(Image.new("L", (6, 4), color=200))[0, 0], 200)

        with self.assertRaises(ValueError):
            to_grayscale(np.zeros((4, 6, 2), dtype=np.uint8))

    def test_binarize_mask(self):
        from grid_healer.image_utils import binarize_mask

        mask = np.array([[0, 127, 128, 255]], dtype=np.uint8)
        self.assertEqual(binarize_mask(mask).tolist(), [[False, False, True, True]])
        self.assertEqual(binarize_mask(mask > 0).tolist(), [[False, True, True, True]])

    def test_load_missing_image(self):
        from grid_healer.image_utils import load_image

        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                load_image(Path(tmp) / "missing.png")


@unittest.skipUnless(HAS_CV2, "OpenCV (cv2) not installed")
class TestRemoveGridAndHeal(unittest.TestCase):
    """Tests for the removal pipeline."""

    def test_curve_reconnected_across_grid_line(self):
        from grid_healer.pipeline import remove_grid_and_heal

        image, mask = crossing_plot()

        result = remove_grid_and_heal(image, mask, GridRemovalConfig(close_distance=5))

        self.assertEqual(result.pixels_erased, 5)
        self.assertEqual(result.regions, 2)
        self.assertEqual(result.lines_drawn, 1)

        # Grid column is white except where the curve was rebuilt
        np.testing.assert_array_equal(result.image[2], [0, 0, 0, 0, 0])
        np.testing.assert_array_equal(result.image[[0, 1, 3, 4], 2], [255, 255, 255, 255])

        grid = result.healer.grid
        self.assertEqual(grid.state(2, 2), PixelState.HEALED)
        self.assertEqual(grid.state(0, 2), PixelState.REMOVED)
        self.assertEqual(grid.state(2, 0), PixelState.FOREGROUND)

        # Source image is left untouched
        self.assertEqual(image[0, 2], 0)

    def test_gap_left_open_when_too_far(self):
        from grid_healer.pipeline import remove_grid_and_heal

        image, mask = crossing_plot()

        result = remove_grid_and_heal(image, mask, GridRemovalConfig(close_distance=2))

        self.assertEqual(result.regions, 2)
        self.assertEqual(result.lines_drawn, 0)
        self.assertEqual(result.image[2, 2], 255)

    def test_color_image(self):
        from grid_healer.pipeline import remove_grid_and_heal

        image, mask = crossing_plot()
        bgr = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        result = remove_grid_and_heal(bgr, cv2.cvtColor(mask, cv2.COLOR_GRAY2BGR))

        self.assertEqual(result.image.shape, (5, 5, 3))
        np.testing.assert_array_equal(result.image[2, 2], [0, 0, 0])
        np.testing.assert_array_equal(result.image[0, 2], [255, 255, 255])

    def test_mask_shape_mismatch(self):
        from grid_healer.pipeline import remove_grid_and_heal

        image, _ = crossing_plot()
        with self.assertRaises(ValueError):
            remove_grid_and_heal(image, np.zeros((4, 5), dtype=np.uint8))

    def test_export_regions(self):
        from grid_healer.pipeline import export_regions, remove_grid_and_heal

        image, mask = crossing_plot()
        result = remove_grid_and_heal(image, mask)

        with tempfile.TemporaryDirectory() as tmp:
            path = export_regions(result.healer, Path(tmp) / "out" / "regions.csv")
            df = pd.read_csv(path)

        self.assertEqual(df["group_id"].tolist(), [GROUP_ID_FIRST, GROUP_ID_FIRST + 1])
        self.assertEqual(df["anchor_row"].tolist(), [2, 2])
        self.assertEqual(df["anchor_col"].tolist(), [1, 3])


@unittest.skipUnless(HAS_CV2, "OpenCV (cv2) not installed")
class TestCli(unittest.TestCase):
    """Tests for the grid-heal command."""

    def _run(self, argv):
        from grid_healer import cli

        with mock.patch.object(sys, "argv", ["grid-heal"] + argv):
            with mock.patch("builtins.print"):
                with self.assertRaises(SystemExit) as ctx:
                    cli.main()
        return ctx.exception.code

    def test_heals_image_files(self):
        image, mask = crossing_plot()

        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            cv2.imwrite(str(tmp / "plot.png"), image)
            cv2.imwrite(str(tmp / "grid.png"), mask)

            code = self._run([str(tmp / "plot.png"), "--mask", str(tmp / "grid.png"),
                              "--regions-csv", str(tmp / "regions.csv")])

            self.assertEqual(code, 0)
            healed = cv2.imread(str(tmp / "plot_healed.png"), cv2.IMREAD_GRAYSCALE)
            self.assertEqual(healed[2, 2], 0)
            self.assertEqual(healed[0, 2], 255)
            self.assertTrue((tmp / "regions.csv").exists())

    def test_missing_image(self):
        with tempfile.TemporaryDirectory() as tmp:
            code = self._run([str(Path(tmp) / "nope.png"), "--mask", str(Path(tmp) / "m.png")])
        self.assertEqual(code, 1)

    def test_invalid_close_distance(self):
        image, mask = crossing_plot()

        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            cv2.imwrite(str(tmp / "plot.png"), image)
            cv2.imwrite(str(tmp / "grid.png"), mask)

            code = self._run([str(tmp / "plot.png"), "-m", str(tmp / "grid.png"),
                              "-q", "--close-distance", "0"])

        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
