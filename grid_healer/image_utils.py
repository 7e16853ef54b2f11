"""Image loading and conversion utilities."""

from pathlib import Path

import cv2
import numpy as np
from PIL import Image


def pil_to_cv2(pil_image: Image.Image) -> np.ndarray:
    """Convert PIL Image to OpenCV format (BGR, or 2D for grayscale modes)."""
    if pil_image.mode in ("L", "1"):
        return np.array(pil_image.convert("L"))

    if pil_image.mode != "RGB":
        pil_image = pil_image.convert("RGB")

    cv_image = np.array(pil_image)
    return cv2.cvtColor(cv_image, cv2.COLOR_RGB2BGR)


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Rescale an image array to the 0..255 uint8 range.

    uint16 keeps its high byte, bool maps to 0/255 and floats must lie in 0..1.

    Raises:
        ValueError: for floats outside 0..1 or any other dtype
    """
    if image.dtype == np.uint8:
        return image
    if image.dtype == bool:
        return image.astype(np.uint8) * 255
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        if image.size and (np.isnan(image).any() or image.min() < 0.0 or image.max() > 1.0):
            raise ValueError("Float images must have values in 0..1")
        return np.rint(image * 255).astype(np.uint8)

    raise ValueError(f"Unsupported image dtype: {image.dtype}")


def to_grayscale(image) -> np.ndarray:
    """Convert an image to a 2D uint8 grayscale array.

    Color pixels use the integer luminance (11*R + 16*G + 5*B) / 32, so a pure
    green (127) is still dark enough to count as foreground. Alpha is ignored.

    Args:
        image: PIL Image, 2D grayscale array, or BGR / BGRA array

    Returns:
        Grayscale image with the same height and width
    """
    if isinstance(image, Image.Image):
        image = pil_to_cv2(image)

    image = to_uint8(np.asarray(image))
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] in (3, 4):
        bgr = image[..., :3].astype(np.uint32)
        gray = (bgr[..., 2] * 11 + bgr[..., 1] * 16 + bgr[..., 0] * 5) // 32
        return gray.astype(np.uint8)

    raise ValueError(f"Unsupported image shape: {image.shape}")


def binarize_mask(mask, threshold: int = 127) -> np.ndarray:
    """Turn a mask image into a boolean array (True where the mask is set)."""
    if isinstance(mask, np.ndarray) and mask.dtype == bool:
        return mask if mask.ndim == 2 else mask.any(axis=2)
    gray = to_grayscale(mask)
    return gray > threshold


def load_image(path: str | Path) -> np.ndarray:
    """Load an image from disk in OpenCV BGR format.

    Raises:
        ValueError: if the file cannot be read as an image
    """
    img = cv2.imread(str(path))
    if img is None:
        raise ValueError(f"Could not load image: {path}")
    return img


def save_image(image: np.ndarray, path: str | Path) -> Path:
    """Write an image to disk, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(path), image):
        raise ValueError(f"Could not write image: {path}")
    return path
