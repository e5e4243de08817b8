from __future__ import annotations

import numpy as np
from PIL import Image

DEFAULT_THRESHOLD = 245


def remove_background(image: Image.Image, threshold: int = DEFAULT_THRESHOLD) -> Image.Image:
    """Make near-white pixels transparent; everything else becomes fully opaque.

    A pixel is near-white when R, G and B are all strictly above threshold.
    Colour channels are never modified, so applying the filter twice is a no-op.
    """
    rgba = np.array(image.convert("RGBA"), dtype=np.uint8)
    near_white = np.all(rgba[:, :, :3] > threshold, axis=2)
    rgba[:, :, 3] = np.where(near_white, 0, 255).astype(np.uint8)
    return Image.fromarray(rgba)


def is_blank(image: Image.Image, threshold: int = DEFAULT_THRESHOLD) -> bool:
    return remove_background(image, threshold).getchannel("A").getbbox() is None


def flatten_signature(image: Image.Image, background: str = "white") -> Image.Image:
    """Opaque RGB copy of image laid over a white background.

    Transparent pixels of exported signatures are often stored as (0, 0, 0, 0)
    and would otherwise read as black ink.
    """
    if image.mode == "RGB":
        return image.copy()
    rgba = image.convert("RGBA")
    base = Image.new("RGBA", rgba.size, background)
    return Image.alpha_composite(base, rgba).convert("RGB")
