"""Average color extraction for album artwork."""

import asyncio
import logging
from io import BytesIO
from pathlib import Path

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from config import CALL_TIMEOUT, SAMPLE_SIZE
from mapper import Color

logger = logging.getLogger(__name__)


class SamplingError(Exception):
    """Artwork could not be fetched or decoded."""


def _load_bytes(artwork: str, timeout: float) -> bytes:
    if artwork.startswith(("http://", "https://")):
        try:
            response = requests.get(artwork, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SamplingError(f"Could not fetch artwork {artwork}: {e}") from e
        return response.content

    path = Path(artwork[len("file://"):] if artwork.startswith("file://") else artwork)
    try:
        return path.read_bytes()
    except OSError as e:
        raise SamplingError(f"Could not read artwork {path}: {e}") from e


def average_color(image: Image.Image) -> Color:
    """Square-root average over the opaque pixels of an image.

    Averaging squared channel values keeps bright, saturated areas from
    being washed out by dark ones.
    """
    image = image.convert("RGBA")
    image.thumbnail((SAMPLE_SIZE, SAMPLE_SIZE))

    pixels = np.asarray(image, dtype=np.float64).reshape(-1, 4)
    pixels = pixels[pixels[:, 3] > 0]
    if not len(pixels):
        raise SamplingError("Artwork has no opaque pixels")

    rgb = np.sqrt((pixels[:, :3] ** 2).mean(axis=0))
    red, green, blue = (int(round(c)) for c in np.clip(rgb, 0, 255))
    return Color(red, green, blue)


def sample_color_sync(artwork: str, timeout: float = CALL_TIMEOUT) -> Color:
    data = _load_bytes(artwork, timeout)
    try:
        with Image.open(BytesIO(data)) as img:
            return average_color(img)
    except (UnidentifiedImageError, OSError) as e:
        raise SamplingError(f"Artwork is not a decodable image: {e}") from e


class ColorSampler:
    """Computes a representative color for an artwork locator."""

    def __init__(self, timeout: float = CALL_TIMEOUT):
        self.timeout = timeout

    async def sample_average_color(self, artwork: str) -> Color:
        color = await asyncio.to_thread(sample_color_sync, artwork, self.timeout)
        logger.debug("Average color of %s is %s", artwork, color)
        return color
