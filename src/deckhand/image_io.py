"""
Image decode and input validation.

decode() is the only place a file path becomes pixels.  Everything that
can go wrong on the way (missing file, permissions, garbage data) is
reported as PathNotFound.  Scaling and native encoding belong to the
transport, which knows the hardware layout.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .errors import InvalidInput, PathNotFound

log = logging.getLogger(__name__)

ImageSource = Union[str, "os.PathLike[str]", Image.Image]


def decode(path: Union[str, "os.PathLike[str]"]) -> Image.Image:
    """Open and fully load an image file.

    Raises:
        InvalidInput: path is empty.
        PathNotFound: path is missing or not a decodable image.
    """
    if not path or not os.fspath(path):
        raise InvalidInput("Invalid path")

    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except (OSError, UnidentifiedImageError, ValueError) as e:
        log.debug("Decode of %s failed: %s", path, e)
        raise PathNotFound(f"The path provided wasn't found: {path}") from e


def load_image(source: Optional[ImageSource]) -> Image.Image:
    """Accept a decoded image or a path; reject empty input.

    Raises InvalidInput for None, an empty path or a zero-sized image.
    """
    if source is None:
        raise InvalidInput("No image supplied")

    if isinstance(source, Image.Image):
        image = source
    else:
        image = decode(source)

    if image.width == 0 or image.height == 0:
        raise InvalidInput(f"Image is empty ({image.width}x{image.height})")
    return image
