"""Synthetic image payloads shared by the test suite."""

from __future__ import annotations

import io

from PIL import Image
from PIL.TiffImagePlugin import IFDRational


def encode_image(image: Image.Image, fmt: str = "PNG", **save_kwargs: object) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def split_image(size: int = 64, *, vertical: bool = True) -> Image.Image:
    """White/black halves split down the middle (vertical) or across it."""

    image = Image.new("RGB", (size, size), color=(0, 0, 0))
    box = (0, 0, size // 2, size) if vertical else (0, 0, size, size // 2)
    image.paste((255, 255, 255), box)
    return image


def camera_jpeg(
    make: str = "Sony",
    model: str = "A7IV",
    f_number: IFDRational | None = IFDRational(18, 10),
    iso: int | None = 400,
    size: tuple[int, int] = (64, 48),
    color: tuple[int, int, int] = (120, 80, 200),
) -> bytes:
    """JPEG with a flat IFD0 EXIF block carrying camera and exposure tags."""

    exif = Image.Exif()
    exif[0x010F] = make
    exif[0x0110] = model
    if f_number is not None:
        exif[0x829D] = f_number
    if iso is not None:
        exif[0x8827] = iso
    image = Image.new("RGB", size, color=color)
    return encode_image(image, "JPEG", quality=90, exif=exif)
