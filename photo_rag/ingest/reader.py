"""Read image files from a directory into ImageRecords.

Each record carries the full file content as base64 and, when the EXIF
block has GPS tags, the decimal latitude/longitude.
"""

from __future__ import annotations

import base64
import math
from pathlib import Path
from typing import Iterable, Iterator

from loguru import logger
from PIL import Image
from PIL.ExifTags import GPSTAGS
from pillow_heif import register_heif_opener

register_heif_opener()  # enables Image.open() on .heic/.heif files

from photo_rag.models import Coordinates, ImageRecord

IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".svg", ".heic", ".heif",
}

_GPS_IFD = 0x8825


def _dms_to_decimal(dms, ref: str) -> float:
    """Convert a (degrees, minutes, seconds) triple to decimal degrees."""
    degrees, minutes, seconds = (float(v) for v in dms)
    decimal = degrees + minutes / 60.0 + seconds / 3600.0
    if ref in ("S", "W"):
        decimal = -decimal
    return decimal


def read_coordinates(path: str | Path) -> Coordinates | None:
    """Extract GPS coordinates from an image's EXIF data.

    Returns None when the image has no GPS block or it cannot be parsed.
    """
    try:
        with Image.open(path) as img:
            gps_raw = img.getexif().get_ifd(_GPS_IFD)
    except Exception as exc:
        logger.warning("Could not extract GPS coordinates from {}: {}", path, exc)
        return None

    if not gps_raw:
        return None

    gps = {GPSTAGS.get(tag, tag): value for tag, value in gps_raw.items()}
    lat_dms = gps.get("GPSLatitude")
    lat_ref = gps.get("GPSLatitudeRef")
    lon_dms = gps.get("GPSLongitude")
    lon_ref = gps.get("GPSLongitudeRef")
    if not all([lat_dms, lat_ref, lon_dms, lon_ref]):
        return None

    try:
        lat = _dms_to_decimal(lat_dms, lat_ref)
        lon = _dms_to_decimal(lon_dms, lon_ref)
    except (TypeError, ValueError, ZeroDivisionError) as exc:
        logger.warning("Malformed GPS data in {}: {}", path, exc)
        return None

    if math.isnan(lat) or math.isnan(lon):
        return None
    return Coordinates(latitude=lat, longitude=lon)


def read_image(path: str | Path) -> ImageRecord:
    """Read one image file into an ImageRecord."""
    path = Path(path)
    data = path.read_bytes()
    return ImageRecord(
        name=path.stem,
        path=str(path),
        extension=path.suffix.lower(),
        size=len(data),
        base64=base64.b64encode(data).decode("ascii"),
        coordinates=read_coordinates(path),
    )


def list_image_files(directory: str | Path) -> list[Path]:
    """Non-empty files in directory with a supported image extension, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"{directory} is not a directory")
    return sorted(
        f for f in directory.iterdir()
        if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS and f.stat().st_size > 0
    )


def iter_images(paths: Iterable[str | Path]) -> Iterator[ImageRecord]:
    """Read images one at a time, so only the current file's content is held."""
    for path in paths:
        yield read_image(path)


def format_file_size(num_bytes: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    if num_bytes == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(num_bytes / 1024 ** i, 2)
    return f"{value:g} {units[i]}"
