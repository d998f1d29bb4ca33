"""Embedded image extraction — label icons and where the page draws them.

pdfplumber reports every image drawn on a page with its bounding box (the
translation and scale of the CTM at the ``Do`` operator) and the raw XObject
stream.  Streams are decoded by encoding variant and flattened onto an
opaque background so that icons compare equal regardless of how their
transparency was stored.
"""

from __future__ import annotations

import io
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image
from pdfminer.pdftypes import LITERALS_DCT_DECODE, LITERALS_JPX_DECODE, resolve1
from pdfminer.psparser import PSLiteral

from ..models import PlacedImage

log = logging.getLogger(__name__)


class ImageEncoding(str, Enum):
    """How an image XObject's pixel data is stored."""

    JPEG = "jpeg"
    JPEG2000 = "jpeg2000"
    RAW = "raw"


# PDF colour space name → (PIL mode, components)
_COLORSPACES: Dict[str, Tuple[str, int]] = {
    "DeviceRGB": ("RGB", 3),
    "CalRGB": ("RGB", 3),
    "DeviceGray": ("L", 1),
    "CalGray": ("L", 1),
    "DeviceCMYK": ("CMYK", 4),
}


def _literal_name(obj) -> str:
    obj = resolve1(obj)
    if isinstance(obj, PSLiteral):
        name = obj.name
        return name.decode("latin-1") if isinstance(name, bytes) else str(name)
    return str(obj)


def encoding_of(stream) -> ImageEncoding:
    """Classify *stream* by its last filter."""
    filters = stream.get_filters()
    if filters:
        last = filters[-1][0]
        if last in LITERALS_DCT_DECODE:
            return ImageEncoding.JPEG
        if last in LITERALS_JPX_DECODE:
            return ImageEncoding.JPEG2000
    return ImageEncoding.RAW


def _pil_mode(colorspace) -> Tuple[str, int]:
    """PIL mode and component count for a PDF colour space."""
    space = resolve1(colorspace)
    if isinstance(space, list):
        if not space:
            raise ValueError("empty colour space")
        name = _literal_name(space[0])
        if name == "ICCBased" and len(space) > 1:
            n = int(resolve1(resolve1(space[1]).get("N", 3)))
            return {1: ("L", 1), 3: ("RGB", 3), 4: ("CMYK", 4)}[n]
        if len(space) == 1:
            return _pil_mode(space[0])
    else:
        name = _literal_name(space)
    if name not in _COLORSPACES:
        raise ValueError(f"unsupported colour space {name}")
    return _COLORSPACES[name]


def _indexed_space(colorspace) -> Optional[Tuple[object, int, bytes]]:
    """``(base, hival, lookup)`` for an ``/Indexed`` space, else None."""
    space = resolve1(colorspace)
    if not isinstance(space, list) or len(space) < 4:
        return None
    if _literal_name(space[0]) not in ("Indexed", "I"):
        return None
    lookup = resolve1(space[3])
    if hasattr(lookup, "get_data"):
        lookup = lookup.get_data()
    elif isinstance(lookup, str):
        lookup = lookup.encode("latin-1")
    return space[1], int(resolve1(space[2])), bytes(lookup)


def _rgb_palette(base, hival: int, lookup: bytes) -> List[int]:
    """Expand an indexed lookup table to a 256-entry RGB palette."""
    mode, components = _pil_mode(base)
    count = hival + 1
    table = lookup[: count * components]
    if len(table) < count * components:
        raise ValueError("truncated colour lookup table")
    rgb = Image.frombytes(mode, (count, 1), table).convert("RGB").tobytes()
    palette = list(rgb)
    return palette + [0] * (768 - len(palette))


def _unpack_samples(
    data: bytes, size: Tuple[int, int], components: int, bits: int
) -> np.ndarray:
    """Sample values as an ``(h, w * components)`` integer array.

    Rows are padded to a whole byte; 16-bit samples are big-endian.
    """
    if bits not in (1, 2, 4, 8, 16):
        raise ValueError(f"unsupported bits per component {bits}")
    width, height = size
    per_row = width * components
    row_bytes = (per_row * bits + 7) // 8
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size < row_bytes * height:
        raise ValueError("truncated image data")
    rows = buf[: row_bytes * height].reshape(height, row_bytes)
    if bits == 8:
        return rows.astype(np.int32)
    if bits == 16:
        return rows.view(">u2").astype(np.int32)
    unpacked = np.unpackbits(rows, axis=1)[:, : per_row * bits]
    weights = 1 << np.arange(bits - 1, -1, -1)
    return (unpacked.reshape(height, per_row, bits) * weights).sum(axis=2)


def _decode_array(stream, components: int, default_max: float) -> List[float]:
    decode = resolve1(stream.get("Decode", None))
    if not decode:
        return [0.0, default_max] * components
    values = [float(resolve1(v)) for v in decode]
    if len(values) < 2 * components:
        raise ValueError("malformed decode array")
    return values


def _decode_encoded(stream, size: Tuple[int, int]) -> Image.Image:
    """JPEG / JPEG 2000: the stream body is a complete image file."""
    img = Image.open(io.BytesIO(stream.get_data()))
    img.load()
    return img


def _decode_raw(stream, size: Tuple[int, int]) -> Image.Image:
    """Uncompressed samples described by the XObject dictionary."""
    bits = int(resolve1(stream.get("BitsPerComponent", 8)))
    colorspace = stream.get("ColorSpace", None) or "DeviceGray"
    maxval = (1 << bits) - 1
    width, height = size

    indexed = _indexed_space(colorspace)
    if indexed is not None:
        base, hival, lookup = indexed
        samples = _unpack_samples(stream.get_data(), size, 1, bits)
        dmin, dmax = _decode_array(stream, 1, float(maxval))[:2]
        index = np.rint(dmin + samples * (dmax - dmin) / maxval)
        index = np.clip(index, 0, hival).astype(np.uint8)
        img = Image.frombytes("P", size, index.tobytes())
        img.putpalette(_rgb_palette(base, hival, lookup))
        return img.convert("RGB")

    mode, components = _pil_mode(colorspace)
    samples = _unpack_samples(stream.get_data(), size, components, bits)
    samples = samples.reshape(height, width, components).astype(np.float64)
    decode = _decode_array(stream, components, 1.0)
    lo = np.array(decode[0 : 2 * components : 2])
    hi = np.array(decode[1 : 2 * components : 2])
    levels = (lo + samples * (hi - lo) / maxval) * 255.0
    pixels = np.clip(np.rint(levels), 0, 255).astype(np.uint8)
    return Image.frombytes(mode, size, pixels.tobytes())


_DECODERS: Dict[ImageEncoding, Callable[..., Image.Image]] = {
    ImageEncoding.JPEG: _decode_encoded,
    ImageEncoding.JPEG2000: _decode_encoded,
    ImageEncoding.RAW: _decode_raw,
}


def _soft_mask(stream, size: Tuple[int, int]) -> Optional[Image.Image]:
    """The stream's ``/SMask`` as an ``L`` image sized like the base image."""
    ref = stream.get("SMask")
    if ref is None:
        return None
    mask_stream = resolve1(ref)
    mask_size = (
        int(resolve1(mask_stream.get("Width", size[0]))),
        int(resolve1(mask_stream.get("Height", size[1]))),
    )
    decoder = _DECODERS[encoding_of(mask_stream)]
    mask = decoder(mask_stream, mask_size).convert("L")
    if mask.size != size:
        mask = mask.resize(size)
    return mask


def flatten(
    img: Image.Image,
    background: Tuple[int, int, int] = (0, 0, 0),
    mask: Optional[Image.Image] = None,
) -> Image.Image:
    """Composite *img* onto an opaque *background*, returning RGB."""
    if mask is not None:
        img = img.convert("RGB")
        img.putalpha(mask)
    elif img.mode in ("LA", "PA", "P"):
        img = img.convert("RGBA")
    if img.mode != "RGBA":
        return img.convert("RGB")
    base = Image.new("RGB", img.size, background)
    base.paste(img, mask=img.getchannel("A"))
    return base


def decode_image(stream, background: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """Decode an image XObject stream to a flattened RGB bitmap."""
    size = (
        int(resolve1(stream.get("Width", 0))),
        int(resolve1(stream.get("Height", 0))),
    )
    img = _DECODERS[encoding_of(stream)](stream, size)
    return flatten(img, background, _soft_mask(stream, img.size))


def extract_page_images(
    page, background: Tuple[int, int, int] = (0, 0, 0)
) -> List[PlacedImage]:
    """Every decodable image drawn on a pdfplumber *page*.

    Placement is kept in PDF space (origin bottom-left); use
    :meth:`PlacedImage.flipped` for top-left coordinates.
    """
    placed: List[PlacedImage] = []
    for obj in page.images:
        stream = obj.get("stream")
        if stream is None:
            continue
        name = str(obj.get("name", ""))
        try:
            img = decode_image(stream, background)
        except (OSError, ValueError, KeyError) as exc:
            log.warning("Skipping undecodable image %s: %s", name, exc)
            continue
        x0 = float(obj["x0"])
        y0 = float(obj["y0"])
        placed.append(
            PlacedImage(
                x=x0,
                y=y0,
                width=float(obj["x1"]) - x0,
                height=float(obj["y1"]) - y0,
                image=img,
                name=name,
            )
        )
    log.info("Images: %d placed on page", len(placed))
    return placed
