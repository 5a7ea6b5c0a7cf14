"""Overlay a fading, outlined caption on every frame of an animated GIF."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from functools import reduce
from os import PathLike
from typing import Optional, Sequence, Tuple, Union

from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont

FONT_SIZE = 25
TEXT_Y = 22
FADE_START = 8
FADE_FRAMES = 20
FADE_END = 29
MAX_BLUR = 25.0

_OUTLINE_OFFSETS = tuple(
    (dx, dy) for dy in range(-2, 3) for dx in range(-2, 3) if (dx, dy) != (0, 0)
)
_MAX_CODES = 4096
_NETSCAPE_LOOP_FOREVER = b"\x21\xff\x0bNETSCAPE2.0\x03\x01\x00\x00\x00"

Colour = Tuple[int, int, int]


@dataclass(frozen=True)
class _Frame:
    left: int
    top: int
    width: int
    height: int
    palette: Optional[bytes]
    transparent: Optional[int]
    delay: int
    dispose: int
    needs_user_input: bool
    buffer: bytes


@dataclass(frozen=True)
class _Control:
    delay: int = 0
    dispose: int = 0
    transparent: Optional[int] = None
    needs_user_input: bool = False


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise ValueError("unexpected end of GIF data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack("<H", self.take(2))[0]

    def sub_blocks(self) -> bytes:
        parts = []
        while size := self.byte():
            parts.append(self.take(size))
        return b"".join(parts)


class _BitWriter:
    def __init__(self) -> None:
        self._out = bytearray()
        self._bits = 0
        self._count = 0

    def write(self, code: int, size: int) -> None:
        self._bits |= code << self._count
        self._count += size
        while self._count >= 8:
            self._out.append(self._bits & 0xFF)
            self._bits >>= 8
            self._count -= 8

    def getvalue(self) -> bytes:
        tail = bytes([self._bits & 0xFF]) if self._count else b""
        return bytes(self._out) + tail


def fade_alpha(frame_number: int) -> int:
    """Caption opacity (0-255) for a frame: hidden, then eased in, then solid."""
    if frame_number <= FADE_START:
        return 0
    if frame_number < FADE_END:
        progress = (frame_number - FADE_START) / FADE_FRAMES
        return int(progress**0.7 * 255.0)
    return 255


def find_nearest_color(colors: Sequence[Sequence[int]], target: Sequence[int]) -> int:
    """Index of the palette colour closest to ``target`` by weighted distance.

    Ties go to the earliest colour; an empty palette gives 0.
    """
    best_index = 0
    best_distance = None
    for index, color in enumerate(colors):
        dr, dg, db = (abs(c - t) for c, t in zip(color, target))
        distance = (dr * dr * 3 + dg * dg * 6 + db * db) // 10
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index


def add_text_to_gif(
    gif_data: bytes,
    text: str,
    font_path: Union[str, "PathLike[str]", None] = None,
) -> bytes:
    """Return a new looping GIF with ``text`` faded in near the top of each frame.

    ``font_path`` names a TrueType font; without it Pillow's default font is used.
    Raises ValueError for malformed GIF data, a frame without a palette or a
    font that cannot be loaded.
    """
    width, height, global_palette, frames = _decode_gif(bytes(gif_data))
    font = _load_font(font_path)
    text_x = width // 2

    output = []
    for number, frame in enumerate(frames):
        palette = frame.palette if frame.palette is not None else global_palette
        if palette is None:
            raise ValueError("No palette found")
        canvas = _frame_to_rgba(frame, palette, width, height)
        captioned = _caption(canvas, text, font, text_x, fade_alpha(number))
        output.append(
            replace(
                frame,
                left=0,
                top=0,
                width=width,
                height=height,
                palette=palette,
                buffer=_rgba_to_indexed(captioned, palette),
            )
        )
    return _encode_gif(width, height, output)


def _load_font(font_path):
    try:
        if font_path is None:
            return ImageFont.load_default(size=FONT_SIZE)
        return ImageFont.truetype(str(font_path), FONT_SIZE)
    except OSError as exc:
        raise ValueError("Failed to load font") from exc


def _caption(image: Image.Image, text: str, font, x: int, alpha: int) -> Image.Image:
    if alpha == 0:
        return image
    drawn = image.copy()
    draw = ImageDraw.Draw(drawn)
    for dx, dy in _OUTLINE_OFFSETS:
        draw.text((x + dx, TEXT_Y + dy), text, font=font, fill=(0, 0, 0, 255), anchor="ma")
    draw.text((x, TEXT_Y), text, font=font, fill=(255, 255, 255, 255), anchor="ma")
    if alpha == 255:
        return drawn
    return _fade_blend(image, drawn, alpha / 255.0)


def _fade_blend(original: Image.Image, drawn: Image.Image, alpha: float) -> Image.Image:
    bands = ImageChops.difference(original, drawn).split()
    mask = reduce(ImageChops.lighter, bands).point(lambda v: 255 if v else 0)

    blur = (1.0 - alpha) ** 1.2 * MAX_BLUR
    if blur > 0.1:
        mask = mask.filter(ImageFilter.GaussianBlur(blur))

    boosted = min(alpha * 3.0, 1.0)
    blended = Image.new("RGBA", original.size)
    blended.putdata(
        [
            _mix(before, after, level / 255.0 * boosted)
            for before, after, level in zip(original.getdata(), drawn.getdata(), mask.getdata())
        ]
    )
    return blended


def _mix(before, after, visibility: float) -> Tuple[int, int, int, int]:
    r, g, b = (
        int(old * (1.0 - visibility) + new * visibility)
        for old, new in zip(before[:3], after[:3])
    )
    return (r, g, b, 255)


def _frame_to_rgba(frame: _Frame, palette: bytes, width: int, height: int) -> Image.Image:
    colours = [
        palette[i * 3 : i * 3 + 3] + (b"\x00" if i == frame.transparent else b"\xff")
        for i in range(len(palette) // 3)
    ]
    canvas = bytearray(width * height * 4)
    visible = min(frame.width, width - frame.left)
    if visible > 0:
        for y in range(frame.height):
            img_y = frame.top + y
            if img_y >= height:
                break
            row = frame.buffer[y * frame.width : y * frame.width + visible]
            row_start = (img_y * width + frame.left) * 4
            for x, index in enumerate(row):
                if index < len(colours):
                    offset = row_start + x * 4
                    canvas[offset : offset + 4] = colours[index]
    return Image.frombytes("RGBA", (width, height), bytes(canvas))


def _rgba_to_indexed(image: Image.Image, palette: bytes) -> bytes:
    colours = [tuple(palette[i * 3 : i * 3 + 3]) for i in range(min(len(palette) // 3, 256))]
    exact = {colour: index for index, colour in enumerate(colours)}
    nearest: dict = {}

    indexed = bytearray()
    for r, g, b, a in image.getdata():
        if a < 128:
            indexed.append(0)
            continue
        key = (r, g, b)
        index = exact.get(key)
        if index is None:
            index = nearest.get(key)
            if index is None:
                index = nearest[key] = find_nearest_color(colours, key)
        indexed.append(index)
    return bytes(indexed)


def _decode_gif(data: bytes):
    reader = _Reader(data)
    if reader.take(6) not in (b"GIF87a", b"GIF89a"):
        raise ValueError("not a GIF file")
    width = reader.u16()
    height = reader.u16()
    flags = reader.byte()
    reader.take(2)
    global_palette = reader.take(3 << ((flags & 7) + 1)) if flags & 0x80 else None

    frames = []
    control = _Control()
    while True:
        block = reader.byte()
        if block == 0x3B:
            break
        if block == 0x21:
            label = reader.byte()
            body = reader.sub_blocks()
            if label == 0xF9 and len(body) >= 4:
                packed = body[0]
                control = _Control(
                    delay=body[1] | body[2] << 8,
                    dispose=(packed >> 2) & 7,
                    transparent=body[3] if packed & 1 else None,
                    needs_user_input=bool(packed & 2),
                )
        elif block == 0x2C:
            frames.append(_read_image(reader, control))
            control = _Control()
        else:
            raise ValueError(f"unknown GIF block 0x{block:02x}")
    return width, height, global_palette, frames


def _read_image(reader: _Reader, control: _Control) -> _Frame:
    left, top, width, height = reader.u16(), reader.u16(), reader.u16(), reader.u16()
    flags = reader.byte()
    palette = reader.take(3 << ((flags & 7) + 1)) if flags & 0x80 else None
    min_code_size = reader.byte()
    if not 1 <= min_code_size <= 8:
        raise ValueError(f"invalid LZW minimum code size {min_code_size}")
    pixel_count = width * height
    indices = _lzw_decode(reader.sub_blocks(), min_code_size, pixel_count)
    if flags & 0x40:
        indices = _deinterlace(indices.ljust(pixel_count, b"\x00"), width, height)
    return _Frame(
        left=left,
        top=top,
        width=width,
        height=height,
        palette=palette,
        transparent=control.transparent,
        delay=control.delay,
        dispose=control.dispose,
        needs_user_input=control.needs_user_input,
        buffer=indices,
    )


def _deinterlace(indices: bytes, width: int, height: int) -> bytes:
    order = [
        row
        for start, step in ((0, 8), (4, 8), (2, 4), (1, 2))
        for row in range(start, height, step)
    ]
    out = bytearray(len(indices))
    for source, target in enumerate(order):
        out[target * width : (target + 1) * width] = indices[source * width : (source + 1) * width]
    return bytes(out)


def _lzw_decode(data: bytes, min_code_size: int, limit: int) -> bytes:
    clear = 1 << min_code_size
    end = clear + 1

    def fresh_table():
        return [bytes((i,)) for i in range(clear)] + [b"", b""]

    table = fresh_table()
    code_size = min_code_size + 1
    previous: Optional[bytes] = None
    out = bytearray()
    bits = 0
    count = 0

    for byte in data:
        bits |= byte << count
        count += 8
        while count >= code_size:
            code = bits & ((1 << code_size) - 1)
            bits >>= code_size
            count -= code_size

            if code == clear:
                table = fresh_table()
                code_size = min_code_size + 1
                previous = None
                continue
            if code == end:
                return bytes(out[:limit])

            if previous is None:
                if code >= len(table):
                    raise ValueError("invalid LZW code")
                entry = table[code]
            else:
                if code < len(table):
                    entry = table[code]
                    added = previous + entry[:1]
                elif code == len(table):
                    entry = added = previous + previous[:1]
                else:
                    raise ValueError("invalid LZW code")
                if len(table) < _MAX_CODES:
                    table.append(added)
                    if len(table) == 1 << code_size and code_size < 12:
                        code_size += 1

            out += entry
            previous = entry
            if len(out) >= limit:
                return bytes(out[:limit])
    return bytes(out[:limit])


def _lzw_encode(indices: bytes, min_code_size: int) -> bytes:
    clear = 1 << min_code_size
    end = clear + 1
    writer = _BitWriter()
    code_size = min_code_size + 1
    next_code = end + 1
    table: dict = {}
    writer.write(clear, code_size)

    prefix: Optional[int] = None
    for index in indices:
        if prefix is None:
            prefix = index
            continue
        code = table.get((prefix, index))
        if code is not None:
            prefix = code
            continue
        writer.write(prefix, code_size)
        table[(prefix, index)] = next_code
        next_code += 1
        if next_code > 1 << code_size and code_size < 12:
            code_size += 1
        if next_code == _MAX_CODES:
            writer.write(clear, code_size)
            table.clear()
            next_code = end + 1
            code_size = min_code_size + 1
        prefix = index

    if prefix is not None:
        writer.write(prefix, code_size)
        if next_code == 1 << code_size and code_size < 12:
            code_size += 1
    writer.write(end, code_size)
    return writer.getvalue()


def _padded_palette(palette: bytes) -> Tuple[bytes, int]:
    entries = min(len(palette) // 3, 256)
    depth = max(1, (entries - 1).bit_length())
    table = palette[: entries * 3].ljust(3 << depth, b"\x00")
    return table, depth


def _sub_blocks(data: bytes) -> bytes:
    chunks = (data[start : start + 255] for start in range(0, len(data), 255))
    return b"".join(bytes((len(chunk),)) + chunk for chunk in chunks) + b"\x00"


def _encode_gif(width: int, height: int, frames: Sequence[_Frame]) -> bytes:
    out = bytearray(b"GIF89a")
    out += struct.pack("<HHBBB", width, height, 0, 0, 0)
    out += _NETSCAPE_LOOP_FOREVER
    for frame in frames:
        table, depth = _padded_palette(frame.palette or b"")
        packed = (
            (frame.dispose & 7) << 2
            | int(frame.needs_user_input) << 1
            | int(frame.transparent is not None)
        )
        out += struct.pack(
            "<BBBBHBB", 0x21, 0xF9, 4, packed, frame.delay, frame.transparent or 0, 0
        )
        out += struct.pack("<BHHHHB", 0x2C, 0, 0, frame.width, frame.height, 0x80 | (depth - 1))
        out += table
        min_code_size = max(2, depth)
        out.append(min_code_size)
        out += _sub_blocks(_lzw_encode(frame.buffer, min_code_size))
    out.append(0x3B)
    return bytes(out)