"""
LC-3 Emulator - Program Image Loader

Object image format (.obj, as written by lc3as):
  word 0       origin address
  words 1..N   loaded contiguously at origin .. origin+N-1
All words are big-endian. There is no header, length field or checksum;
the image ends at end of file.
"""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from .config import MEMORY_SIZE

log = logging.getLogger('lc3.loader')


class ImageLoadError(Exception):
    """The program image could not be read or is malformed."""
    pass


@dataclass
class ProgramImage:
    """A parsed object image: load origin plus the words placed there."""
    origin: int
    words: List[int] = field(default_factory=list)
    source: str = '<bytes>'

    @property
    def end(self) -> int:
        """One past the last loaded address."""
        return self.origin + len(self.words)

    def __len__(self) -> int:
        return len(self.words)


def parse_image(data: bytes, source: str = '<bytes>') -> ProgramImage:
    """Parse raw image bytes.

    Raises ImageLoadError if there is no origin word, if the byte count
    is odd (last word truncated), or if the words would run past $FFFF.
    """
    if len(data) < 2:
        raise ImageLoadError(f"{source}: image too short to hold an origin word "
                             f"({len(data)} bytes)")
    if len(data) % 2:
        raise ImageLoadError(f"{source}: truncated image, odd byte count "
                             f"({len(data)} bytes)")

    count = len(data) // 2
    origin, *words = struct.unpack(f'>{count}H', data)
    if origin + len(words) > MEMORY_SIZE:
        raise ImageLoadError(
            f"{source}: {len(words)} words at x{origin:04X} run past the end of memory")
    return ProgramImage(origin=origin, words=words, source=source)


def read_image(path_or_data: Union[str, Path, bytes, bytearray]) -> ProgramImage:
    """Read an image from a file path or from raw bytes."""
    if isinstance(path_or_data, (bytes, bytearray)):
        return parse_image(bytes(path_or_data))

    path = Path(path_or_data)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise ImageLoadError(f"{path}: file not found") from e
    except OSError as e:
        raise ImageLoadError(f"{path}: cannot read image: {e}") from e

    image = parse_image(data, source=str(path))
    log.info(f"Read {path}: {len(image)} words at x{image.origin:04X}")
    return image
