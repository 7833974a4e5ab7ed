"""
Raster processors: turn a source file into a destination file given a list
of ImageMagick-style parameter strings.

Processors never raise for a failed conversion; they report a ProcessorResult
and leave the policy to the caller.
"""

from __future__ import annotations

import logging
import re
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from PIL import Image, ImageColor

logger = logging.getLogger(__name__)

_GEOMETRY_RE = re.compile(r"^(\d*)(?:x(\d*))?")

# Options that take no value.
_FLAG_OPTIONS = {"-strip"}


@dataclass(frozen=True)
class ProcessorResult:
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ImageProcessor(Protocol):
    name: str

    def run(self, source: Path, params: Sequence[str], destination: Path) -> ProcessorResult:
        ...

    def available(self) -> bool:
        ...


def split_params(params: Sequence[str]) -> List[str]:
    """Flatten parameter strings ("-resize 500x500") into argv tokens."""
    tokens: List[str] = []
    for param in params:
        tokens.extend(shlex.split(param))
    return tokens


class ImageMagickProcessor:
    """Runs `convert SOURCE PARAMS... DESTINATION` without a shell."""

    name = "imagemagick"

    def __init__(self, binary: str = "convert", timeout: Optional[float] = 60.0):
        self.binary = binary
        self.timeout = timeout

    def command(self, source: Path, params: Sequence[str], destination: Path) -> List[str]:
        return [self.binary, str(source), *split_params(params), str(destination)]

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def run(self, source: Path, params: Sequence[str], destination: Path) -> ProcessorResult:
        try:
            args = self.command(source, params, destination)
        except ValueError as exc:
            return ProcessorResult(returncode=2, output=f"invalid parameters: {exc}")

        logger.info("[processor] execute %s", " ".join(shlex.quote(arg) for arg in args))
        try:
            result = subprocess.run(
                args,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return ProcessorResult(returncode=-1, output=f"{self.binary} timed out after {self.timeout}s")
        except OSError as exc:
            return ProcessorResult(returncode=127, output=f"{self.binary} could not be started: {exc}")
        return ProcessorResult(returncode=result.returncode, output=(result.stdout or "").strip())


def _parse_geometry(value: str) -> Tuple[Optional[int], Optional[int]]:
    match = _GEOMETRY_RE.match(value)
    if not match or not (match.group(1) or match.group(2)):
        raise ValueError(f"invalid geometry {value!r}")
    width = int(match.group(1)) if match.group(1) else None
    height = int(match.group(2)) if match.group(2) else None
    return width, height


def _fit(size: Tuple[int, int], width: Optional[int], height: Optional[int]) -> Tuple[int, int]:
    """Scale `size` to fit inside width x height, keeping aspect ratio."""
    src_w, src_h = size
    scales = []
    if width:
        scales.append(width / src_w)
    if height:
        scales.append(height / src_h)
    scale = min(scales)
    return max(1, round(src_w * scale)), max(1, round(src_h * scale))


class PillowProcessor:
    """In-process backend covering the options used by the built-in presets.

    Understands -thumbnail, -resize, -extent, -gravity, -fill/-background and
    -quality; -strip is implicit since metadata is never copied.
    """

    name = "pillow"

    def available(self) -> bool:
        return True

    def run(self, source: Path, params: Sequence[str], destination: Path) -> ProcessorResult:
        try:
            options = self._options(split_params(params))
            self._convert(Path(source), Path(destination), options)
        except (OSError, ValueError) as exc:
            return ProcessorResult(returncode=1, output=str(exc))
        return ProcessorResult(returncode=0)

    @staticmethod
    def _options(tokens: List[str]) -> List[Tuple[str, Optional[str]]]:
        options: List[Tuple[str, Optional[str]]] = []
        idx = 0
        while idx < len(tokens):
            option = tokens[idx]
            if not option.startswith("-"):
                raise ValueError(f"unexpected argument {option!r}")
            if option in _FLAG_OPTIONS:
                options.append((option, None))
                idx += 1
                continue
            if idx + 1 >= len(tokens):
                raise ValueError(f"option {option} requires a value")
            options.append((option, tokens[idx + 1]))
            idx += 2
        return options

    def _convert(self, source: Path, destination: Path, options: List[Tuple[str, Optional[str]]]) -> None:
        image_format = Image.registered_extensions().get(destination.suffix.lower())
        if image_format is None:
            raise ValueError(f"no image format for {destination.name}")

        gravity = "northwest"
        fill = "white"
        quality = None

        with Image.open(source) as opened:
            im = opened.copy()

        for option, value in options:
            if option in ("-thumbnail", "-resize"):
                width, height = _parse_geometry(value)
                im = im.resize(_fit(im.size, width, height), Image.Resampling.LANCZOS)
            elif option == "-extent":
                width, height = _parse_geometry(value)
                im = self._extent(im, width or im.width, height or im.height, gravity, fill)
            elif option == "-gravity":
                gravity = value.lower()
            elif option in ("-fill", "-background"):
                fill = value
            elif option == "-quality":
                quality = int(value)
            else:
                logger.debug("[processor] pillow ignores %s %s", option, value or "")

        if image_format == "JPEG" and im.mode not in ("RGB", "L"):
            im = im.convert("RGB")

        save_kwargs = {}
        if quality is not None:
            save_kwargs["quality"] = quality
        im.save(destination, image_format, **save_kwargs)

    @staticmethod
    def _extent(im: Image.Image, width: int, height: int, gravity: str, fill: str) -> Image.Image:
        mode = "RGBA" if im.mode in ("RGBA", "LA", "P") else "RGB"
        color = ImageColor.getcolor(fill, mode)
        canvas = Image.new(mode, (width, height), color)
        if gravity == "center":
            offset = ((width - im.width) // 2, (height - im.height) // 2)
        else:
            offset = (0, 0)
        canvas.paste(im.convert(mode), offset)
        return canvas


def build_processor(kind: str, binary: str = "convert", timeout: Optional[float] = 60.0) -> ImageProcessor:
    if kind == "pillow":
        return PillowProcessor()
    if kind == "imagemagick":
        return ImageMagickProcessor(binary=binary, timeout=timeout)
    raise ValueError(f"Unknown processor {kind!r}")
