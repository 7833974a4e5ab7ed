"""
Named transformation presets and the ordered registry that dispatches to them.

A preset is matched against the transformation segment of the request path
(case-insensitive, unanchored) and yields the processor parameters to apply.
Each parameter string may carry its value (e.g. "-resize 500x500").
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .errors import PatternMismatch, TransformationNotFound

logger = logging.getLogger(__name__)

ParamBuilder = Callable[["re.Match[str]"], Sequence[str]]

# Shared by the "large" and "thumb" presets.
_OPTIMIZE_PARAMS = (
    "-filter Triangle",
    "-define filter:support=2",
    "-unsharp 0.25x0.25+8+0.065",
    "-dither None",
    "-posterize 136",
    "-quality 82",
    "-define jpeg:fancy-upsampling=off",
    "-define png:compression-filter=5",
    "-define png:compression-level=9",
    "-define png:compression-strategy=1",
    "-define png:exclude-chunk=all",
    "-interlace none",
    "-colorspace sRGB",
    "-strip",
)

_LARGE_PARAMS = _OPTIMIZE_PARAMS + (
    "-resize 500x500",
    "-gravity center",
    "-extent 500x500",
    "-fill white",
)

_DYNAMIC_PARAMS = (
    "-strip",
    "-sampling-factor 4:2:0",
    "-colorspace RGB",
    "-interlace none",
    "-gravity center",
    "-fill white",
    "-quality 85",
    "-format jpg",
)


@dataclass(frozen=True)
class TransformationSpec:
    """Immutable preset: match pattern + parameter list (optionally parametrized)."""

    name: str
    pattern: str
    base_params: tuple = ()
    builder: Optional[ParamBuilder] = None

    @property
    def regex(self) -> "re.Pattern[str]":
        return re.compile(self.pattern, re.IGNORECASE)

    def matches(self, transformation: str) -> bool:
        return self.regex.search(transformation) is not None

    def params(self, transformation: str) -> List[str]:
        params = list(self.base_params)
        if self.builder is None:
            return params
        match = self.regex.search(transformation)
        if match is None:
            raise PatternMismatch(
                f"Transformation {self.name} pattern does not match {transformation!r}"
            )
        params.extend(self.builder(match))
        return params


def _thumb_params(match: "re.Match[str]") -> Sequence[str]:
    width = match.group(1)
    return [f"-thumbnail {width}"]


def _dynamic_params(match: "re.Match[str]") -> Sequence[str]:
    width, height = match.group(1), match.group(2)
    return [f"-resize {width}x{height}", f"-extent {width}x{height}"]


SOURCE = TransformationSpec(name="source", pattern="source")
LARGE = TransformationSpec(name="large", pattern="large", base_params=_LARGE_PARAMS)
THUMB = TransformationSpec(
    name="thumb", pattern=r"thumb-(\d+)", base_params=_OPTIMIZE_PARAMS, builder=_thumb_params
)
DYNAMIC_WIDTH_HEIGHT = TransformationSpec(
    name="dynamic", pattern=r"w-(\d+)-h-(\d+)", base_params=_DYNAMIC_PARAMS, builder=_dynamic_params
)

BUILTIN_TRANSFORMATIONS = (SOURCE, LARGE, THUMB, DYNAMIC_WIDTH_HEIGHT)


class TransformationRegistry:
    """Ordered preset list; the first registered match wins."""

    def __init__(self, specs: Iterable[TransformationSpec] = ()):
        self._specs: List[TransformationSpec] = list(specs)

    def register(self, spec: TransformationSpec) -> None:
        self._specs.append(spec)

    def __iter__(self):
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def resolve(self, transformation: str) -> TransformationSpec:
        for spec in self._specs:
            if spec.matches(transformation):
                return spec
        logger.error("[transformations] transformation %s not found", transformation)
        raise TransformationNotFound(f"Transformation {transformation!r} not found")


def default_registry() -> TransformationRegistry:
    return TransformationRegistry(BUILTIN_TRANSFORMATIONS)
