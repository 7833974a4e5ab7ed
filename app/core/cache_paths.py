"""
Sharded on-disk layout for transformed images.

    {root}/{transformation}/{c1}/{c2}/{identifier}

The shard characters sit at positions len-6 and len-5 of the identifier, just
before a five-character suffix. That suffix is the "." separator plus the
extension, so for a three-letter extension ("abc.jpg") the shard is the last
two token characters.
Two levels of one character keep per-directory fan-out bounded. The path
depends on nothing but its inputs.
"""

from pathlib import Path, PurePosixPath
from typing import Tuple, Union
from urllib.parse import urlsplit

from .errors import InvalidRequest, StorageError
from .token_codec import TokenCodec

SUFFIX_LENGTH = 5
MIN_IDENTIFIER_LENGTH = SUFFIX_LENGTH + 1


def shard_prefix(identifier: str) -> Tuple[str, str]:
    """Return the two shard characters for an identifier.

    Requires at least six characters; anything shorter has no valid shard
    index and is rejected.
    """
    if len(identifier) < MIN_IDENTIFIER_LENGTH:
        raise InvalidRequest(
            f"Identifier {identifier!r} is too short to shard "
            f"(need at least {MIN_IDENTIFIER_LENGTH} characters)"
        )
    n = len(identifier) - SUFFIX_LENGTH
    return identifier[n - 1], identifier[n]


def cache_path(root: Union[str, Path], transformation: str, identifier: str) -> Path:
    first, second = shard_prefix(identifier)
    return Path(root) / transformation / first / second / identifier


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create all missing directories; an existing directory is success."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Directory {path} was not created: {exc}") from exc
    return path


def image_name(codec: TokenCodec, url: str) -> str:
    """Public image name for a source URL: 'c1/c2/{token}.{ext}'."""
    url_path = urlsplit(url).path
    if not url_path:
        raise InvalidRequest(f"Image url {url!r} has no path")
    extension = PurePosixPath(url_path).suffix.lstrip(".")
    if not extension:
        raise InvalidRequest(f"Image url {url!r} has no file extension")
    name = f"{codec.encode(url)}.{extension}"
    first, second = shard_prefix(name)
    return f"{first}/{second}/{name}"
