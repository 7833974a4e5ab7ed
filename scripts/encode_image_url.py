#!/usr/bin/env python3
"""
Build the gateway path for a source image URL using the configured key/IV.

    python scripts/encode_image_url.py https://cdn.example.com/a/photo.jpg --transformation thumb-200
    /images/thumb-200/x/Y/<token>.jpg

Add --decode to go the other way with a token or full request path.
"""

import argparse
import sys
from pathlib import Path, PurePosixPath

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.cache_paths import image_name  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.errors import GatewayError  # noqa: E402
from app.core.token_codec import TokenCodec  # noqa: E402


def build_request_path(codec: TokenCodec, url: str, transformation: str, prefix: str) -> str:
    return f"{prefix.rstrip('/')}/{transformation}/{image_name(codec, url)}"


def main() -> None:
    parser = argparse.ArgumentParser(description="Encode a source image URL into a gateway path")
    parser.add_argument("value", help="Source URL (or token/path with --decode)")
    parser.add_argument("--transformation", default="source", help="Transformation segment, e.g. thumb-200")
    parser.add_argument("--prefix", default=settings.ROUTE_PREFIX, help="Route prefix")
    parser.add_argument("--decode", action="store_true", help="Decode a token or request path instead")
    args = parser.parse_args()

    try:
        codec = TokenCodec(settings.CIPHER_KEY, settings.CIPHER_IV, settings.CIPHER)
        if args.decode:
            print(codec.decode(PurePosixPath(args.value).stem))
        else:
            print(build_request_path(codec, args.value, args.transformation, args.prefix))
    except GatewayError as exc:
        raise SystemExit(f"{exc.kind.value}: {exc}")


if __name__ == "__main__":
    main()
