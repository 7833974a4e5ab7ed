#!/usr/bin/env python3
"""
Print a fresh base64 initialization vector for CIPHER_IV.

Usage: python scripts/generate_iv.py [--cipher aes-256-cfb]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings  # noqa: E402
from app.core.errors import CryptoError  # noqa: E402
from app.core.token_codec import TokenCodec  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a random IV for the token cipher")
    parser.add_argument("--cipher", default=settings.CIPHER, help="Cipher name, e.g. aes-256-cfb")
    args = parser.parse_args()

    try:
        iv = TokenCodec(key="", iv="", cipher=args.cipher).generate_iv()
    except CryptoError as exc:
        raise SystemExit(str(exc))
    print(iv)


if __name__ == "__main__":
    main()
