"""kvtables core package."""

from .keys import decode_key, encode_key

__all__ = ["encode_key", "decode_key"]
