"""Poly1305 message authentication (RFC 8439) with wipeable state."""

from .errors import InvalidArgument, InvalidKeyLength, OutputTooShort, Poly1305Error
from .poly1305 import BLOCKBYTES, KEYBYTES, TAGBYTES, Poly1305, mac, verify
from .secure import SecretBuffer, SecureBuffer, secure_buffer

__version__ = "0.1.0"

__all__ = [
    "BLOCKBYTES",
    "KEYBYTES",
    "TAGBYTES",
    "Poly1305",
    "mac",
    "verify",
    "SecretBuffer",
    "SecureBuffer",
    "secure_buffer",
    "Poly1305Error",
    "InvalidKeyLength",
    "InvalidArgument",
    "OutputTooShort",
]
