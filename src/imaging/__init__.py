"""
Image operations around the detector: region extraction, resizing,
container encode/decode and diagnostic persistence.
"""

from .extract import extract
from .resize import resize
from .codec import decode_image, encode_image
from .persist import IntermediateWriter

__all__ = [
    "extract",
    "resize",
    "decode_image",
    "encode_image",
    "IntermediateWriter",
]
