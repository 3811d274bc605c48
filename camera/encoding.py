"""Frame encoding for transmission."""

import base64

import cv2
import numpy as np

import config


class FrameEncodingError(Exception):
    """Raised when a frame cannot be encoded."""


def encode_frame(frame: np.ndarray, quality: int = None) -> str:
    """
    Encode a frame as base64 JPEG (no data-URI prefix).

    Args:
        frame: BGR image from camera
        quality: JPEG quality 0-100 (default from config)

    Returns:
        Base64 encoded JPEG string

    Raises:
        FrameEncodingError: If the frame is empty or OpenCV rejects it.
    """
    if frame is None or frame.size == 0:
        raise FrameEncodingError("Empty frame")

    quality = quality if quality is not None else config.JPEG_QUALITY
    ok, buffer = cv2.imencode('.jpg', frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise FrameEncodingError("JPEG encoding failed")

    return base64.b64encode(buffer).decode('utf-8')
