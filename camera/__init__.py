"""
Camera package: the webcam frame source and JPEG/base64 frame encoding.
"""

from camera.capture import CameraCapture, CameraFailureType
from camera.encoding import FrameEncodingError, encode_frame

__all__ = ["CameraCapture", "CameraFailureType", "FrameEncodingError", "encode_frame"]
