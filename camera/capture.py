"""Webcam capture and management."""

import cv2
import logging
import sys
from enum import Enum
from typing import Optional, Tuple
import numpy as np
import config

logger = logging.getLogger(__name__)


class CameraFailureType(Enum):
    """Types of camera access failures for user-friendly error messages."""
    NONE = "none"  # No failure - camera works
    NO_HARDWARE = "no_hardware"  # Device could not be opened
    NO_FRAMES = "no_frames"  # Opened, but never produced a frame
    UNKNOWN = "unknown"  # Unknown/generic failure


class CameraCapture:
    """
    Manages webcam capture with context manager support.

    Acts as the video frame source: once open() succeeds and the first
    frame has been read, frames can be pulled on demand with read_frame().
    """

    def __init__(self, camera_index: int = None, width: int = None, height: int = None):
        """
        Initialize camera capture.

        Args:
            camera_index: Camera device index (default from config)
            width: Frame width in pixels (default from config)
            height: Frame height in pixels (default from config)
        """
        # Use explicit None check - 0 is a valid camera index!
        self.camera_index = camera_index if camera_index is not None else config.CAMERA_INDEX
        self.width = width if width is not None else config.FRAME_WIDTH
        self.height = height if height is not None else config.FRAME_HEIGHT
        self.cap: Optional[cv2.VideoCapture] = None
        self.is_opened = False
        self.failure_type: CameraFailureType = CameraFailureType.NONE

    def __enter__(self) -> 'CameraCapture':
        """Context manager entry - open the camera."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close the camera."""
        self.close()

    def open(self) -> bool:
        """
        Open the camera device and wait for the first frame.

        Blocking: call it from a worker thread when running on an event loop.

        Returns:
            True if the camera is open and producing frames, False otherwise.
        """
        try:
            logger.info(f"Opening camera at index {self.camera_index}...")
            # Use DirectShow backend on Windows for faster initialization
            # Fall back to default backend if DirectShow fails (some cameras don't support it)
            if sys.platform == "win32":
                self.cap = cv2.VideoCapture(self.camera_index, cv2.CAP_DSHOW)
                if not self.cap.isOpened():
                    logger.info("DirectShow backend failed, trying default backend...")
                    self.cap = cv2.VideoCapture(self.camera_index)
            else:
                self.cap = cv2.VideoCapture(self.camera_index)

            if not self.cap.isOpened():
                logger.error(f"Failed to open camera at index {self.camera_index}")
                # Release the capture object to prevent resource leak
                self.cap.release()
                self.cap = None
                self.failure_type = CameraFailureType.NO_HARDWARE
                return False

            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

            # Equivalent of the browser's "can play": a frame is available
            ret, _ = self.cap.read()
            if not ret:
                logger.error("Camera opened but returned no frame")
                self.cap.release()
                self.cap = None
                self.failure_type = CameraFailureType.NO_FRAMES
                return False

            self.is_opened = True
            self.failure_type = CameraFailureType.NONE
            logger.info(
                f"Camera opened: {int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
                f"{int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
            )
            return True

        except Exception as e:
            logger.error(f"Error opening camera: {e}")
            if self.cap is not None:
                self.cap.release()
                self.cap = None
            self.failure_type = CameraFailureType.UNKNOWN
            return False

    def close(self) -> None:
        """Close the camera and release resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None  # Prevent double-release on subsequent calls
            self.is_opened = False
            logger.info("Camera closed")

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read a single frame from the camera.

        Returns:
            Tuple of (success: bool, frame: numpy array or None)
        """
        if not self.is_opened or self.cap is None:
            logger.warning("Attempted to read from closed camera")
            return False, None

        try:
            ret, frame = self.cap.read()

            if not ret:
                logger.warning("Failed to read frame from camera")
                return False, None

            return True, frame

        except Exception as e:
            logger.error(f"Error reading frame: {e}")
            return False, None
