"""
camera/capture.py — Retinal image capture & local storage
===========================================================
Grabs a single high-resolution frame from an OpenCV video device, encodes
it as JPEG and keeps a copy in the capture storage directory.  The result
carries a `data:image/jpeg;base64,...` URI, which is what the intake
validator and the risk-assessment client consume.

Filenames encode eye, mode and capture time:
    retinal_<left|right>_<macula|disc>_<epoch-ms>.jpg
"""

import base64
import os
import re
import time
from dataclasses import dataclass
from typing import Literal

import cv2
import numpy as np

from config import (
    CAPTURE_DEVICE_INDEX,
    CAPTURE_HEIGHT,
    CAPTURE_JPEG_QUALITY,
    CAPTURE_STORAGE_DIR,
    CAPTURE_WIDTH,
)
from utils.logger import get_logger

logger = get_logger("camera.capture")

CAPTURE_FILE_PATTERN = re.compile(r"retinal_(left|right)_(macula|disc)_\d+\.jpg")


class CaptureError(RuntimeError):
    """The device could not be opened or returned no frame."""


@dataclass(frozen=True)
class CaptureOptions:
    eye: Literal["left", "right"]
    mode: Literal["macula", "disc"]


@dataclass(frozen=True)
class CapturedImage:
    uri: str          # data URI, ready for validation / upload
    path: str         # where the JPEG was stored
    file_name: str


def capture_file_name(options: CaptureOptions, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"retinal_{options.eye}_{options.mode}_{timestamp_ms}.jpg"


def encode_jpeg(frame: np.ndarray, quality: int = CAPTURE_JPEG_QUALITY) -> bytes:
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise CaptureError("Failed to encode frame as JPEG.")
    return buffer.tobytes()


def frame_to_data_uri(frame: np.ndarray, quality: int = CAPTURE_JPEG_QUALITY) -> str:
    """BGR frame → `data:image/jpeg;base64,...`."""
    return bytes_to_data_uri(encode_jpeg(frame, quality))


def bytes_to_data_uri(raw: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64," + base64.b64encode(raw).decode("ascii")


def read_frame(device_index: int = CAPTURE_DEVICE_INDEX) -> np.ndarray:
    """Open the device, grab one frame at the requested resolution, release."""
    cap = cv2.VideoCapture(device_index)
    try:
        # The backend may ignore the requested resolution.
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, CAPTURE_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, CAPTURE_HEIGHT)
        if not cap.isOpened():
            raise CaptureError(
                f"Failed to open camera at index {device_index}. "
                "Check that the device is connected and not in use."
            )
        ret, frame = cap.read()
        if not ret or frame is None:
            raise CaptureError("Camera returned no frame.")
        return frame
    finally:
        cap.release()


def save_image(raw: bytes, file_name: str, storage_dir: str = CAPTURE_STORAGE_DIR) -> str:
    os.makedirs(storage_dir, exist_ok=True)
    path = os.path.join(storage_dir, file_name)
    with open(path, "wb") as f:
        f.write(raw)
    return path


def capture_retinal_image(
    options: CaptureOptions,
    device_index: int = CAPTURE_DEVICE_INDEX,
    storage_dir: str = CAPTURE_STORAGE_DIR,
) -> CapturedImage:
    """
    Capture, encode and store one retinal image.

    Raises CaptureError if the device cannot deliver a frame.
    """
    frame = read_frame(device_index)
    h, w = frame.shape[:2]
    raw = encode_jpeg(frame)
    file_name = capture_file_name(options)
    path = save_image(raw, file_name, storage_dir)
    logger.info("Captured %s (%dx%d, %d bytes) → %s", file_name, w, h, len(raw), path)
    return CapturedImage(uri=bytes_to_data_uri(raw), path=path, file_name=file_name)


def _stored_path(file_name: str, storage_dir: str) -> str:
    # Only names produced by capture_file_name; keeps lookups inside storage_dir.
    if not CAPTURE_FILE_PATTERN.fullmatch(file_name):
        raise ValueError(f"Not a capture file name: {file_name!r}")
    return os.path.join(storage_dir, file_name)


def load_stored_image(file_name: str, storage_dir: str = CAPTURE_STORAGE_DIR) -> str:
    """Read a stored capture back as a JPEG data URI."""
    with open(_stored_path(file_name, storage_dir), "rb") as f:
        return bytes_to_data_uri(f.read())


def delete_image(file_name: str, storage_dir: str = CAPTURE_STORAGE_DIR) -> bool:
    """Remove a stored capture; False if it was already gone."""
    path = _stored_path(file_name, storage_dir)
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Capture %s not found; nothing to delete.", path)
        return False
    logger.info("Deleted capture %s", path)
    return True
