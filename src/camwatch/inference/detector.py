"""
Object Detector Backends

The sampling loop only depends on the `Detector` protocol: an async
`detect(frame)` returning a list of normalized `Detection` objects.

Backends:
- SsdMobileNetDetector: COCO SSD MobileNet v2 through OpenCV's DNN module
- MockDetector: random detections for development without a model file
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from .detection import BoundingBox, Detection

logger = logging.getLogger(__name__)

# COCO label map used by the TensorFlow object detection model zoo (ids 1-90)
COCO_LABELS = {
    1: "person", 2: "bicycle", 3: "car", 4: "motorcycle", 5: "airplane",
    6: "bus", 7: "train", 8: "truck", 9: "boat", 10: "traffic light",
    11: "fire hydrant", 13: "stop sign", 14: "parking meter", 15: "bench",
    16: "bird", 17: "cat", 18: "dog", 19: "horse", 20: "sheep", 21: "cow",
    22: "elephant", 23: "bear", 24: "zebra", 25: "giraffe", 27: "backpack",
    28: "umbrella", 31: "handbag", 32: "tie", 33: "suitcase", 34: "frisbee",
    35: "skis", 36: "snowboard", 37: "sports ball", 38: "kite",
    39: "baseball bat", 40: "baseball glove", 41: "skateboard",
    42: "surfboard", 43: "tennis racket", 44: "bottle", 46: "wine glass",
    47: "cup", 48: "fork", 49: "knife", 50: "spoon", 51: "bowl",
    52: "banana", 53: "apple", 54: "sandwich", 55: "orange", 56: "broccoli",
    57: "carrot", 58: "hot dog", 59: "pizza", 60: "donut", 61: "cake",
    62: "chair", 63: "couch", 64: "potted plant", 65: "bed",
    67: "dining table", 70: "toilet", 72: "tv", 73: "laptop", 74: "mouse",
    75: "remote", 76: "keyboard", 77: "cell phone", 78: "microwave",
    79: "oven", 80: "toaster", 81: "sink", 82: "refrigerator", 84: "book",
    85: "clock", 86: "vase", 87: "scissors", 88: "teddy bear",
    89: "hair drier", 90: "toothbrush",
}


class DetectorError(RuntimeError):
    """Raised when a single detect call fails or times out."""


class Detector(Protocol):
    """Anything that turns a frame into detections."""

    async def detect(self, frame: np.ndarray) -> list[Detection]: ...


class SsdMobileNetDetector:
    """
    COCO SSD MobileNet v2 detector running on OpenCV's DNN module.

    Inference is blocking, so it runs on a single-worker thread pool:
    calls are serialized even if a caller times out and moves on.
    """

    INPUT_SIZE = (300, 300)

    def __init__(
        self,
        model_path: str | Path,
        config_path: str | Path,
        confidence_threshold: float = 0.5,
        timeout_seconds: float = 5.0,
        labels: dict[int, str] | None = None,
    ):
        """
        Load the network.

        Args:
            model_path: Frozen TensorFlow graph (.pb)
            config_path: OpenCV text graph (.pbtxt) describing it
            confidence_threshold: Minimum score to report
            timeout_seconds: Detect calls exceeding this raise DetectorError
            labels: Class ID to name mapping (COCO by default)
        """
        self.model_path = Path(model_path)
        self.config_path = Path(config_path)
        self.confidence_threshold = confidence_threshold
        self.timeout_seconds = timeout_seconds
        self.labels = labels or COCO_LABELS

        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found: {self.model_path}")
        if not self.config_path.exists():
            raise FileNotFoundError(f"Model config not found: {self.config_path}")

        self._model = cv2.dnn_DetectionModel(str(self.model_path), str(self.config_path))
        # Frames arrive as RGB, which is what the TF graph expects
        self._model.setInputParams(
            size=self.INPUT_SIZE,
            scale=1.0 / 127.5,
            mean=(127.5, 127.5, 127.5),
            swapRB=False,
        )
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")

        self._frame_count = 0
        self._total_inference_time = 0.0

        logger.info(
            f"SsdMobileNetDetector initialized: model={self.model_path.name}, "
            f"threshold={confidence_threshold}"
        )

    @property
    def average_inference_time(self) -> float:
        """Average inference time in milliseconds."""
        if self._frame_count == 0:
            return 0.0
        return self._total_inference_time / self._frame_count

    def _infer(self, frame: np.ndarray) -> list[Detection]:
        """Run the network synchronously (worker thread)."""
        start = time.perf_counter()
        h, w = frame.shape[:2]
        class_ids, scores, boxes = self._model.detect(
            frame, confThreshold=self.confidence_threshold
        )

        detections = []
        for class_id, score, box in zip(
            np.array(class_ids).flatten(), np.array(scores).flatten(), boxes
        ):
            name = self.labels.get(int(class_id))
            if name is None:
                continue
            bx, by, bw, bh = (float(v) for v in box)
            detections.append(
                Detection(
                    class_name=name,
                    score=float(score),
                    bbox=BoundingBox(x=bx / w, y=by / h, width=bw / w, height=bh / h),
                )
            )

        self._frame_count += 1
        self._total_inference_time += (time.perf_counter() - start) * 1000
        return detections

    async def detect(self, frame: np.ndarray) -> list[Detection]:
        """Detect objects in an RGB frame."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, self._infer, frame),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise DetectorError(
                f"Inference timed out after {self.timeout_seconds}s"
            ) from e
        except cv2.error as e:
            raise DetectorError(f"Inference failed: {e}") from e

    def get_status(self) -> dict:
        """Get detector status."""
        return {
            "backend": "ssd",
            "model": self.model_path.name,
            "confidence_threshold": self.confidence_threshold,
            "frames_processed": self._frame_count,
            "average_inference_ms": self.average_inference_time,
        }

    def cleanup(self) -> None:
        """Release the worker thread."""
        self._executor.shutdown(wait=False)
        logger.info("Detector resources released")


class MockDetector:
    """Random detections for development without a model file."""

    CLASSES = ["person", "dog", "cat", "chair", "cup"]

    def __init__(self, detection_probability: float = 0.3, seed: int | None = None):
        self.detection_probability = detection_probability
        self._rng = np.random.default_rng(seed)
        logger.info("[MOCK] Detector initialized")

    async def detect(self, frame: np.ndarray) -> list[Detection]:
        detections = []
        if self._rng.random() < self.detection_probability:
            w = float(self._rng.uniform(0.1, 0.4))
            h = float(self._rng.uniform(0.2, 0.6))
            detections.append(
                Detection(
                    class_name=str(self._rng.choice(self.CLASSES)),
                    score=float(self._rng.uniform(0.5, 0.99)),
                    bbox=BoundingBox(
                        x=float(self._rng.uniform(0.0, 1.0 - w)),
                        y=float(self._rng.uniform(0.0, 1.0 - h)),
                        width=w,
                        height=h,
                    ),
                )
            )
        return detections

    def get_status(self) -> dict:
        return {
            "backend": "mock",
            "detection_probability": self.detection_probability,
        }

    def cleanup(self) -> None:
        logger.info("[MOCK] Detector resources released")


def create_detector() -> SsdMobileNetDetector | MockDetector:
    """Create the configured detector backend."""
    from camwatch.config import detection_config

    if detection_config.backend == "mock":
        return MockDetector()
    return SsdMobileNetDetector(
        model_path=detection_config.model_path,
        config_path=detection_config.config_path,
        confidence_threshold=detection_config.confidence_threshold,
        timeout_seconds=detection_config.inference_timeout_seconds,
    )
