import base64
import json

import cv2
import numpy as np
import pytest


def encode_image(width: int, height: int, ext: str = ".jpg") -> bytes:
    """Encode a blank BGR image of the given size."""
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, :, 2] = 120   # reddish fundus-like tint, keeps JPEG honest
    ok, buf = cv2.imencode(ext, frame)
    assert ok
    return buf.tobytes()


def image_data_uri(width: int, height: int, fmt: str = "jpeg") -> str:
    ext = ".png" if fmt == "png" else ".jpg"
    raw = encode_image(width, height, ext)
    return f"data:image/{fmt};base64," + base64.b64encode(raw).decode("ascii")


@pytest.fixture
def valid_jpeg_uri() -> str:
    return image_data_uri(1024, 1024, "jpeg")


@pytest.fixture
def assessment_payload() -> dict:
    return {
        "imageQualityScore": 82,
        "strokeRiskPercentage": 14,
        "riskLevel": "Moderate",
        "riskFactors": {
            "vesselCaliberAbnormalities": True,
            "arteriovenousNicking": False,
            "cottonWoolSpots": False,
            "retinalHemorrhages": False,
            "exudates": False,
            "opticDiscAbnormalities": False,
            "findings": ["Mild arteriolar narrowing"],
        },
        "clinicalRecommendations": ["Blood pressure review", "Repeat imaging in 12 months"],
        "confidence": 71,
    }


def completion_response(arguments) -> dict:
    """Chat-completions body carrying a forced tool call."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "assess_stroke_risk", "arguments": arguments},
                        }
                    ],
                }
            }
        ]
    }
