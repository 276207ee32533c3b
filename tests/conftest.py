from __future__ import annotations

import base64
import io
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.chp108a import InspectionFormApp
from backend.chp108a.models import InspectionRecord


def _data_uri(image_format: str, mime: str, size: tuple[int, int] = (200, 80)) -> str:
    image = Image.new("RGB", size, "white")
    for x in range(20, size[0] - 20):
        image.putpixel((x, size[1] // 2), (0, 0, 0))
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/{mime};base64,{encoded}"


@pytest.fixture()
def app() -> InspectionFormApp:
    return InspectionFormApp.create(seed=1234)


@pytest.fixture()
def flat_app() -> InspectionFormApp:
    return InspectionFormApp.create(seed=1234, interactive_fields=False)


@pytest.fixture()
def record(app: InspectionFormApp) -> InspectionRecord:
    # Hydraulic brakes.
    return app.new_record("Tiffany 8")


@pytest.fixture()
def air_brake_record(app: InspectionFormApp) -> InspectionRecord:
    return app.new_record("Tiffany 20")


@pytest.fixture()
def signature_png() -> str:
    return _data_uri("PNG", "png")


@pytest.fixture()
def signature_jpeg() -> str:
    return _data_uri("JPEG", "jpeg")
