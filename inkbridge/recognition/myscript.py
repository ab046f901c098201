"""
MyScript handwriting recognition client for Inkbridge.

This module sends pen strokes to the MyScript iink batch REST API and turns
the JIIX response into recognized lines whose word geometry is expressed in
the same page coordinates as the strokes.
"""

import hashlib
import hmac
import httpx
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import config
from ..errors import RecognitionError
from ..models import RecognizedLine, Stroke, WordBox


DPI = 96
# 1 Ncode unit is 2.371 mm on paper
NCODE_TO_MM = 2.371
MM_TO_PIXELS = DPI / 25.4
NCODE_TO_PIXELS = NCODE_TO_MM * MM_TO_PIXELS
PADDING = 10  # pixels
# Word heights are in page units; a one-level indent is 1.5 median word heights
INDENT_FACTOR = 1.5


def sign_request(app_key: str, hmac_key: str, message: str) -> str:
    """HMAC-SHA512 signature MyScript expects, keyed by application key + HMAC key."""
    key = (app_key + hmac_key).encode("utf-8")
    return hmac.new(key, message.encode("utf-8"), hashlib.sha512).hexdigest()


@dataclass
class CoordinateFrame:
    """
    Maps between page (Ncode) coordinates and the pixel canvas sent to MyScript.
    """
    min_x: float
    min_y: float

    def to_pixels(self, x: float, y: float) -> Tuple[float, float]:
        return (
            (x - self.min_x) * NCODE_TO_PIXELS + PADDING,
            (y - self.min_y) * NCODE_TO_PIXELS + PADDING,
        )

    def mm_to_page(self, x_mm: float, y_mm: float) -> Tuple[float, float]:
        # JIIX geometry is expressed in millimetres of the submitted canvas
        x_px = x_mm * MM_TO_PIXELS
        y_px = y_mm * MM_TO_PIXELS
        return (
            (x_px - PADDING) / NCODE_TO_PIXELS + self.min_x,
            (y_px - PADDING) / NCODE_TO_PIXELS + self.min_y,
        )

    @staticmethod
    def mm_length_to_page(length_mm: float) -> float:
        return length_mm / NCODE_TO_MM


def build_request(strokes: Sequence[Stroke], lang: str = "en_US") -> Tuple[Dict[str, Any], CoordinateFrame]:
    """
    Build the batch recognition request body for a set of strokes.

    Args:
        strokes: Strokes to recognize (all from the same page)
        lang: Recognition language

    Returns:
        The request body and the frame needed to map results back onto the page

    Raises:
        RecognitionError: If there is nothing to recognize
    """
    samples = [sample for stroke in strokes for sample in stroke.samples]
    if not samples:
        raise RecognitionError("No strokes to transcribe")

    frame = CoordinateFrame(
        min_x=min(s.x for s in samples),
        min_y=min(s.y for s in samples),
    )
    max_x = max(s.x for s in samples)
    max_y = max(s.y for s in samples)

    stroke_groups = []
    for stroke in strokes:
        if not stroke.samples:
            continue
        xs, ys, ts, ps = [], [], [], []
        base_time = stroke.start_time or 0
        for index, sample in enumerate(stroke.samples):
            px, py = frame.to_pixels(sample.x, sample.y)
            xs.append(px)
            ys.append(py)
            ts.append(sample.timestamp if sample.timestamp is not None else base_time + index)
            ps.append(sample.pressure)
        stroke_groups.append({"x": xs, "y": ys, "t": ts, "p": ps})

    body = {
        "xDPI": DPI,
        "yDPI": DPI,
        "contentType": "Text",
        "configuration": {
            "lang": lang,
            "text": {
                "guides": {"enable": False},
                "mimeTypes": ["text/plain", "application/vnd.myscript.jiix"]
            },
            "export": {
                "jiix": {
                    "bounding-box": True,
                    "strokes": True,
                    "text": {"chars": True, "words": True}
                }
            }
        },
        "strokeGroups": stroke_groups,
        "width": math.ceil((max_x - frame.min_x) * NCODE_TO_PIXELS + PADDING * 2),
        "height": math.ceil((max_y - frame.min_y) * NCODE_TO_PIXELS + PADDING * 2),
    }
    return body, frame


def _word_box(word: Dict[str, Any], frame: CoordinateFrame) -> Optional[WordBox]:
    box = word.get("bounding-box")
    if not box:
        return None
    x, y = frame.mm_to_page(float(box.get("x", 0.0)), float(box.get("y", 0.0)))
    return WordBox(
        label=word.get("label", ""),
        x=x,
        y=y,
        width=frame.mm_length_to_page(float(box.get("width", 0.0))),
        height=frame.mm_length_to_page(float(box.get("height", 0.0))),
    )


def parse_response(data: Dict[str, Any], frame: CoordinateFrame) -> List[RecognizedLine]:
    """
    Split a JIIX response into recognized lines.

    MyScript's label carries the line breaks; non-blank words are consumed in
    order, as many per line as the line has words. A line whose words carry no
    bounding boxes is still returned, without Y-bounds.

    Args:
        data: Decoded JIIX response
        frame: Frame used when the request was built

    Returns:
        Lines in the order MyScript returned them
    """
    label = data.get("label") or ""
    words = [w for w in data.get("words") or [] if (w.get("label") or "").strip()]

    raw_lines: List[Tuple[str, List[WordBox]]] = []
    cursor = 0
    for line_text in label.split("\n"):
        if not line_text.strip():
            continue
        count = len(line_text.split())
        line_words = words[cursor:cursor + count]
        cursor += count

        boxes = [box for box in (_word_box(w, frame) for w in line_words) if box is not None]
        raw_lines.append((line_text.strip(), boxes))

    positioned = [boxes for _, boxes in raw_lines if boxes]
    indent_unit = 0.0
    base_x = 0.0
    if positioned:
        base_x = min(min(box.x for box in boxes) for boxes in positioned)
        heights = sorted(box.height for boxes in positioned for box in boxes)
        indent_unit = heights[len(heights) // 2] * INDENT_FACTOR

    lines = []
    for text, boxes in raw_lines:
        indent_level = 0
        if boxes and indent_unit > 0:
            indent_level = max(0, round((min(box.x for box in boxes) - base_x) / indent_unit))
        lines.append(RecognizedLine.from_words(text, boxes, indent_level))

    return lines


class MyScriptClient:
    """
    Asynchronous client for the MyScript iink batch recognition API.
    """

    def __init__(self, app_key: Optional[str] = None, hmac_key: Optional[str] = None,
                 api_url: Optional[str] = None, lang: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the recognition client.

        Args:
            app_key: MyScript application key (defaults to config value)
            hmac_key: MyScript HMAC key (defaults to config value)
            api_url: Batch endpoint URL (defaults to config value)
            lang: Recognition language (defaults to config value)
            timeout: Request timeout in seconds (defaults to config value)
            transport: Optional httpx transport, used to substitute the service in tests
        """
        self.app_key = config.myscript_app_key if app_key is None else app_key
        self.hmac_key = config.myscript_hmac_key if hmac_key is None else hmac_key
        self.api_url = api_url or config.myscript_api_url
        self.lang = lang or config.myscript_lang
        self.client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.myscript_timeout,
            transport=transport
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        if not self.app_key or not self.hmac_key:
            raise RecognitionError("MyScript API credentials not configured")

        message = json.dumps(body)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, application/vnd.myscript.jiix",
            "applicationKey": self.app_key,
            "hmac": sign_request(self.app_key, self.hmac_key, message),
        }

        try:
            response = await self.client.post(self.api_url, content=message, headers=headers)
        except httpx.TimeoutException as e:
            raise RecognitionError(f"MyScript request timed out: {e}") from e
        except httpx.RequestError as e:
            raise RecognitionError(f"Failed to connect to MyScript: {e}") from e

        if response.is_error:
            raise RecognitionError(
                f"MyScript API error ({response.status_code}): {response.text}",
                status_code=response.status_code
            )
        return response

    async def recognize(self, strokes: Sequence[Stroke]) -> List[RecognizedLine]:
        """
        Recognize a batch of strokes from one page.

        One attempt is made; failures are reported, not retried.

        Args:
            strokes: Strokes that have not been recognized before

        Returns:
            Recognized lines with word geometry in page coordinates

        Raises:
            RecognitionError: If the request fails or the response is unusable
        """
        if not strokes:
            raise RecognitionError("No strokes to transcribe")

        body, frame = build_request(strokes, self.lang)
        response = await self._post(body)

        try:
            data = response.json()
        except ValueError as e:
            raise RecognitionError("MyScript returned invalid JSON") from e

        try:
            lines = parse_response(data, frame)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise RecognitionError(f"MyScript returned an unusable JIIX document: {e}") from e
        logging.info(f"MyScript recognized {len(lines)} lines from {len(strokes)} strokes")
        return lines

    async def test_credentials(self) -> bool:
        """
        Send a minimal request to check the configured credentials.

        Returns:
            True if MyScript accepted the request
        """
        body = {
            "xDPI": DPI,
            "yDPI": DPI,
            "contentType": "Text",
            "configuration": {"lang": self.lang, "text": {"mimeTypes": ["text/plain"]}},
            "strokeGroups": [{"x": [10, 20, 30], "y": [10, 10, 10], "t": [0, 100, 200], "p": [0.5, 0.5, 0.5]}],
            "width": 100,
            "height": 100,
        }
        try:
            await self._post(body)
        except RecognitionError as e:
            logging.warning(f"MyScript credential check failed: {e}")
            return False
        return True
