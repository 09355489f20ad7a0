"""
Backend that delegates classification to an external HTTP endpoint.
"""

import time
from typing import Any, Dict, Optional

import cv2
import httpx
import numpy as np
import torch
from loguru import logger

from ..data_preprocessing import detect_format
from ..exceptions import ConfigurationError, InferenceError, NetworkError
from .backend import ScoringBackend
from .result import elapsed_ms, normalize_confidence, probabilities_for
from .types import ArchitectureKind, ClassificationResult, ModelDescriptor, ProbabilityVector, Status


VALUE_RANGES = ('unit', 'byte')

STATUS_ALIASES = {
    'normal': Status.NORMAL,
    'negative': Status.NORMAL,
    'pneumonia': Status.PNEUMONIA,
    'positive': Status.PNEUMONIA,
    'inconclusive': Status.INCONCLUSIVE,
}


def parse_remote_response(payload: Dict[str, Any], default_version: str) -> Dict[str, Any]:
    """
    Map an endpoint response onto result fields.

    Accepted keys: ``status`` or ``prediction``; ``confidence`` or ``score``
    (percentages are converted); ``model_version`` or ``modelVersion``; ``notes``.

    Raises:
        InferenceError: If the status or confidence is missing or unrecognised
    """
    raw_status = payload.get('status', payload.get('prediction'))
    status = STATUS_ALIASES.get(str(raw_status).strip().lower()) if raw_status is not None else None
    if status is None:
        raise InferenceError(f"Remote endpoint returned an unrecognised status: {raw_status!r}")

    raw_confidence = payload.get('confidence', payload.get('score'))
    try:
        confidence = normalize_confidence(raw_confidence)
    except (TypeError, ValueError) as e:
        raise InferenceError(f"Remote endpoint returned an invalid confidence: {raw_confidence!r}") from e

    notes = payload.get('notes')
    return {
        'status': status,
        'confidence': confidence,
        'model_version': str(payload.get('model_version', payload.get('modelVersion', default_version))),
        'notes': str(notes) if notes is not None else None,
    }


class RemoteDelegateBackend(ScoringBackend):
    """
    Posts the original image bytes to ``endpoint`` and maps the JSON reply.

    No retries or backoff: every failure surfaces to the caller.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        version: str = 'remote-delegate',
        value_range: str = 'unit',
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(ModelDescriptor(version, ArchitectureKind.REMOTE))
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.value_range = value_range
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _build(self):
        if not self.endpoint:
            logger.warning(f"{self.descriptor.version}: no remote endpoint configured")
        self._client = httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    async def _release(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _require_endpoint(self) -> str:
        if not self.endpoint:
            raise ConfigurationError(
                "Remote backend selected but no endpoint is configured; "
                "set remote.endpoint or PNEUMO_REMOTE_ENDPOINT"
            )
        return self.endpoint

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, endpoint: str, data: bytes, file_name: str, content_type: str) -> Dict[str, Any]:
        files = {'image': (file_name, data, content_type)}
        try:
            response = await self._client.post(endpoint, headers=self._headers(), files=files)
        except httpx.HTTPError as e:
            logger.error(f"Remote request to {endpoint} failed: {e}")
            raise NetworkError(f"Could not reach the analysis service: {e}") from e

        if not response.is_success:
            logger.error(f"Remote endpoint {endpoint} returned HTTP {response.status_code}")
            raise NetworkError(
                f"Analysis service returned HTTP {response.status_code}; try again later"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise NetworkError("Analysis service returned a malformed response") from e

        if not isinstance(payload, dict):
            raise NetworkError("Analysis service returned a malformed response")
        return payload

    async def _analyze(self, data: bytes) -> ClassificationResult:
        endpoint = self._require_endpoint()
        started_at = time.perf_counter()

        image_format = detect_format(data)
        content_type = image_format.value if image_format else 'application/octet-stream'
        extension = 'png' if content_type == 'image/png' else 'jpg'

        payload = await self._post(endpoint, data, f"upload.{extension}", content_type)
        fields = parse_remote_response(payload, self.descriptor.version)

        result = ClassificationResult(
            processing_time_ms=elapsed_ms(started_at),
            probabilities=probabilities_for(fields['status'], fields['confidence']),
            **fields
        )
        logger.info(f"{self.descriptor.version}: {result.status.value} "
                    f"(confidence={result.confidence:.4f}, {result.processing_time_ms} ms)")
        return result

    async def _classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        endpoint = self._require_endpoint()
        png = encode_tensor_png(tensor, self.value_range)
        payload = await self._post(endpoint, png, "tensor.png", "image/png")
        fields = parse_remote_response(payload, self.descriptor.version)
        return probabilities_for(fields['status'], fields['confidence'])


def encode_tensor_png(tensor: torch.Tensor, value_range: str = 'unit') -> bytes:
    """
    Encode a ``(1, H, W, 3)`` image tensor as PNG.

    Args:
        tensor: Image tensor
        value_range: 'unit' for values in [0, 1], 'byte' for values in [0, 255]
    """
    if value_range not in VALUE_RANGES:
        raise ValueError(f"value_range must be one of {VALUE_RANGES}, got {value_range!r}")
    pixels = tensor.detach().to('cpu', torch.float32)[0]
    if value_range == 'unit':
        pixels = pixels * 255.0
    rgb = pixels.clamp(0, 255).round().to(torch.uint8).numpy()
    ok, encoded = cv2.imencode('.png', cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2BGR))
    if not ok:
        raise InferenceError("Could not encode image tensor")
    return encoded.tobytes()
