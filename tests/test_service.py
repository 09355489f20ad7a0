"""
Tests for backend selection and the detection service handle.
"""

import asyncio

import pytest

from pneumo_detect.exceptions import ConfigurationError, NotReadyError, UnsupportedMediaError, UploadTooLargeError
from pneumo_detect.inference import (
    CompactCNNBackend,
    DeepSeparableCNNBackend,
    FeatureHeuristicBackend,
    MockGeneratorBackend,
    PneumoniaDetectionService,
    RemoteDelegateBackend,
    ServiceState,
    Status,
    create_backend,
)


class TestCreateBackend:

    @pytest.mark.parametrize("name,backend_type", [
        ('compact_cnn', CompactCNNBackend),
        ('separable_cnn', DeepSeparableCNNBackend),
        ('feature_heuristic', FeatureHeuristicBackend),
        ('mock', MockGeneratorBackend),
        ('remote', RemoteDelegateBackend),
    ])
    def test_selects_backend(self, test_config, name, backend_type):
        test_config.set('model.backend', name)
        backend = create_backend(test_config)
        assert isinstance(backend, backend_type)
        assert backend.state == ServiceState.UNINITIALIZED

    def test_unknown_backend(self, test_config):
        test_config.set('model.backend', 'resnet')
        with pytest.raises(ConfigurationError):
            create_backend(test_config)

    def test_remote_settings(self, test_config):
        test_config.set('model.backend', 'remote')
        test_config.set('remote.endpoint', 'http://scoring.test/analyze')
        test_config.set('remote.api_key', 'k')

        backend = create_backend(test_config)

        assert backend.endpoint == 'http://scoring.test/analyze'
        assert backend.api_key == 'k'

    def test_mock_latency(self, test_config):
        backend = create_backend(test_config)
        assert backend.latency_ms == (0.0, 0.0)


class TestDetectionService:

    def test_context_manager_lifecycle(self, test_config, white_png):
        service = PneumoniaDetectionService(test_config)
        assert service.state == ServiceState.UNINITIALIZED

        async def run():
            async with service:
                assert service.is_ready()
                return await service.analyze_upload(white_png, 'image/png')

        result = asyncio.run(run())

        assert result.status in set(Status)
        assert result.model_version == service.model_version == 'mock-v1.0'
        assert service.state == ServiceState.DISPOSED

    def test_analyze_requires_initialize(self, test_config, white_png):
        service = PneumoniaDetectionService(test_config)
        with pytest.raises(NotReadyError):
            asyncio.run(service.analyze(white_png))

    def test_upload_too_large(self, test_config, white_png):
        test_config.set('data.max_upload_bytes', 16)
        service = PneumoniaDetectionService(test_config)

        async def run():
            async with service:
                await service.analyze_upload(white_png, 'image/png')

        with pytest.raises(UploadTooLargeError):
            asyncio.run(run())

    @pytest.mark.parametrize("data,content_type", [
        (b'GIF89a' + b'\x00' * 32, None),
        (b'\x89PNG\r\n\x1a\n' + b'\x00' * 32, 'image/gif'),
        (b'', None),
    ])
    def test_unsupported_upload(self, test_config, data, content_type):
        service = PneumoniaDetectionService(test_config)

        async def run():
            async with service:
                await service.analyze_upload(data, content_type)

        with pytest.raises(UnsupportedMediaError):
            asyncio.run(run())

    def test_injected_backend(self, test_config):
        backend = MockGeneratorBackend(version='mock-test', latency_ms=(0, 0))
        service = PneumoniaDetectionService(test_config, backend=backend)

        assert service.backend is backend
        assert service.descriptor.version == 'mock-test'
        assert service.descriptor.diagnostic is False
