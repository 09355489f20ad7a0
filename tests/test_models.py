"""
Tests for the network architectures.
"""

import pytest
import torch
from torchvision.ops import SqueezeExcitation

from pneumo_detect.models import (
    BLOCK_SPECS,
    CompactCNN,
    create_compact_cnn,
    create_feature_classifier,
    create_separable_cnn,
)
from pneumo_detect.models.feature_head import HEAD_BIAS


@pytest.fixture
def image_batch() -> torch.Tensor:
    generator = torch.Generator().manual_seed(0)
    return torch.rand((1, 224, 224, 3), generator=generator)


def _assert_probabilities(output: torch.Tensor):
    assert tuple(output.shape) == (1, 2)
    assert torch.all(output >= 0) and torch.all(output <= 1)
    assert output.sum().item() == pytest.approx(1.0, abs=1e-5)


class TestCompactCNN:

    def test_forward_outputs_probabilities(self, image_batch):
        model = create_compact_cnn()
        with torch.inference_mode():
            _assert_probabilities(model(image_batch))

    def test_feature_size(self):
        assert CompactCNN._feature_size(224, 3) == 26

    def test_input_too_small(self):
        with pytest.raises(ValueError):
            CompactCNN(image_size=8)

    def test_seeded_construction_is_deterministic(self):
        first = create_compact_cnn(seed=1).state_dict()
        second = create_compact_cnn(seed=1).state_dict()
        other = create_compact_cnn(seed=2).state_dict()

        assert all(torch.equal(first[k], second[k]) for k in first)
        assert not all(torch.equal(first[k], other[k]) for k in first)

    def test_built_in_eval_mode(self):
        assert not create_compact_cnn().training


class TestDeepSeparableCNN:

    def test_block_table(self):
        assert len(BLOCK_SPECS) == 16
        assert [s.out_channels for s in BLOCK_SPECS] == [
            16, 24, 24, 40, 40, 80, 80, 80, 112, 112, 112, 192, 192, 192, 192, 320]
        assert [s.kernel_size for s in BLOCK_SPECS] == [
            3, 3, 3, 5, 5, 3, 3, 3, 5, 5, 5, 5, 5, 5, 5, 3]
        assert [s.stride for s in BLOCK_SPECS] == [
            1, 2, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1]
        assert [s.expand_ratio for s in BLOCK_SPECS] == [1] + [6] * 15

    def test_residual_only_when_shape_preserved(self):
        model = create_separable_cnn()
        flags = [block.use_residual for block in model.blocks]
        assert flags == [False, False, True, False, True, False, True, True,
                         False, True, True, False, True, True, True, False]

    def test_every_block_has_squeeze_excite(self):
        model = create_separable_cnn()
        for block in model.blocks:
            assert any(isinstance(m, SqueezeExcitation) for m in block.modules())

    def test_feature_map_shape(self, image_batch):
        model = create_separable_cnn()
        with torch.inference_mode():
            features = model.blocks(model.stem(image_batch.permute(0, 3, 1, 2)))
        assert tuple(features.shape) == (1, 320, 7, 7)

    def test_forward_outputs_probabilities(self, image_batch):
        model = create_separable_cnn()
        with torch.inference_mode():
            _assert_probabilities(model(image_batch))

    def test_dropout_inactive_at_inference(self, image_batch):
        model = create_separable_cnn(dropout_rate=0.9)
        with torch.inference_mode():
            assert torch.equal(model(image_batch), model(image_batch))


class TestFeatureExtractorClassifier:

    @pytest.fixture
    def model(self):
        return create_feature_classifier(pretrained=False)

    def test_forward_outputs_probabilities(self, model, image_batch):
        with torch.inference_mode():
            _assert_probabilities(model(image_batch))

    def test_embedding_dimension(self, model, image_batch):
        with torch.inference_mode():
            _, features = model(image_batch, return_features=True)
        assert tuple(features.shape) == (1, model.backbone.num_features)

    def test_head_biases_constant(self, model):
        linears = [m for m in model.classifier if isinstance(m, torch.nn.Linear)]
        assert len(linears) == 3
        for layer in linears:
            assert torch.allclose(layer.bias, torch.full_like(layer.bias, HEAD_BIAS))

    def test_head_is_deterministic(self):
        first = create_feature_classifier(pretrained=False, seed=5).classifier.state_dict()
        second = create_feature_classifier(pretrained=False, seed=5).classifier.state_dict()
        assert all(torch.equal(first[k], second[k]) for k in first)

    def test_backbone_frozen(self, model):
        assert not any(p.requires_grad for p in model.backbone.parameters())
