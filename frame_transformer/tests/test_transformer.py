"""
Tests for the Transformer façade and transformation makers.

Covers the end-to-end scenarios:
    - static chains and their inversion
    - dynamic transformations appearing after makers registered
    - loop guard
    - interpolation of dynamic samples
    - unreachable frames
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from frame_transformer.aggregator import StreamAggregator
from frame_transformer.config import Configuration, TransformerSettings
from frame_transformer.elements import DynamicTransformationElement, StaticTransformationElement
from frame_transformer.maker import TransformationMaker
from frame_transformer.rigid import RigidTransform, Transformation
from frame_transformer.transformer import Transformer


def translation(from_frame, to_frame, x, y, z, time=0.0):
    return Transformation(from_frame, to_frame, time, RigidTransform.from_translation(x, y, z))


class TestTransformationMaker:
    """Tests for chain composition."""

    def test_unresolved_returns_none(self):
        maker = TransformationMaker('a', 'b')

        assert not maker.has_chain
        assert maker.chain == ()
        assert maker.get(0.0) is None

    def test_empty_chain_is_identity(self):
        maker = TransformationMaker('a', 'a')
        maker.set_chain([])

        result = maker.get(3.0)

        assert result.from_frame == 'a'
        assert result.to_frame == 'a'
        assert result.time == pytest.approx(3.0)
        assert result.transform.allclose(RigidTransform.identity())

    def test_empty_chain_between_distinct_frames(self):
        transformer = Transformer()
        maker = transformer.register_transformation('a', 'b')
        transformer.set_transformation_chain('a', 'b', [])

        assert maker.has_chain
        assert maker.get(0.0) is None

    def test_missing_sample_aborts(self):
        aggregator = StreamAggregator()
        index = aggregator.register_stream()
        maker = TransformationMaker('a', 'c')
        maker.set_chain([
            StaticTransformationElement('a', 'b', RigidTransform.from_translation(1, 0, 0)),
            DynamicTransformationElement('b', 'c', aggregator, index),
        ])

        assert maker.get(0.0) is None

        aggregator.push(index, 0.0, Transformation('b', 'c', 0.0, RigidTransform.from_translation(0, 2, 0)))
        assert_allclose(maker.get(0.0).transform.translation, [1, 2, 0])

    def test_unknown_stream_index_raises(self):
        maker = TransformationMaker('a', 'b')
        maker.set_chain([DynamicTransformationElement('a', 'b', StreamAggregator(), 7)])

        with pytest.raises(KeyError):
            maker.get(0.0)

    def test_set_chain_replaces(self):
        maker = TransformationMaker('a', 'b')
        maker.set_chain([StaticTransformationElement('a', 'b', RigidTransform.from_translation(1, 0, 0))])
        maker.set_chain([StaticTransformationElement('a', 'b', RigidTransform.from_translation(2, 0, 0))])

        assert len(maker.chain) == 1
        assert_allclose(maker.get(0.0).transform.translation, [2, 0, 0])

    def test_clear_chain(self):
        maker = TransformationMaker('a', 'a')
        maker.set_chain([])
        maker.clear_chain()

        assert maker.get(0.0) is None


class TestScenarios:
    """End-to-end behaviour of the Transformer."""

    @pytest.fixture
    def static_chain(self):
        transformer = Transformer()
        transformer.push_static_transformation(translation('A', 'B', 1, 0, 0))
        transformer.push_static_transformation(translation('B', 'C', 0, 1, 0))
        return transformer

    def test_static_chain(self, static_chain):
        result = static_chain.register_transformation('A', 'C').get(0.0)

        assert result is not None
        assert_allclose(result.transform.translation, [1, 1, 0], atol=1e-12)
        assert_allclose(result.transform.rotation.as_matrix(), np.eye(3), atol=1e-9)

    def test_inversion(self, static_chain):
        result = static_chain.register_transformation('C', 'A').get(0.0)

        assert_allclose(result.transform.translation, [-1, -1, 0], atol=1e-12)

    def test_dynamic_edge_appearing_late(self):
        transformer = Transformer()
        maker = transformer.register_transformation('A', 'C')
        assert maker.get(10.0) is None

        transformer.push_static_transformation(
            Transformation('A', 'B', 0.0, RigidTransform.identity())
        )
        assert maker.get(10.0) is None

        transformer.push_dynamic_transformation(translation('B', 'C', 0, 0, 5, time=10.0))

        result = maker.get(10.0)
        assert result is not None
        assert_allclose(result.transform.translation, [0, 0, 5], atol=1e-12)

    def test_loop_guard(self):
        transformer = Transformer()
        transformer.push_static_transformation(translation('A', 'B', 1, 0, 0))

        assert transformer.tree.find_chain('A', 'A') == []
        result = transformer.register_transformation('A', 'A').get(0.0)
        assert result.transform.allclose(RigidTransform.identity())

    def test_interpolation(self):
        transformer = Transformer()
        transformer.push_dynamic_transformation(translation('A', 'B', 0, 0, 0, time=0.0))
        transformer.push_dynamic_transformation(translation('A', 'B', 10, 0, 0, time=10.0))
        maker = transformer.register_transformation('A', 'B')

        interpolated = maker.get(5.0, interpolate=True)
        preceding = maker.get(5.0, interpolate=False)

        assert_allclose(interpolated.transform.translation, [5, 0, 0], atol=1e-9)
        assert_allclose(preceding.transform.translation, [0, 0, 0], atol=1e-12)

    def test_interpolation_through_inverse(self):
        transformer = Transformer()
        transformer.push_dynamic_transformation(translation('A', 'B', 0, 0, 0, time=0.0))
        transformer.push_dynamic_transformation(translation('A', 'B', 10, 0, 0, time=10.0))

        result = transformer.register_transformation('B', 'A').get(2.0, interpolate=True)

        assert_allclose(result.transform.translation, [-2, 0, 0], atol=1e-9)

    def test_unreachable(self):
        transformer = Transformer()
        transformer.push_static_transformation(translation('A', 'B', 1, 0, 0))
        maker = transformer.register_transformation('A', 'Z')
        assert maker.get(0.0) is None

        transformer.push_static_transformation(translation('B', 'Z', 0, 0, 1))
        # static additions don't re-resolve existing makers
        assert maker.get(0.0) is None

        result = transformer.register_transformation('A', 'Z').get(0.0)
        assert_allclose(result.transform.translation, [1, 0, 1], atol=1e-12)

    def test_no_sample_yet(self):
        transformer = Transformer()
        transformer.push_dynamic_transformation(translation('A', 'B', 1, 0, 0, time=5.0))
        maker = transformer.register_transformation('A', 'B')

        assert maker.get(4.0) is None
        assert maker.get(6.0, interpolate=True) is None
        assert maker.get(6.0) is not None


class TestTransformer:
    """Tests for stream bookkeeping and chain management."""

    def test_stream_per_pair(self):
        transformer = Transformer()
        transformer.push_dynamic_transformation(translation('A', 'B', 0, 0, 0, time=0.0))
        transformer.push_dynamic_transformation(translation('A', 'B', 1, 0, 0, time=1.0))
        transformer.push_dynamic_transformation(translation('B', 'A', 0, 0, 0, time=0.0))

        assert transformer.stream_index('A', 'B') == 0
        assert transformer.stream_index('B', 'A') == 1
        assert transformer.stream_index('A', 'C') is None
        assert transformer.aggregator.stream_count == 2
        assert transformer.aggregator.sample_count(0) == 2
        # one dynamic element (plus inverse) per pair
        assert len(transformer.tree) == 4

    def test_stream_parameters(self):
        registered = []

        class RecordingAggregator(StreamAggregator):
            def register_stream(self, on_pop=None, buffer_size=0, period=0.0, lookback=10.0):
                registered.append((on_pop, buffer_size, period, lookback))
                return super().register_stream(on_pop, buffer_size, period, lookback)

        transformer = Transformer(aggregator=RecordingAggregator(), lookback=2.5)
        transformer.push_dynamic_transformation(translation('A', 'B', 0, 0, 0))

        assert registered == [(None, 0, 0.0, 2.5)]

    def test_reresolution_before_first_sample(self):
        """Makers get their chain before the aggregator sees the first sample."""
        events = []

        class RecordingAggregator(StreamAggregator):
            def push(self, stream_index, time, sample):
                events.append(('push', maker.has_chain))
                return super().push(stream_index, time, sample)

        transformer = Transformer(aggregator=RecordingAggregator())
        maker = transformer.register_transformation('A', 'B')
        transformer.push_dynamic_transformation(translation('A', 'B', 0, 0, 0))

        assert events == [('push', True)]

    def test_shorter_chain_after_dynamic_addition(self):
        transformer = Transformer()
        transformer.push_static_transformation(translation('A', 'B', 1, 0, 0))
        transformer.push_static_transformation(translation('B', 'C', 1, 0, 0))
        maker = transformer.register_transformation('A', 'C')
        assert len(maker.chain) == 2

        transformer.push_dynamic_transformation(translation('A', 'C', 0, 0, 7, time=1.0))

        # the 1-element dynamic chain is found before the 2-element static one
        assert len(maker.chain) == 1
        assert_allclose(maker.get(1.0).transform.translation, [0, 0, 7])

    def test_reresolve_on_static(self):
        transformer = Transformer(reresolve_on_static=True)
        maker = transformer.register_transformation('A', 'B')

        transformer.push_static_transformation(translation('A', 'B', 3, 0, 0))

        assert_allclose(maker.get(0.0).transform.translation, [3, 0, 0])

    def test_set_transformation_chain(self):
        transformer = Transformer()
        first = transformer.register_transformation('A', 'B')
        second = transformer.register_transformation('A', 'B')
        other = transformer.register_transformation('B', 'A')
        chain = [StaticTransformationElement('A', 'B', RigidTransform.from_translation(4, 0, 0))]

        assert transformer.set_transformation_chain('A', 'B', chain) == 2
        assert_allclose(first.get(0.0).transform.translation, [4, 0, 0])
        assert_allclose(second.get(0.0).transform.translation, [4, 0, 0])
        assert other.get(0.0) is None

    def test_makers_are_tracked(self):
        transformer = Transformer()
        maker = transformer.register_maker('A', 'B')

        assert transformer.makers == (maker,)

    def test_short_aliases(self):
        transformer = Transformer()
        transformer.push_static(translation('A', 'B', 1, 0, 0))
        transformer.push_dynamic(translation('B', 'C', 0, 1, 0, time=1.0))

        result = transformer.register_maker('A', 'C').get(1.0)
        assert_allclose(result.transform.translation, [1, 1, 0])

    def test_empty_frame_name_rejected(self):
        transformer = Transformer()

        with pytest.raises(ValueError):
            transformer.push_static_transformation(translation('', 'B', 0, 0, 0))
        with pytest.raises(ValueError):
            transformer.push_dynamic_transformation(translation('A', '', 0, 0, 0))
        with pytest.raises(ValueError):
            transformer.register_transformation('A', '')

    def test_rotating_chain(self):
        """Rotation of the first element applies to the translation of the second."""
        transformer = Transformer()
        transformer.push_static_transformation(
            Transformation('world', 'body', 0.0, RigidTransform.from_euler('z', [90], [1, 0, 0], degrees=True))
        )
        transformer.push_static_transformation(translation('body', 'sensor', 1, 0, 0))

        result = transformer.register_transformation('world', 'sensor').get(0.0)

        assert_allclose(result.transform.translation, [1, 1, 0], atol=1e-12)
        assert_allclose(result.transform.apply(np.zeros(3)), [1, 1, 0], atol=1e-12)


class TestFromConfig:
    """Tests for building a Transformer from a configuration."""

    @pytest.fixture
    def config(self):
        config = Configuration(settings=TransformerSettings(max_seek_depth=5, lookback=3.0))
        config.static_transform('body', 'laser', RigidTransform.from_translation(0.2, 0, 0.3))
        config.dynamic_transform('odometry_task', 'odometry', 'body')
        return config

    def test_settings_applied(self, config):
        transformer = Transformer.from_config(config)

        assert transformer.tree.max_seek_depth == 5
        assert transformer.lookback == pytest.approx(3.0)
        assert not transformer.reresolve_on_static

    def test_static_declarations_pushed(self, config):
        transformer = Transformer.from_config(config)

        result = transformer.register_transformation('laser', 'body').get(0.0)
        assert_allclose(result.transform.translation, [-0.2, 0, -0.3], atol=1e-12)

    def test_producer_attached_to_dynamic_element(self, config):
        transformer = Transformer.from_config(config)
        maker = transformer.register_transformation('odometry', 'laser')
        transformer.push_dynamic_transformation(translation('odometry', 'body', 1, 0, 0, time=0.0))

        assert maker.chain[0].producer == 'odometry_task'
        assert_allclose(maker.get(0.0).transform.translation, [1.2, 0, 0.3], atol=1e-12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
