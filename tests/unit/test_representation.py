from __future__ import annotations

from typing import Any, Optional

import numpy as np
import pytest

from pointrep.core.fields import LayoutError
from pointrep.core.point_types import (
    FPFHSignature33,
    Normal,
    PointNormal,
    PointType,
    PointXYZ,
    PointXYZI,
    PointXYZRGB,
    PPFSignature,
    histogram_type,
    make_cloud,
    make_record,
)
from pointrep.core.representation import (
    CustomPointRepresentation,
    DefaultFeatureRepresentation,
    DefaultPointRepresentation,
    PointRepresentation,
    XYZPointRepresentation,
    default_representation,
    register_default_representation,
)

FIVE_FLOATS = PointType("TestFiveFloats", np.dtype([(k, np.float32) for k in "abcde"]))
SCALE_HIST = PointType(
    "TestScaleHistogram32",
    np.dtype([("scale", np.float32), ("histogram", np.float32, (32,))]),
)


class FirstFieldRepresentation(PointRepresentation):
    """Implements only the per-record copy, to exercise the base-class batch forms."""

    def __init__(self, point_type) -> None:
        super().__init__(point_type)
        self._nr_dimensions = 1

    def copy_to_float_array(self, record: Any, out: Optional[Any] = None) -> Any:
        out = self._output(out)
        out[0] = np.asarray(record)[self.dtype.names[0]]
        return out


def _bits(a: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=np.float32).view(np.uint32)


def test_default_xyz_copies_coordinates_exactly() -> None:
    rep = default_representation(PointXYZ)
    assert isinstance(rep, XYZPointRepresentation)
    assert rep.get_number_of_dimensions() == 3
    for x, y, z in [(0.0, 0.0, 0.0), (-1.5, 2.25, 1e30), (3.4e38, -7.0, 1e-38)]:
        out = rep.copy_to_float_array(make_record(PointXYZ, x=x, y=y, z=z))
        np.testing.assert_array_equal(out, np.array([x, y, z], dtype=np.float32))


def test_default_xyzi_drops_intensity() -> None:
    rep = default_representation(PointXYZI)
    for intensity in (9.9, 0.0, -123.0, np.nan):
        rec = make_record(PointXYZI, x=1.0, y=2.0, z=3.0, intensity=intensity)
        out = rep.copy_to_float_array(rec)
        assert out.shape == (3,)
        np.testing.assert_array_equal(out, [1.0, 2.0, 3.0])
        assert rep.is_valid(rec)


def test_default_point_normal_keeps_position_only() -> None:
    rep = default_representation(PointNormal)
    rec = make_record(PointNormal, x=4.0, y=5.0, z=6.0, normal_x=np.nan, curvature=0.5)
    np.testing.assert_array_equal(rep.copy_to_float_array(rec), [4.0, 5.0, 6.0])
    assert rep.is_valid(rec)

    full = CustomPointRepresentation(PointNormal, max_dim=7)
    assert full.get_number_of_dimensions() == 7
    assert not full.is_valid(rec)


def test_raw_default_caps_at_three_dimensions() -> None:
    rep = default_representation(Normal)
    assert type(rep) is DefaultPointRepresentation
    assert rep.get_number_of_dimensions() == 3
    rec = make_record(Normal, normal_x=0.0, normal_y=0.6, normal_z=0.8, curvature=0.1)
    np.testing.assert_allclose(rep.copy_to_float_array(rec), [0.0, 0.6, 0.8])

    two = PointType("TestPointUVRaw", np.dtype([("u", np.float32), ("v", np.float32)]))
    rep2 = default_representation(two)
    assert rep2.get_number_of_dimensions() == 2
    np.testing.assert_array_equal(rep2.copy_to_float_array(make_record(two, u=7.0, v=8.0)), [7.0, 8.0])


def test_raw_default_requires_float_layout() -> None:
    bad = PointType("TestFlaggedPoint", np.dtype([("flag", np.uint8), ("x", np.float32), ("y", np.float32), ("z", np.float32)]))
    with pytest.raises(LayoutError):
        DefaultPointRepresentation(bad)
    # rgb packed as uint32 is outside the first three slots
    assert DefaultPointRepresentation(PointXYZRGB).get_number_of_dimensions() == 3


def test_feature_scalar_then_array_layout() -> None:
    rep = DefaultFeatureRepresentation(SCALE_HIST)
    assert rep.get_number_of_dimensions() == 33
    hist = np.arange(1, 33, dtype=np.float32) * 0.5
    rec = make_record(SCALE_HIST, scale=-2.0, histogram=hist)
    out = rep.copy_to_float_array(rec)
    assert out.shape == (33,)
    assert out[0] == np.float32(-2.0)
    np.testing.assert_array_equal(out[1:33], hist)


def test_feature_defaults_for_descriptor_types() -> None:
    assert default_representation(FPFHSignature33).get_number_of_dimensions() == 33
    assert default_representation("PFHSignature125").get_number_of_dimensions() == 125
    assert default_representation("VFHSignature308").get_number_of_dimensions() == 308
    assert default_representation("NormalBasedSignature12").get_number_of_dimensions() == 12
    ppf = default_representation(PPFSignature)
    assert isinstance(ppf, DefaultFeatureRepresentation)
    rec = make_record(PPFSignature, f1=0.1, f2=0.2, f3=0.3, f4=0.4, alpha_m=-1.0)
    np.testing.assert_allclose(ppf.copy_to_float_array(rec), [0.1, 0.2, 0.3, 0.4, -1.0], rtol=1e-6)
    hist2 = default_representation(histogram_type(2))
    assert isinstance(hist2, DefaultFeatureRepresentation)
    assert hist2.get_number_of_dimensions() == 2


def test_feature_converts_non_float_fields() -> None:
    pt = PointType("TestLabeledHistogram", np.dtype([("label", np.int32), ("h", np.float32, (3,))]))
    rep = DefaultFeatureRepresentation(pt)
    out = rep.copy_to_float_array(make_record(pt, label=7, h=[1.0, 2.0, 3.0]))
    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, [7.0, 1.0, 2.0, 3.0])


def test_custom_window_over_five_floats() -> None:
    rep = CustomPointRepresentation(FIVE_FLOATS, max_dim=2, start_dim=1)
    assert rep.get_number_of_dimensions() == 2
    rec = make_record(FIVE_FLOATS, a=10, b=20, c=30, d=40, e=50)
    np.testing.assert_array_equal(rep.copy_to_float_array(rec), [20.0, 30.0])

    tail = CustomPointRepresentation(FIVE_FLOATS, max_dim=10, start_dim=3)
    assert tail.get_number_of_dimensions() == 2
    np.testing.assert_array_equal(tail.copy_to_float_array(rec), [40.0, 50.0])


def test_custom_defaults_match_raw_default() -> None:
    rec = make_record(FIVE_FLOATS, a=1, b=2, c=3, d=4, e=5)
    custom = CustomPointRepresentation(FIVE_FLOATS)
    raw = DefaultPointRepresentation(FIVE_FLOATS)
    assert custom.get_number_of_dimensions() == raw.get_number_of_dimensions() == 3
    np.testing.assert_array_equal(custom.copy_to_float_array(rec), raw.copy_to_float_array(rec))


def test_custom_can_include_intensity() -> None:
    rep = CustomPointRepresentation(PointXYZI, max_dim=4)
    rec = make_record(PointXYZI, x=1.0, y=2.0, z=3.0, intensity=9.5)
    np.testing.assert_array_equal(rep.copy_to_float_array(rec), [1.0, 2.0, 3.0, 9.5])


def test_custom_rejects_bad_windows() -> None:
    with pytest.raises(ValueError):
        CustomPointRepresentation(FIVE_FLOATS, max_dim=0)
    with pytest.raises(ValueError):
        CustomPointRepresentation(FIVE_FLOATS, start_dim=-1)
    with pytest.raises(LayoutError):
        CustomPointRepresentation(FIVE_FLOATS, start_dim=5)
    with pytest.raises(LayoutError):
        CustomPointRepresentation(PointXYZRGB, max_dim=4)


def test_vectorize_without_rescale_matches_copy() -> None:
    rep = default_representation(PointNormal)
    rec = make_record(PointNormal, x=0.1, y=-0.2, z=3.3, curvature=1.0)
    np.testing.assert_array_equal(rep.vectorize(rec), rep.copy_to_float_array(rec))
    assert rep.rescale_values == ()


def test_vectorize_applies_rescale() -> None:
    rep = default_representation(PointXYZ)
    rep.set_rescale_values([2.0, 0.5, 1.0])
    rec = make_record(PointXYZ, x=1.0, y=4.0, z=3.0)
    np.testing.assert_array_equal(rep.vectorize(rec), [2.0, 2.0, 3.0])
    # the raw copy is unaffected
    np.testing.assert_array_equal(rep.copy_to_float_array(rec), [1.0, 4.0, 3.0])
    assert rep.rescale_values == (2.0, 0.5, 1.0)

    rep.clear_rescale_values()
    np.testing.assert_array_equal(rep.vectorize(rec), [1.0, 4.0, 3.0])


def test_vectorize_into_indexable_containers() -> None:
    rep = default_representation(PointXYZ)
    rep.set_rescale_values([2.0, 0.5, 1.0])
    rec = make_record(PointXYZ, x=1.0, y=4.0, z=3.0)

    as_list = [0.0, 0.0, 0.0, -1.0]
    assert rep.vectorize(rec, as_list) is as_list
    assert as_list == [2.0, 2.0, 3.0, -1.0]

    buf = np.full(5, -1.0, dtype=np.float64)
    rep.vectorize(rec, buf)
    np.testing.assert_array_equal(buf, [2.0, 2.0, 3.0, -1.0, -1.0])


def test_rescale_length_is_checked() -> None:
    rep = default_representation(PointXYZ)
    with pytest.raises(ValueError):
        rep.set_rescale_values([1.0, 2.0])
    with pytest.raises(ValueError):
        rep.set_rescale_values([1.0, 2.0, 3.0, 4.0])
    with pytest.raises(ValueError):
        rep.set_rescale_values([])
    assert rep.rescale_values == ()


def test_short_output_buffer_is_rejected() -> None:
    rep = DefaultFeatureRepresentation(SCALE_HIST)
    rec = make_record(SCALE_HIST)
    with pytest.raises(ValueError):
        rep.copy_to_float_array(rec, np.empty(32, dtype=np.float32))
    with pytest.raises(ValueError):
        rep.vectorize(rec, [0.0] * 10)


def test_record_of_other_type_is_rejected() -> None:
    rep = default_representation(PointXYZ)
    with pytest.raises(TypeError):
        rep.copy_to_float_array(make_record(PointXYZI, x=1.0))
    with pytest.raises(TypeError):
        rep.copy_to_float_array(make_cloud(PointXYZ, 2))


def test_is_valid_detects_non_finite_values() -> None:
    rep = CustomPointRepresentation(FIVE_FLOATS, max_dim=5)
    assert rep.is_valid(make_record(FIVE_FLOATS))
    assert rep.is_valid(make_record(FIVE_FLOATS, a=-3.4e38, b=3.4e38, c=-1e-30, d=1e20, e=-7))
    for name, bad in [("a", np.nan), ("c", np.inf), ("e", -np.inf)]:
        assert not rep.is_valid(make_record(FIVE_FLOATS, **{name: bad}))

    feat = DefaultFeatureRepresentation(SCALE_HIST)
    hist = np.zeros(32, dtype=np.float32)
    hist[31] = np.nan
    assert not feat.is_valid(make_record(SCALE_HIST, histogram=hist))


def test_repeated_calls_are_bit_identical() -> None:
    reps = [
        default_representation(PointXYZI),
        DefaultFeatureRepresentation(SCALE_HIST),
        CustomPointRepresentation(FIVE_FLOATS, max_dim=4, start_dim=1),
    ]
    rng = np.random.default_rng(3)
    for rep in reps:
        cloud = np.frombuffer(
            rng.standard_normal(rep.dtype.itemsize // 4 * 4).astype(np.float32).tobytes(),
            dtype=rep.dtype,
        )
        rec = cloud[0]
        np.testing.assert_array_equal(_bits(rep.copy_to_float_array(rec)), _bits(rep.copy_to_float_array(rec)))
        rep.set_rescale_values(np.linspace(0.5, 2.0, rep.get_number_of_dimensions()))
        np.testing.assert_array_equal(_bits(rep.vectorize(rec)), _bits(rep.vectorize(rec)))


@pytest.mark.parametrize(
    "rep",
    [
        default_representation(PointNormal),
        DefaultPointRepresentation(PointNormal),
        CustomPointRepresentation(PointNormal, max_dim=4, start_dim=2),
        DefaultFeatureRepresentation(PointNormal),
        DefaultFeatureRepresentation(SCALE_HIST),
        FirstFieldRepresentation(PointNormal),
    ],
    ids=["xyz", "raw", "custom", "feature", "feature-array", "base-loop"],
)
def test_batch_forms_match_per_record_forms(rep: PointRepresentation) -> None:
    rng = np.random.default_rng(0)
    n = 6
    floats = rng.uniform(-10, 10, size=n * rep.dtype.itemsize // 4).astype(np.float32)
    floats[5] = np.nan
    records = np.frombuffer(floats.tobytes(), dtype=rep.dtype).copy()

    expected = np.stack([rep.copy_to_float_array(r) for r in records])
    np.testing.assert_array_equal(rep.copy_to_float_matrix(records), expected)
    np.testing.assert_array_equal(rep.valid_mask(records), [rep.is_valid(r) for r in records])

    shared = rep.make_shared()
    shared.set_rescale_values(np.full(rep.get_number_of_dimensions(), 3.0))
    np.testing.assert_array_equal(
        shared.vectorize_batch(records), np.stack([shared.vectorize(r) for r in records])
    )


def test_batch_forms_check_shapes() -> None:
    rep = default_representation(PointXYZ)
    cloud = make_cloud(PointXYZ, 3)
    with pytest.raises(ValueError):
        rep.copy_to_float_matrix(cloud, np.empty((3, 2), dtype=np.float32))
    with pytest.raises(ValueError):
        rep.copy_to_float_matrix(cloud.reshape(3, 1))
    out = np.empty((3, 3), dtype=np.float32)
    assert rep.vectorize_batch(cloud, out) is out
    assert rep.copy_to_float_matrix(make_cloud(PointXYZ, 0)).shape == (0, 3)


def test_make_shared_is_independent() -> None:
    rep = CustomPointRepresentation(FIVE_FLOATS, max_dim=3, start_dim=1)
    rep.set_rescale_values([1.0, 2.0, 3.0])
    shared = rep.make_shared()
    assert shared is not rep
    assert type(shared) is CustomPointRepresentation
    assert shared.get_number_of_dimensions() == 3
    assert shared.rescale_values == (1.0, 2.0, 3.0)

    shared.set_rescale_values([10.0, 10.0, 10.0])
    assert rep.rescale_values == (1.0, 2.0, 3.0)
    rep.clear_rescale_values()
    assert shared.rescale_values == (10.0, 10.0, 10.0)


def test_register_default_representation() -> None:
    pt = PointType("TestPointXYZW", np.dtype([(k, np.float32) for k in ("x", "y", "z", "w")]))
    assert type(default_representation(pt)) is DefaultPointRepresentation
    register_default_representation(pt.name, lambda p: CustomPointRepresentation(p, max_dim=4))
    rep = default_representation(pt)
    assert rep.get_number_of_dimensions() == 4


def test_xyz_representation_requires_coordinates() -> None:
    with pytest.raises(LayoutError):
        XYZPointRepresentation(Normal)
