import pytest

from facecompare.errors import DegenerateReference, MissingReferenceLandmarks
from facecompare.landmarks import LandmarkName, LandmarkSet, Point
from facecompare.normalizer import normalize_landmarks


def _set(points):
    return LandmarkSet({name: Point(x, y) for name, (x, y) in points.items()})


def test_eyes_land_on_unit_axis():
    lm = _set({"LEFT_EYE": (100, 200), "RIGHT_EYE": (140, 200), "NOSE_TIP": (120, 240)})
    normalized = normalize_landmarks(lm)

    assert normalized.normalized
    assert normalized[LandmarkName.LEFT_EYE].x == pytest.approx(0.0)
    assert normalized[LandmarkName.LEFT_EYE].y == pytest.approx(0.0)
    assert normalized[LandmarkName.RIGHT_EYE].x == pytest.approx(1.0)
    assert normalized[LandmarkName.RIGHT_EYE].y == pytest.approx(0.0)
    # Divisor is the 40 px eye distance
    assert normalized[LandmarkName.NOSE_TIP].x == pytest.approx(0.5)
    assert normalized[LandmarkName.NOSE_TIP].y == pytest.approx(1.0)


@pytest.mark.parametrize("angle, scale, dx, dy", [
    (0.0, 1.0, 35.0, -12.0),
    (30.0, 2.5, 0.0, 0.0),
    (-75.0, 0.4, 310.0, 88.0),
    (180.0, 1.7, -50.0, 400.0),
])
def test_invariant_under_similarity_transform(face_points, transform_points, angle, scale, dx, dy):
    reference = normalize_landmarks(_set(face_points))
    moved = normalize_landmarks(_set(transform_points(face_points, angle, scale, dx, dy)))

    assert set(moved) == set(reference)
    for name in reference:
        assert moved[name].x == pytest.approx(reference[name].x, abs=1e-9)
        assert moved[name].y == pytest.approx(reference[name].y, abs=1e-9)


def test_key_set_is_preserved(face_points):
    lm = _set(face_points).without("NOSE_TIP", "MOUTH_CENTER")
    normalized = normalize_landmarks(lm)
    assert set(normalized) == set(lm)
    assert "NOSE_TIP" not in normalized


def test_missing_right_eye_raises(face_points):
    lm = _set(face_points).without("RIGHT_EYE")
    with pytest.raises(MissingReferenceLandmarks) as exc:
        normalize_landmarks(lm, image="before")
    assert exc.value.missing == ["RIGHT_EYE"]
    assert exc.value.details["image"] == "before"


def test_both_eyes_missing_are_listed():
    lm = _set({"NOSE_TIP": (1, 2)})
    with pytest.raises(MissingReferenceLandmarks) as exc:
        normalize_landmarks(lm)
    assert exc.value.missing == ["LEFT_EYE", "RIGHT_EYE"]


def test_coincident_eyes_are_degenerate():
    lm = _set({"LEFT_EYE": (50, 50), "RIGHT_EYE": (50, 50)})
    with pytest.raises(DegenerateReference):
        normalize_landmarks(lm)


def test_input_is_not_mutated(face_points):
    lm = _set(face_points)
    before = lm.to_dict()
    normalize_landmarks(lm)
    assert lm.to_dict() == before
    assert not lm.normalized


def test_depth_is_scaled_not_rotated():
    lm = LandmarkSet({
        "LEFT_EYE": Point(0, 0, 10),
        "RIGHT_EYE": Point(0, 20, 10),
        "NOSE_TIP": Point(0, 10, 30),
    })
    normalized = normalize_landmarks(lm)
    assert normalized["NOSE_TIP"].z == pytest.approx(1.0)
