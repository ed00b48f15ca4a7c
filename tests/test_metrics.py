import pytest

from facecompare.errors import MissingReferenceLandmarks
from facecompare.landmarks import ColorSample
from facecompare.utils.metrics_utils import (
    METRIC_SPECS, NORMALIZED_FAMILIES, MetricExtractor, MetricName as M
)
from facecompare.utils.skin_utils import skin_brightness, skin_saturation

NORMALIZED = {name for name, spec in METRIC_SPECS.items() if spec.family in NORMALIZED_FAMILIES}

# Metrics that need each landmark (face without bounding box or pose)
DEPENDS = {
    "LEFT_EYE_LEFT_CORNER": {M.FACE_LIFT_ANGLE, M.CHEEK_DROOP_LEFT, M.CHEEK_DROOP_INDEX},
    "RIGHT_EYE_RIGHT_CORNER": {M.FACE_LIFT_ANGLE, M.CHEEK_DROOP_RIGHT, M.CHEEK_DROOP_INDEX},
    "LEFT_OF_LEFT_EYEBROW": {M.EYEBROW_TO_EYE_DISTANCE},
    "MIDPOINT_BETWEEN_EYES": {M.FACE_AREA},
    "FOREHEAD_GLABELLA": {M.FACE_HEIGHT},
    "NOSE_TIP": set(),
    "NOSE_BOTTOM_CENTER": {M.LOWER_FACE_RATIO},
    "MOUTH_LEFT": {M.FACE_LIFT_ANGLE, M.MOUTH_CORNER_DROOP, M.CHEEK_DROOP_LEFT, M.CHEEK_DROOP_INDEX},
    "MOUTH_RIGHT": {M.FACE_LIFT_ANGLE, M.MOUTH_CORNER_DROOP, M.CHEEK_DROOP_RIGHT, M.CHEEK_DROOP_INDEX},
    "MOUTH_CENTER": {M.LOWER_FACE_RATIO},
    "CHIN_GNATHION": {M.FACE_HEIGHT, M.FACE_LIFT_ANGLE, M.LOWER_FACE_RATIO, M.JAW_LINE_ANGLE, M.FACE_AREA},
    "LEFT_EAR_TRAGION": {M.FACE_WIDTH, M.JAW_LINE_ANGLE, M.JAW_WIDTH_RATIO, M.FACE_AREA},
    "RIGHT_EAR_TRAGION": {M.FACE_WIDTH, M.JAW_LINE_ANGLE, M.JAW_WIDTH_RATIO, M.FACE_AREA},
    "CHIN_LEFT_GONION": {M.JAW_LINE_ANGLE, M.JAW_WIDTH_RATIO, M.JAW_WIDTH},
    "CHIN_RIGHT_GONION": {M.JAW_LINE_ANGLE, M.JAW_WIDTH_RATIO, M.JAW_WIDTH},
    "LEFT_CHEEK_CENTER": {M.CHEEK_DROOP_LEFT, M.CHEEK_DROOP_INDEX, M.CHEEK_WIDTH},
    "RIGHT_CHEEK_CENTER": {M.CHEEK_DROOP_RIGHT, M.CHEEK_DROOP_INDEX, M.CHEEK_WIDTH},
}


def test_full_detection_defines_every_metric(full_face, skin_colors):
    vector = MetricExtractor().extract(full_face, skin_colors)
    assert set(vector.names()) == set(M)
    assert vector.normalization_error is None


def test_measurements_use_pixel_scale(full_face):
    vector = MetricExtractor(pixel_to_mm=0.1).extract(full_face)
    assert vector[M.EYE_DISTANCE] == pytest.approx(6.0)
    assert vector[M.FACE_WIDTH] == pytest.approx(16.0)
    assert vector[M.FACE_HEIGHT] == pytest.approx(20.0)
    assert vector[M.EYEBROW_TO_EYE_DISTANCE] == pytest.approx(2.5)
    assert vector[M.FACE_ANGLE] == pytest.approx(2.0)


def test_face_size_falls_back_to_landmarks(make_face):
    vector = MetricExtractor(pixel_to_mm=0.1).extract(make_face())
    assert vector[M.FACE_WIDTH] == pytest.approx(14.0)
    assert vector[M.FACE_HEIGHT] == pytest.approx(14.5)
    # No pose reported: the roll angle is absent, not zero
    assert M.FACE_ANGLE not in vector


def test_normalized_metric_values(make_face):
    vector = MetricExtractor().extract(make_face())
    assert vector[M.LOWER_FACE_RATIO] == pytest.approx(0.375)
    assert vector[M.JAW_WIDTH_RATIO] == pytest.approx(110.0 / 140.0)
    assert vector[M.MOUTH_CORNER_DROOP] == pytest.approx(0.0)
    assert vector[M.CHEEK_DROOP_LEFT] == pytest.approx(1.0 / 6.0)
    assert vector[M.CHEEK_DROOP_RIGHT] == pytest.approx(1.0 / 6.0)
    assert vector[M.CHEEK_DROOP_INDEX] == pytest.approx(1.0 / 6.0)
    assert vector[M.CHEEK_WIDTH] == pytest.approx(70.0 / 60.0)
    assert vector[M.JAW_WIDTH] == pytest.approx(110.0 / 60.0)
    assert vector[M.FACE_AREA] == pytest.approx(9100.0 / 3600.0)
    assert 0.0 < vector[M.FACE_LIFT_ANGLE] < 180.0
    assert 0.0 < vector[M.JAW_LINE_ANGLE] <= 180.0


def test_jaw_width_ratio_uses_horizontal_widths(make_face, face_points):
    points = dict(face_points)
    # Right gonion lower than the left; horizontal span unchanged
    points["CHIN_RIGHT_GONION"] = (185.0, 320.0)
    vector = MetricExtractor().extract(make_face(points))
    assert vector[M.JAW_WIDTH_RATIO] == pytest.approx(110.0 / 140.0)


def test_normalized_metrics_ignore_framing(make_face, face_points, transform_points):
    extractor = MetricExtractor()
    reference = extractor.extract(make_face(face_points))
    moved = extractor.extract(make_face(transform_points(face_points, 25.0, 1.8, 40.0, -30.0)))
    for name in NORMALIZED:
        assert moved[name] == pytest.approx(reference[name], abs=1e-9)


@pytest.mark.parametrize("landmark", sorted(DEPENDS))
def test_missing_landmark_removes_only_dependent_metrics(make_face, face_points, landmark):
    extractor = MetricExtractor()
    reference = extractor.extract(make_face(face_points))
    reduced_points = {k: v for k, v in face_points.items() if k != landmark}
    reduced = extractor.extract(make_face(reduced_points))

    assert set(reference.names()) - set(reduced.names()) == DEPENDS[landmark]
    for name in reduced.names():
        assert reduced[name] == pytest.approx(reference[name], rel=1e-12, abs=1e-12)


def test_missing_right_eye_keeps_eye_independent_metrics(make_face, face_points, skin_colors):
    points = {k: v for k, v in face_points.items() if k != "RIGHT_EYE"}
    vector = MetricExtractor().extract(make_face(points), skin_colors, image="before")

    assert isinstance(vector.normalization_error, MissingReferenceLandmarks)
    assert vector.normalization_error.missing == ["RIGHT_EYE"]
    assert not NORMALIZED & set(vector.names())
    assert M.EYE_DISTANCE not in vector
    # Independent of the right eye
    for name in (M.FACE_WIDTH, M.FACE_HEIGHT, M.EYEBROW_TO_EYE_DISTANCE, M.SKIN_BRIGHTNESS, M.SKIN_SATURATION):
        assert name in vector


def test_skin_metrics_need_colors(make_face):
    vector = MetricExtractor().extract(make_face(), colors=[])
    assert M.SKIN_BRIGHTNESS not in vector
    assert M.SKIN_SATURATION not in vector


def test_skin_brightness_and_saturation_of_gray():
    gray = [ColorSample(128.0, 128.0, 128.0, score=1.0)]
    assert skin_brightness(gray) == pytest.approx(128.0)
    assert skin_saturation(gray) == pytest.approx(0.0)


def test_skin_saturation_of_pure_red():
    red = [ColorSample(255.0, 0.0, 0.0, score=0.9)]
    assert skin_saturation(red) == pytest.approx(255.0)
    assert skin_brightness(red) == pytest.approx(0.299 * 255.0)


def test_skin_uses_top_scored_colors_only():
    colors = [
        ColorSample(0.0, 0.0, 0.0, score=0.01),
        ColorSample(100.0, 100.0, 100.0, score=0.5),
        ColorSample(200.0, 200.0, 200.0, score=0.5),
    ]
    assert skin_brightness(colors, count=2) == pytest.approx(150.0)


def test_unscored_colors_weigh_equally():
    colors = [ColorSample(100.0, 100.0, 100.0), ColorSample(200.0, 200.0, 200.0)]
    assert skin_brightness(colors) == pytest.approx(150.0)


def test_vector_to_dict_uses_metric_names(make_face):
    data = MetricExtractor().extract(make_face()).to_dict(digits=3)
    assert data["lower_face_ratio"] == 0.375
