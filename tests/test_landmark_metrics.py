"""
Landmark metric extractor and MediaPipe 68-point mapping tests.

Uses synthetic 68-point landmarks with known metric values.
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np


class TestExtractMetrics(unittest.TestCase):
    """extract_metrics on synthetic geometry."""

    def test_known_values_round_trip_through_geometry(self):
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        m = extract_metrics(make_landmarks(
            eyebrow_raise=0.4, smile_width=0.7, eye_openness=0.6,
            mouth_open=0.25, brow_furrow=0.3, mouth_corners_down=0.2,
        ))
        self.assertAlmostEqual(m.eyebrow_raise, 0.4, places=6)
        self.assertAlmostEqual(m.smile_width, 0.7, places=6)
        self.assertAlmostEqual(m.eye_openness, 0.6, places=6)
        self.assertAlmostEqual(m.mouth_open, 0.25, places=6)
        self.assertAlmostEqual(m.brow_furrow, 0.3, places=6)
        self.assertAlmostEqual(m.mouth_corners_down, 0.2, places=6)

    def test_raised_brow_gives_positive_eyebrow_raise(self):
        """Brows above the eyes (smaller y) must produce a raise, not clamp to zero."""
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        low = extract_metrics(make_landmarks(eyebrow_raise=0.1)).eyebrow_raise
        high = extract_metrics(make_landmarks(eyebrow_raise=0.8)).eyebrow_raise
        self.assertGreater(high, low)
        self.assertGreater(low, 0.0)

    def test_all_metrics_clamped_to_unit_interval(self):
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks()
        # Exaggerate: eyes very wide, mouth very open, brows far apart
        lm[41, 1] += 100
        lm[47, 1] += 100
        lm[66, 1] += 200
        lm[21, 0] -= 100
        m = extract_metrics(lm)
        for value in m.values():
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)
        self.assertEqual(m.eye_openness, 1.0)
        self.assertEqual(m.mouth_open, 1.0)
        self.assertEqual(m.brow_furrow, 0.0)

    def test_smile_clamps_corners_down_to_zero(self):
        """Mouth corners above the upper lip (a smile) never report a frown."""
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks()
        lm[48, 1] -= 8
        lm[54, 1] -= 8
        self.assertEqual(extract_metrics(lm).mouth_corners_down, 0.0)

    def test_zero_jaw_width_gives_zero_smile(self):
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks(smile_width=0.5)
        lm[16, 0] = lm[0, 0]
        self.assertEqual(extract_metrics(lm).smile_width, 0.0)

    def test_accepts_68x3_and_ignores_z(self):
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks(eye_openness=0.5)
        lm3 = np.hstack([lm, np.full((68, 1), 42.0)])
        self.assertEqual(extract_metrics(lm3), extract_metrics(lm))

    def test_accepts_nested_lists(self):
        from utils.landmark_metrics import extract_metrics
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks()
        self.assertEqual(extract_metrics(lm.tolist()), extract_metrics(lm))


class TestGeometryValidation(unittest.TestCase):
    """Malformed geometry raises SchemaError."""

    def test_wrong_point_count(self):
        from utils.landmark_metrics import extract_metrics
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError):
            extract_metrics(np.zeros((67, 2)))
        with self.assertRaises(SchemaError):
            extract_metrics(np.zeros((468, 3)))

    def test_wrong_dimensions(self):
        from utils.landmark_metrics import extract_metrics
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError):
            extract_metrics(np.zeros(136))
        with self.assertRaises(SchemaError):
            extract_metrics(np.zeros((68, 4)))

    def test_non_finite_values(self):
        from utils.landmark_metrics import extract_metrics
        from utils.pipeline_errors import SchemaError
        from tests.fixtures.synthetic_landmarks import make_landmarks
        lm = make_landmarks()
        lm[30, 0] = np.nan
        with self.assertRaises(SchemaError):
            extract_metrics(lm)
        lm[30, 0] = np.inf
        with self.assertRaises(SchemaError):
            extract_metrics(lm)

    def test_non_numeric_and_missing(self):
        from utils.landmark_metrics import extract_metrics
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError):
            extract_metrics([["a", "b"]] * 68)
        with self.assertRaises(SchemaError):
            extract_metrics(None)

    def test_schema_error_is_learning_state_error(self):
        from utils.pipeline_errors import SchemaError, LearningStateError
        self.assertTrue(issubclass(SchemaError, LearningStateError))


def _resting_face(brow_gap_px=20.0, inner_brow_px=25.0):
    """Focused-preset face with brows at a natural height above the eyelids (200 px jaw)."""
    from tests.fixtures.synthetic_landmarks import make_landmarks, FOCUSED_METRICS, EYE_TOP_Y, CENTER_X
    lm = make_landmarks(**FOCUSED_METRICS)
    lm[17:27, 1] = EYE_TOP_Y - brow_gap_px
    lm[21, 0] = CENTER_X - inner_brow_px / 2
    lm[22, 0] = CENTER_X + inner_brow_px / 2
    return lm


class TestRealisticBrowGeometry(unittest.TestCase):
    """Resting brows sit well above the eyelids and must not read as raised."""

    def test_resting_brows_read_as_not_raised(self):
        from utils.landmark_metrics import extract_metrics
        m = extract_metrics(_resting_face())
        self.assertLess(m.eyebrow_raise, 0.3)
        self.assertEqual(m.eyebrow_raise, 0.0)

    def test_resting_face_classifies_as_focused(self):
        from utils.landmark_metrics import extract_metrics
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import ExpressionVector, LearningState
        from tests.fixtures.synthetic_landmarks import FOCUSED_EXPRESSIONS
        state = classify_learning_state(
            ExpressionVector.from_mapping(FOCUSED_EXPRESSIONS),
            extract_metrics(_resting_face()),
        )
        self.assertIs(state, LearningState.FOCUSED)

    def test_clearly_raised_brows_still_register(self):
        from utils.landmark_metrics import extract_metrics
        m = extract_metrics(_resting_face(brow_gap_px=32.0))
        self.assertAlmostEqual(m.eyebrow_raise, 0.8, places=6)

    def test_brow_raise_scales_with_face_size(self):
        from utils.landmark_metrics import extract_metrics
        small = _resting_face(brow_gap_px=26.0)
        large = small * 2.0
        self.assertAlmostEqual(extract_metrics(small).eyebrow_raise, 0.4, places=6)
        self.assertAlmostEqual(extract_metrics(large).eyebrow_raise, 0.4, places=6)

    def test_resting_pipeline_session_stays_focused(self):
        from learning_state_pipeline import LearningStatePipeline, PipelineSettings
        from utils.learning_types import LearningState
        from tests.fixtures.synthetic_landmarks import FOCUSED_EXPRESSIONS
        pipeline = LearningStatePipeline(PipelineSettings())
        results = [
            pipeline.process_frame(_resting_face(), dict(FOCUSED_EXPRESSIONS), now=float(i))
            for i in range(5)
        ]
        self.assertIs(pipeline.published_state, LearningState.FOCUSED)
        self.assertFalse(any(r.clarification_due for r in results))


class TestMediaPipeMapping(unittest.TestCase):
    """468/478-point mesh reduced to the 68-point layout."""

    def test_mapping_has_68_unique_indices(self):
        from utils.mediapipe_landmark_mapper import MEDIAPIPE_TO_68
        self.assertEqual(len(MEDIAPIPE_TO_68), 68)
        self.assertEqual(len(set(MEDIAPIPE_TO_68)), 68)
        self.assertTrue(all(0 <= i < 468 for i in MEDIAPIPE_TO_68))

    def test_selects_mapped_points(self):
        from utils.mediapipe_landmark_mapper import mediapipe_to_68, MEDIAPIPE_TO_68
        mesh = np.stack([np.arange(478, dtype=float), np.arange(478, dtype=float) * 2, np.zeros(478)], axis=1)
        out = mediapipe_to_68(mesh)
        self.assertEqual(out.shape, (68, 2))
        self.assertEqual(out[62, 0], 13.0)  # inner upper lip
        self.assertEqual(out[66, 1], 28.0)  # inner lower lip (14 * 2)
        self.assertEqual(out[36, 0], float(MEDIAPIPE_TO_68[36]))

    def test_rejects_small_mesh(self):
        from utils.mediapipe_landmark_mapper import mediapipe_to_68
        with self.assertRaises(ValueError):
            mediapipe_to_68(np.zeros((68, 2)))


if __name__ == "__main__":
    unittest.main()
