"""
Pipeline component tests: data types, smoother, classifier and confidence scorer.
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _metrics(**kwargs):
    from utils.learning_types import MetricSet
    return MetricSet(**kwargs)


def _expressions(**kwargs):
    from utils.learning_types import ExpressionVector
    return ExpressionVector.from_mapping(kwargs)


class TestLearningTypes(unittest.TestCase):
    """ExpressionVector, MetricSet and LearningState."""

    def test_missing_expression_labels_default_to_zero(self):
        e = _expressions(happy=0.8)
        self.assertEqual(e.happy, 0.8)
        self.assertEqual(e.neutral, 0.0)
        self.assertEqual(len(e.values()), 7)

    def test_unknown_expression_label_rejected(self):
        from utils.learning_types import ExpressionVector
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError):
            ExpressionVector.from_mapping({"happy": 0.5, "confused": 0.5})

    def test_unknown_labels_of_mixed_types_rejected(self):
        from utils.learning_types import ExpressionVector
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError) as ctx:
            ExpressionVector.from_mapping({"happy": 0.5, 3: 0.1, "bogus": 0.2, None: 0.0})
        self.assertIn("bogus", str(ctx.exception))

    def test_out_of_range_or_non_numeric_expression_rejected(self):
        from utils.learning_types import ExpressionVector
        from utils.pipeline_errors import SchemaError
        for bad in (1.5, -0.1, float("nan"), "high", None, True):
            with self.assertRaises(SchemaError, msg=f"value {bad!r} should be rejected"):
                ExpressionVector.from_mapping({"sad": bad})

    def test_expression_mapping_must_be_mapping(self):
        from utils.learning_types import ExpressionVector
        from utils.pipeline_errors import SchemaError
        with self.assertRaises(SchemaError):
            ExpressionVector.from_mapping([0.1] * 7)

    def test_dominant_expression(self):
        self.assertEqual(_expressions(sad=0.2, surprised=0.6).dominant(), "surprised")

    def test_metric_set_wire_names(self):
        from utils.learning_types import MetricSet
        m = MetricSet.from_dict({"eyebrowRaise": 0.2, "eye_openness": 0.9})
        self.assertEqual(m.eyebrow_raise, 0.2)
        self.assertEqual(m.eye_openness, 0.9)
        self.assertEqual(m.as_dict()["eyeOpenness"], 0.9)
        self.assertEqual(set(m.as_dict()), {
            "eyebrowRaise", "smileWidth", "eyeOpenness", "mouthOpen", "browFurrow", "mouthCornersDown",
        })

    def test_learning_state_from_label(self):
        from utils.learning_types import LearningState
        self.assertIs(LearningState.from_label(" Confused "), LearningState.CONFUSED)
        with self.assertRaises(ValueError):
            LearningState.from_label("sleepy")


class TestMetricSmoother(unittest.TestCase):
    """Exponential smoothing of metric sets."""

    def test_first_frame_seeds_average(self):
        from utils.metric_smoother import MetricSmoother
        s = MetricSmoother(alpha=0.6)
        raw = _metrics(eyebrow_raise=0.5, eye_openness=0.8)
        self.assertEqual(s.smooth(raw), raw)

    def test_ema_formula(self):
        from utils.metric_smoother import MetricSmoother
        s = MetricSmoother(alpha=0.6)
        s.smooth(_metrics(eye_openness=1.0))
        out = s.smooth(_metrics(eye_openness=0.0))
        self.assertAlmostEqual(out.eye_openness, 0.4)
        out = s.smooth(_metrics(eye_openness=0.0))
        self.assertAlmostEqual(out.eye_openness, 0.16)

    def test_smoothed_value_between_raw_and_previous(self):
        from utils.metric_smoother import MetricSmoother
        s = MetricSmoother(alpha=0.6)
        sequence = [0.1, 0.9, 0.3, 0.7, 0.0, 1.0, 0.5]
        previous = None
        for v in sequence:
            out = s.smooth(_metrics(mouth_open=v)).mouth_open
            if previous is not None:
                self.assertGreaterEqual(out, min(v, previous) - 1e-12)
                self.assertLessEqual(out, max(v, previous) + 1e-12)
            previous = out

    def test_recent_window_and_reset(self):
        from utils.metric_smoother import MetricSmoother
        s = MetricSmoother(alpha=0.5, history_window=3)
        for v in (0.1, 0.2, 0.3, 0.4):
            s.smooth(_metrics(smile_width=v))
        self.assertEqual(len(s.recent()), 3)
        s.reset()
        self.assertIsNone(s.previous)
        self.assertEqual(s.recent(), [])
        raw = _metrics(smile_width=0.9)
        self.assertEqual(s.smooth(raw), raw)

    def test_alpha_must_be_open_unit_interval(self):
        from utils.metric_smoother import MetricSmoother
        for alpha in (0.0, 1.0, -0.2, 1.5):
            with self.assertRaises(ValueError):
                MetricSmoother(alpha=alpha)


class TestClassifier(unittest.TestCase):
    """Score-based learning state classification."""

    def test_confusion_scenario(self):
        """Raised brows, open mouth, furrow and some surprise read as confused."""
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import LearningState
        state = classify_learning_state(
            _expressions(surprised=0.3),
            _metrics(eyebrow_raise=0.5, mouth_open=0.3, brow_furrow=0.4, eye_openness=1.0, smile_width=0.5),
        )
        self.assertIs(state, LearningState.CONFUSED)

    def test_presets_classify_as_named(self):
        from utils.landmark_metrics import extract_metrics
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import ExpressionVector, LearningState
        from tests.fixtures import synthetic_landmarks as fx
        cases = {
            LearningState.FOCUSED: fx.focused_frame(),
            LearningState.CONFUSED: fx.confused_frame(),
            LearningState.TIRED: fx.tired_frame(),
            LearningState.BORED: fx.bored_frame(),
        }
        for expected, (landmarks, expressions) in cases.items():
            state = classify_learning_state(ExpressionVector.from_mapping(expressions), extract_metrics(landmarks))
            self.assertIs(state, expected, msg=f"preset for {expected.value} classified as {state.value}")

    def test_confusion_takes_priority_over_fatigue(self):
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import LearningState
        state = classify_learning_state(_expressions(surprised=0.5), _metrics(eye_openness=0.1))
        self.assertIs(state, LearningState.CONFUSED)

    def test_droopy_eyes_are_tired(self):
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import LearningState
        state = classify_learning_state(_expressions(happy=0.9), _metrics(eye_openness=0.5, smile_width=0.9))
        self.assertIs(state, LearningState.TIRED)

    def test_deterministic_and_total(self):
        import itertools
        from utils.learning_state_classifier import classify_learning_state
        from utils.learning_types import LearningState
        grid = (0.0, 0.5, 1.0)
        for er, eo, mcd, sur in itertools.product(grid, grid, grid, grid):
            e = _expressions(surprised=sur, neutral=1.0 - sur)
            m = _metrics(eyebrow_raise=er, eye_openness=eo, mouth_corners_down=mcd)
            first = classify_learning_state(e, m)
            self.assertIsInstance(first, LearningState)
            self.assertIs(classify_learning_state(e, m), first)

    def test_custom_thresholds(self):
        from utils.learning_state_classifier import ClassifierThresholds, classify_learning_state
        from utils.learning_types import LearningState
        e = _expressions(happy=0.9)
        m = _metrics(eye_openness=0.5, smile_width=0.9, eyebrow_raise=0.9)
        strict = ClassifierThresholds(confusion_score=2.0, confusion_eyebrow_raise=2.0, tired_score=2.0, tired_eye_openness=0.0)
        self.assertIs(classify_learning_state(e, m, strict), LearningState.FOCUSED)


class TestEyeClosureStrategy(unittest.TestCase):
    """Sustained eye closure as the boredom signal."""

    def setUp(self):
        from utils.learning_state_classifier import LearningStateClassifier
        self.classifier = LearningStateClassifier(
            boredom_strategy="eye_closure", eye_closure_threshold=0.35, eye_closure_bored_sec=5.0,
        )
        self.expressions = _expressions(happy=0.9)
        self.closed = _metrics(eyebrow_raise=0.1, smile_width=0.8, eye_openness=0.2)
        self.open = _metrics(eyebrow_raise=0.1, smile_width=0.8, eye_openness=1.0)

    def test_short_closure_is_tired_then_bored_when_sustained(self):
        from utils.learning_types import LearningState
        self.assertIs(self.classifier.classify(self.expressions, self.closed, 100.0), LearningState.TIRED)
        self.assertIs(self.classifier.classify(self.expressions, self.closed, 103.0), LearningState.TIRED)
        self.assertIs(self.classifier.classify(self.expressions, self.closed, 105.0), LearningState.BORED)

    def test_open_eyes_reset_timer(self):
        from utils.learning_types import LearningState
        self.classifier.classify(self.expressions, self.closed, 100.0)
        self.assertIs(self.classifier.classify(self.expressions, self.open, 104.0), LearningState.FOCUSED)
        self.assertIs(self.classifier.classify(self.expressions, self.closed, 106.0), LearningState.TIRED)

    def test_reset_timers(self):
        from utils.learning_types import LearningState
        self.classifier.classify(self.expressions, self.closed, 100.0)
        self.classifier.reset_timers()
        self.assertIs(self.classifier.classify(self.expressions, self.closed, 106.0), LearningState.TIRED)

    def test_unknown_strategy_rejected(self):
        from utils.learning_state_classifier import LearningStateClassifier
        with self.assertRaises(ValueError):
            LearningStateClassifier(boredom_strategy="yawning")


class TestConfidenceScorer(unittest.TestCase):
    """Confidence fusion of expression, geometry and stability."""

    def test_weights_must_sum_to_one(self):
        from utils.confidence_scorer import ConfidenceScorer
        with self.assertRaises(ValueError):
            ConfidenceScorer(expression_weight=0.5, geometric_weight=0.5, temporal_weight=0.5)

    def test_expression_clarity(self):
        from utils.confidence_scorer import expression_clarity
        self.assertEqual(expression_clarity(_expressions()), 0.0)
        self.assertEqual(expression_clarity(_expressions(happy=1.0)), 1.0)
        flat = _expressions(happy=0.2, sad=0.2, angry=0.2, fearful=0.2, disgusted=0.2, surprised=0.2, neutral=0.2)
        self.assertAlmostEqual(expression_clarity(flat), 0.0)

    def test_default_stability_with_short_history(self):
        from utils.confidence_scorer import ConfidenceScorer
        scorer = ConfidenceScorer()
        m = _metrics(eye_openness=0.5)
        self.assertEqual(scorer.temporal_stability([]), 0.5)
        self.assertEqual(scorer.temporal_stability([m, m]), 0.5)
        self.assertEqual(scorer.temporal_stability([m, m, m]), 1.0)

    def test_stability_floor(self):
        from utils.confidence_scorer import ConfidenceScorer
        scorer = ConfidenceScorer(stability_floor=0.3)
        lo = _metrics(**{k: 0.0 for k in ("eyebrow_raise", "smile_width", "eye_openness", "mouth_open", "brow_furrow", "mouth_corners_down")})
        hi = _metrics(**{k: 1.0 for k in ("eyebrow_raise", "smile_width", "eye_openness", "mouth_open", "brow_furrow", "mouth_corners_down")})
        # variance of (0, 1, 0) is 2/9 per metric
        self.assertAlmostEqual(scorer.temporal_stability([lo, hi, lo]), 1.0 - 2.0 / 9.0)
        self.assertGreaterEqual(scorer.temporal_stability([lo, hi, lo]), 0.3)

    def test_confidence_within_floor_and_one(self):
        import itertools
        from utils.confidence_scorer import ConfidenceScorer
        from utils.learning_types import LearningState
        scorer = ConfidenceScorer(floor=0.3)
        grid = (0.0, 0.5, 1.0)
        for v, state in itertools.product(grid, LearningState):
            m = _metrics(eyebrow_raise=v, smile_width=v, eye_openness=v, brow_furrow=v)
            c = scorer.score(_expressions(neutral=v), m, state, [m, m, m])
            self.assertGreaterEqual(c, 0.3)
            self.assertLessEqual(c, 1.0)

    def test_worked_example(self):
        from utils.confidence_scorer import ConfidenceScorer
        from utils.learning_types import LearningState
        scorer = ConfidenceScorer()
        m = _metrics(eyebrow_raise=0.5, brow_furrow=0.4)
        # clarity 1.0 * 0.3 + geometry 0.45 * 0.5 + default stability 0.5 * 0.2
        c = scorer.score(_expressions(surprised=1.0), m, LearningState.CONFUSED, [m])
        self.assertAlmostEqual(c, 0.3 + 0.225 + 0.1)

    def test_low_evidence_hits_floor(self):
        from utils.confidence_scorer import ConfidenceScorer
        from utils.learning_types import LearningState
        scorer = ConfidenceScorer(floor=0.3)
        m = _metrics(eye_openness=1.0)
        self.assertEqual(scorer.score(_expressions(), m, LearningState.TIRED, []), 0.3)


if __name__ == "__main__":
    unittest.main()
