import unittest
from pathlib import Path
import tempfile
import math
import sys
import numpy as np

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.estimator import VerticalEstimator
from VISTA.src.core.histogram import OrientationHistogram, build_histogram
from VISTA.src.core.peaks import PeakExtractor, rank_peaks, smooth_circular
from VISTA.src.core.pipeline import FramePipeline
from VISTA.src.core.processing import GradientFieldBuilder, ImageProcessor, MagnitudeMask
from VISTA.src.core.types import GRAVITY, VVResult, angle_to_bin, bin_to_angle
from VISTA.src.drivers.video import SyntheticFrameSource


def make_stripes(angle_deg, h=200, w=200, period=16.0):
    """Sinusoidal stripes whose intensity changes along ``angle_deg`` (y up)."""
    phi = math.radians(angle_deg)
    x = np.arange(w, dtype=np.float64) - w / 2.0
    y = h / 2.0 - np.arange(h, dtype=np.float64)
    xx, yy = np.meshgrid(x, y)
    u = xx * math.cos(phi) + yy * math.sin(phi)
    return np.clip(127.5 + 100.0 * np.sin(2.0 * np.pi * u / period), 0, 255).astype(np.uint8)


def make_histogram(weights, num_bins=180):
    hist = np.zeros(num_bins, dtype=np.float64)
    for idx, val in weights.items():
        hist[idx] = val
    return hist


class TestConfig(unittest.TestCase):
    def test_defaults_are_valid(self):
        cfg = Config()
        self.assertIs(cfg.validate(), cfg)
        self.assertEqual(cfg.BIN_COUNT, 180)
        self.assertEqual(cfg.TOP_K_PEAKS, 3)
        self.assertAlmostEqual(cfg.SMOOTHING_FACTOR, 0.7)

    def test_save_load_roundtrip(self):
        cfg = Config()
        cfg.BIN_COUNT = 90
        cfg.SMOOTHING_FACTOR = 0.5
        cfg.USE_CAMERA = True
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cfg.json"
            cfg.save(path)
            loaded = Config.load(path)
        self.assertEqual(loaded.BIN_COUNT, 90)
        self.assertAlmostEqual(loaded.SMOOTHING_FACTOR, 0.5)
        self.assertTrue(loaded.USE_CAMERA)

    def test_load_ignores_bad_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cfg.json"
            path.write_text('{"BIN_COUNT": "many", "TOP_K_PEAKS": 5, "UNKNOWN": 1}')
            loaded = Config.load(path)
        self.assertEqual(loaded.BIN_COUNT, 180)
        self.assertEqual(loaded.TOP_K_PEAKS, 5)

    def test_missing_file_gives_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            loaded = Config.load(Path(tmp) / "missing.json")
        self.assertEqual(loaded, Config())

    def test_inverted_band_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cfg.json"
            path.write_text('{"MIN_ANGLE_DEG": 150, "MAX_ANGLE_DEG": 30}')
            loaded = Config.load(path)
        self.assertEqual((loaded.MIN_ANGLE_DEG, loaded.MAX_ANGLE_DEG), (150.0, 30.0))
        with self.assertRaises(ConfigurationError) as ctx:
            loaded.validate()
        self.assertIn("angular band", str(ctx.exception))

    def test_equal_band_edges_rejected(self):
        cfg = Config()
        cfg.MIN_ANGLE_DEG = cfg.MAX_ANGLE_DEG = 90.0
        with self.assertRaises(ConfigurationError):
            cfg.validate()

    def test_boolean_strings_parsed(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cfg.json"
            path.write_text('{"SAVE_RESULTS": "false", "USE_CAMERA": "true", "USE_OPENCL": "maybe"}')
            loaded = Config.load(path)
        self.assertFalse(loaded.SAVE_RESULTS)
        self.assertTrue(loaded.USE_CAMERA)
        self.assertFalse(loaded.USE_OPENCL)

    def test_validate_reports_every_problem(self):
        cfg = Config()
        cfg.PEAK_SMOOTHING_WINDOW = 4
        cfg.SMOOTHING_FACTOR = 0.0
        cfg.BIN_COUNT = 0
        with self.assertRaises(ConfigurationError) as ctx:
            cfg.validate()
        msg = str(ctx.exception)
        self.assertIn("PEAK_SMOOTHING_WINDOW", msg)
        self.assertIn("SMOOTHING_FACTOR", msg)
        self.assertIn("BIN_COUNT", msg)

    def test_configuration_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigurationError, ValueError))


class TestBinAngleHelpers(unittest.TestCase):
    def test_default_bins_equal_degrees(self):
        self.assertEqual(bin_to_angle(90, 180), 90.0)
        self.assertEqual(angle_to_bin(90.0, 180), 90)

    def test_coarse_bins(self):
        self.assertEqual(bin_to_angle(45, 90), 90.0)
        self.assertEqual(angle_to_bin(91.9, 90), 45)

    def test_angle_to_bin_clamps(self):
        self.assertEqual(angle_to_bin(180.0, 180), 179)
        self.assertEqual(angle_to_bin(-5.0, 180), 0)


class TestVVResult(unittest.TestCase):
    def test_acceleration_follows_angle(self):
        for angle in (0.0, 30.0, 88.5, 90.0, 135.0, 180.0):
            r = VVResult.from_angle(angle)
            self.assertAlmostEqual(r.angle_rad, angle * math.pi / 180.0)
            self.assertAlmostEqual(r.acc_x, GRAVITY * math.cos(r.angle_rad))
            self.assertAlmostEqual(r.acc_y, GRAVITY * math.sin(r.angle_rad))

    def test_upright_points_down_the_y_axis(self):
        r = VVResult.from_angle(90.0)
        self.assertAlmostEqual(r.acc_x, 0.0, places=9)
        self.assertAlmostEqual(r.acc_y, GRAVITY)


class TestGradientField(unittest.TestCase):
    def setUp(self):
        self.builder = GradientFieldBuilder(Config())

    def test_uniform_image_has_no_gradient(self):
        img = np.full((64, 64), 128, dtype=np.uint8)
        field = self.builder.compute(img)
        self.assertEqual(field.magnitude.shape, img.shape)
        self.assertTrue(np.all(field.magnitude == 0))

    def test_angles_in_range(self):
        field = self.builder.compute(make_stripes(37.0))
        self.assertTrue(np.all(field.angle >= 0.0))
        self.assertTrue(np.all(field.angle < 360.0))

    def test_color_input_accepted(self):
        gray = make_stripes(60.0, h=64, w=64)
        bgr = np.dstack([gray, gray, gray])
        a = self.builder.compute(gray)
        b = self.builder.compute(bgr)
        np.testing.assert_allclose(a.magnitude, b.magnitude, atol=1e-3)

    def test_stripes_dominant_orientation(self):
        for angle in (60.0, 90.0, 120.0):
            field = self.builder.compute(make_stripes(angle))
            hist = build_histogram(field.magnitude, field.angle, 180)
            self.assertLessEqual(abs(int(np.argmax(hist)) - angle), 2, msg=f"angle {angle}")

    def test_even_kernel_rejected(self):
        cfg = Config()
        cfg.BLUR_KERNEL_SIZE = 10
        with self.assertRaises(ConfigurationError):
            GradientFieldBuilder(cfg)


class TestImageProcessor(unittest.TestCase):
    def test_downscale_by_integer_factor(self):
        cfg = Config()
        cfg.SCALE = 4
        out = ImageProcessor(cfg).process_image(np.zeros((480, 640, 3), dtype=np.uint8))
        self.assertEqual(out.shape, (120, 160, 3))

    def test_scale_one_is_passthrough(self):
        cfg = Config()
        cfg.SCALE = 1
        img = np.zeros((10, 20), dtype=np.uint8)
        self.assertIs(ImageProcessor(cfg).process_image(img), img)

    def test_upright_rotation_keeps_size(self):
        img = make_stripes(60.0, h=50, w=80)
        out = ImageProcessor.rotate_upright(img, 60.0)
        self.assertEqual(out.shape, img.shape)


class TestHistogram(unittest.TestCase):
    def test_zero_energy_gives_zero_histogram(self):
        mag = np.zeros((32, 32), dtype=np.float32)
        ang = np.full((32, 32), 45.0, dtype=np.float32)
        hist = build_histogram(mag, ang, 180)
        self.assertEqual(hist.shape, (180,))
        self.assertTrue(np.all(hist == 0))
        self.assertTrue(np.all(np.isfinite(hist)))

    def test_normalized_to_one(self):
        rng = np.random.default_rng(0)
        mag = rng.random((40, 40))
        ang = rng.random((40, 40)) * 360.0
        hist = build_histogram(mag, ang, 180)
        self.assertAlmostEqual(float(hist.sum()), 1.0)
        self.assertTrue(np.all(hist >= 0))

    def test_opposite_directions_fold_together(self):
        mag = np.ones(4)
        ang = np.array([30.0, 210.0, 30.5, 210.5])
        hist = build_histogram(mag, ang, 180)
        self.assertAlmostEqual(hist[30], 1.0)

    def test_binning_uses_floor_and_clamps(self):
        mag = np.ones(3)
        ang = np.array([0.0, 179.999, 359.999])
        hist = build_histogram(mag, ang, 90)
        self.assertAlmostEqual(hist[0], 1.0 / 3.0)
        self.assertAlmostEqual(hist[89], 2.0 / 3.0)

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            build_histogram(np.ones((4, 4)), np.ones((4, 5)), 180)

    def test_non_positive_bins(self):
        with self.assertRaises(ConfigurationError):
            OrientationHistogram(0)


class TestMagnitudeMask(unittest.TestCase):
    def test_threshold_without_erosion(self):
        cfg = Config()
        cfg.MAGNITUDE_THRESHOLD = 0.45
        cfg.ERODE_ITERATIONS = 0
        mag = np.tile(np.linspace(0.0, 10.0, 11, dtype=np.float32), (5, 1))
        mask = MagnitudeMask(cfg).apply(mag)
        np.testing.assert_array_equal(mask[0], (np.arange(11) >= 5).astype(np.float32))

    def test_flat_field_gives_empty_mask(self):
        mask = MagnitudeMask(Config()).apply(np.full((16, 16), 3.0, dtype=np.float32))
        self.assertFalse(mask.any())

    def test_erosion_removes_isolated_pixels(self):
        cfg = Config()
        cfg.MAGNITUDE_THRESHOLD = 0.1
        mag = np.zeros((20, 20), dtype=np.float32)
        mag[10, 10] = 1.0
        mag[2:9, 2:9] = 1.0
        mask = MagnitudeMask(cfg).apply(mag)
        self.assertEqual(mask[10, 10], 0)
        self.assertEqual(mask[5, 5], 1)


class TestPeaks(unittest.TestCase):
    def setUp(self):
        self.extractor = PeakExtractor(Config())

    def test_single_hump_has_one_peak(self):
        hist = make_histogram({65: 1, 66: 2, 67: 3, 68: 4, 69: 5, 70: 6, 71: 5, 72: 4, 73: 3, 74: 2, 75: 1})
        peaks = self.extractor.find_peaks(hist, 0, 180)
        self.assertEqual(len(peaks), 1)
        self.assertEqual(peaks[0].bin_index, 70)
        self.assertAlmostEqual(peaks[0].value, 4.8)

    def test_sorted_by_value_and_truncated(self):
        hist = make_histogram({20: 1.0, 60: 4.0, 100: 3.0, 140: 2.0})
        peaks = self.extractor.find_peaks(hist, 0, 180, smoothing_window=1)
        self.assertEqual([p.bin_index for p in peaks], [60, 100, 140])

    def test_ties_break_by_ascending_index(self):
        peaks = rank_peaks(np.array([0.0, 1.0, 0.0, 1.0, 0.0]))
        self.assertEqual([p.bin_index for p in peaks], [1, 3])

    def test_range_is_clamped(self):
        hist = make_histogram({5: 1.0})
        peaks = self.extractor.find_peaks(hist, -20, 400, smoothing_window=1)
        self.assertEqual([p.bin_index for p in peaks], [5])

    def test_empty_range_and_empty_histogram(self):
        hist = make_histogram({90: 1.0})
        self.assertEqual(self.extractor.find_peaks(hist, 100, 100), [])
        self.assertEqual(self.extractor.find_peaks(hist, 170, 20), [])
        self.assertEqual(self.extractor.find_peaks(np.zeros(0), 0, 10), [])

    def test_one_bin_slice_has_no_peaks(self):
        hist = make_histogram({90: 1.0})
        self.assertEqual(self.extractor.find_peaks(hist, 90, 91), [])

    def test_slice_endpoints_use_inner_neighbour_only(self):
        hist = make_histogram({30: 2.0, 31: 1.0})
        peaks = self.extractor.find_peaks(hist, 30, 40, smoothing_window=1)
        self.assertEqual([p.bin_index for p in peaks], [30])

    def test_smoothing_wraps_around(self):
        hist = make_histogram({0: 1.0})
        smoothed = smooth_circular(hist, 5)
        self.assertAlmostEqual(smoothed[178], 0.2)
        self.assertAlmostEqual(smoothed[2], 0.2)
        self.assertAlmostEqual(smoothed[3], 0.0)
        self.assertAlmostEqual(float(smoothed.sum()), 1.0)

    def test_even_window_rejected(self):
        cfg = Config()
        cfg.PEAK_SMOOTHING_WINDOW = 4
        with self.assertRaises(ConfigurationError):
            PeakExtractor(cfg)


class TestVerticalEstimator(unittest.TestCase):
    def make_estimator(self, **overrides):
        cfg = Config()
        for key, val in overrides.items():
            setattr(cfg, key, val)
        return VerticalEstimator(cfg)

    def test_spike_is_blended_with_previous(self):
        est = self.make_estimator()
        res = est.estimate(make_histogram({90: 1.0}), VVResult.from_angle(85.0))
        self.assertAlmostEqual(res.angle, 88.5, delta=1e-6)

    def test_weighted_mean_of_top_bins(self):
        est = self.make_estimator()
        hist = make_histogram({60: 0.2, 90: 0.5, 120: 0.3})
        res = est.estimate(hist, VVResult.from_angle(90.0))
        self.assertAlmostEqual(res.angle, 92.1, delta=1e-6)

        raw = self.make_estimator(SMOOTHING_FACTOR=1.0).estimate(hist)
        self.assertAlmostEqual(raw.angle, 93.0, delta=1e-6)

    def test_three_peak_weighted_mean(self):
        est = self.make_estimator(SMOOTHING_FACTOR=1.0)
        res = est.estimate(make_histogram({60: 0.3, 90: 0.5, 120: 0.2}))
        self.assertAlmostEqual(res.angle, 87.0, delta=1e-6)

    def test_empty_histogram_holds_previous(self):
        est = self.make_estimator()
        prev = VVResult.from_angle(77.0)
        self.assertIs(est.estimate(np.zeros(180), prev), prev)
        self.assertIs(est.estimate(np.zeros(0), prev), prev)

    def test_energy_outside_band_holds(self):
        est = self.make_estimator()
        first = est.estimate(make_histogram({90: 1.0}))
        held = est.estimate(make_histogram({10: 1.0, 170: 1.0}))
        self.assertIs(held, first)
        self.assertEqual(len(est.history), 2)

    def test_band_is_inclusive(self):
        est = self.make_estimator(SMOOTHING_FACTOR=1.0)
        self.assertAlmostEqual(est.estimate(make_histogram({30: 1.0})).angle, 30.0)
        self.assertAlmostEqual(est.estimate(make_histogram({150: 1.0})).angle, 150.0)

    def test_seed_used_before_first_frame(self):
        est = self.make_estimator(SEED_ANGLE_DEG=80.0)
        self.assertIsNone(est.previous)
        res = est.estimate(make_histogram({100: 1.0}))
        self.assertAlmostEqual(res.angle, 0.7 * 100.0 + 0.3 * 80.0)

    def test_large_jump_is_blended(self):
        est = self.make_estimator()
        res = est.estimate(make_histogram({140: 1.0}), VVResult.from_angle(40.0))
        self.assertAlmostEqual(res.angle, 110.0)

    def test_top_k_tie_uses_lowest_bins(self):
        est = self.make_estimator(TOP_K_PEAKS=2, SMOOTHING_FACTOR=1.0)
        hist = make_histogram({50: 1.0, 70: 1.0, 130: 1.0})
        self.assertAlmostEqual(est.estimate(hist).angle, 60.0)

    def test_top_peak_round_trip(self):
        hist = make_histogram({73: 0.2, 74: 0.6, 75: 1.0, 76: 0.6, 77: 0.2})
        top = PeakExtractor(Config()).find_peaks(hist, 0, 180, top_k=1)[0]
        est = self.make_estimator(TOP_K_PEAKS=1, SMOOTHING_FACTOR=1.0)
        self.assertAlmostEqual(est.estimate(hist).angle, float(top.bin_index))

    def test_history_and_reset(self):
        est = self.make_estimator()
        for _ in range(3):
            est.estimate(make_histogram({90: 1.0}))
        self.assertEqual(len(est.history), 3)
        est.history.append(None)
        self.assertEqual(len(est.history), 3)

        est.reset()
        self.assertIsNone(est.previous)
        self.assertEqual(est.history, [])

    def test_results_tracks_acceleration_invariant(self):
        est = self.make_estimator()
        for angle in (45, 60, 120, 135):
            r = est.estimate(make_histogram({angle: 1.0}))
            self.assertAlmostEqual(r.acc_x, GRAVITY * math.cos(math.radians(r.angle)))
            self.assertAlmostEqual(r.acc_y, GRAVITY * math.sin(math.radians(r.angle)))

    def test_invalid_parameters(self):
        with self.assertRaises(ConfigurationError):
            self.make_estimator(MIN_ANGLE_DEG=150.0, MAX_ANGLE_DEG=30.0)
        with self.assertRaises(ConfigurationError):
            self.make_estimator(SMOOTHING_FACTOR=1.5)
        with self.assertRaises(ConfigurationError):
            self.make_estimator(TOP_K_PEAKS=0)


class TestFramePipeline(unittest.TestCase):
    def test_tracks_stripe_orientation(self):
        cfg = Config()
        cfg.SMOOTHING_FACTOR = 1.0
        pipeline = FramePipeline(cfg)
        result = pipeline.process_frame(make_stripes(60.0, h=240, w=320), scaled=True)
        self.assertAlmostEqual(result.vv.angle, 60.0, delta=2.0)
        self.assertTrue(result.peaks)
        self.assertLessEqual(abs(result.peaks[0].bin_index - 60), 2)
        self.assertEqual(result.mask.shape, result.gray.shape)

    def test_peaks_stay_inside_band(self):
        pipeline = FramePipeline(Config())
        result = pipeline.process_frame(make_stripes(10.0), scaled=True)
        for p in result.peaks:
            self.assertGreaterEqual(p.bin_index, 30)
            self.assertLessEqual(p.bin_index, 150)

    def test_uniform_frame_holds_seed(self):
        pipeline = FramePipeline(Config())
        result = pipeline.process_frame(np.full((60, 80, 3), 90, dtype=np.uint8))
        self.assertIs(result.vv, pipeline.estimator.seed)
        self.assertEqual(result.peaks, [])

    def test_mask_failure_does_not_stop_estimation(self):
        pipeline = FramePipeline(Config())

        class BrokenMask:
            def apply(self, magnitude):
                raise RuntimeError("boom")

        pipeline.masker = BrokenMask()
        with self.assertLogs("VISTA.src.core.pipeline", level="ERROR"):
            result = pipeline.process_frame(make_stripes(90.0), scaled=True)
        self.assertIsNone(result.mask)
        self.assertEqual(len(pipeline.estimator.history), 1)

    def test_synthetic_source_sways_around_upright(self):
        cfg = Config()
        cfg.SMOOTHING_FACTOR = 1.0
        pipeline = FramePipeline(cfg)
        source = SyntheticFrameSource(width=320, height=240, sway_deg=20.0, period_frames=8, max_frames=3)
        for i in range(3):
            expected = source.angle_at(i)
            result = pipeline.process_frame(source.read(), scaled=True)
            self.assertAlmostEqual(result.vv.angle, expected, delta=3.0)
        self.assertIsNone(source.read())


if __name__ == "__main__":
    unittest.main()
