"""
Comprehensive System Tests for the Sketchpad Character Classifier
Tests the normalization core: raster images, bounding boxes, canonical images and features
"""

import os
import sys
import unittest
import numpy as np

# Add src directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'src'))

from sketchpad.constants import FEATURE_LENGTH, TARGET_SIZE
from sketchpad.image_preprocessing import (
    BoundingBox,
    CanonicalImageNormalizer,
    find_bounding_box,
    image_to_features,
    preprocess_drawing,
    preview_image,
    source_region,
)
from sketchpad.raster import RasterImage
from sketchpad.session import SketchSession


def white_canvas(width, height):
    return np.full((height, width, 4), 255, dtype=np.uint8)


class TestRasterImage(unittest.TestCase):
    """Test the immutable image value"""

    def test_blank_is_white_and_opaque(self):
        """Test blank image colour"""
        image = RasterImage.blank(5, 3)
        self.assertEqual(image.size, (5, 3))
        self.assertEqual(image.pixels.shape, (3, 5, 4))
        self.assertTrue((image.pixels == 255).all())

    def test_buffer_length(self):
        """Test pixel buffer size"""
        image = RasterImage.blank(7, 4)
        self.assertEqual(image.pixels.size, 7 * 4 * 4)

    def test_invalid_dimensions(self):
        """Test dimension validation"""
        with self.assertRaises(ValueError):
            RasterImage.blank(0, 10)
        with self.assertRaises(ValueError):
            RasterImage(2, 2, np.zeros((3, 2, 4), dtype=np.uint8))
        with self.assertRaises(ValueError):
            RasterImage.from_array(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_pixels_are_read_only(self):
        """Test immutability"""
        image = RasterImage.blank(2, 2)
        with self.assertRaises(ValueError):
            image.pixels[0, 0, 0] = 0

    def test_source_array_is_not_aliased(self):
        """Test the source array is copied"""
        arr = white_canvas(4, 4)
        image = RasterImage.from_array(arr)
        arr[0, 0] = 0
        self.assertEqual(image.pixels[0, 0, 0], 255)

    def test_from_gray_and_rgb(self):
        """Test grayscale and RGB conversion"""
        gray = np.full((3, 4), 10, dtype=np.uint8)
        image = RasterImage.from_array(gray)
        self.assertEqual(image.size, (4, 3))
        np.testing.assert_array_equal(image.pixels[0, 0], [10, 10, 10, 255])

        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[..., 0] = 200
        image = RasterImage.from_array(rgb)
        np.testing.assert_array_equal(image.pixels[1, 1], [200, 0, 0, 255])

    def test_equality(self):
        """Test value equality"""
        self.assertEqual(RasterImage.blank(3, 3), RasterImage.blank(3, 3))
        self.assertNotEqual(RasterImage.blank(3, 3), RasterImage.blank(3, 4))


class TestBoundingBox(unittest.TestCase):
    """Test the foreground bounding box locator"""

    def test_blank_canvas_is_empty(self):
        """Test the empty sentinel"""
        box = find_bounding_box(RasterImage.blank(50, 40))
        self.assertTrue(box.is_empty)
        self.assertEqual(box, BoundingBox.EMPTY)
        self.assertEqual((box.left, box.top, box.right, box.bottom), (-1, -1, -1, -1))
        self.assertEqual(box.width, 0)

    def test_single_pixel_at_origin(self):
        """Test a single corner pixel"""
        arr = white_canvas(30, 30)
        arr[0, 0] = (0, 0, 0, 255)
        box = find_bounding_box(RasterImage.from_array(arr))
        self.assertFalse(box.is_empty)
        self.assertEqual(box, BoundingBox(0, 0, 0, 0))

    def test_rectangle_extents(self):
        """Test inclusive rectangle bounds"""
        arr = white_canvas(100, 80)
        arr[10:21, 30:61] = (0, 0, 0, 255)
        box = find_bounding_box(RasterImage.from_array(arr))
        self.assertEqual(box, BoundingBox(30, 10, 60, 20))
        self.assertEqual(box.width, 31)
        self.assertEqual(box.height, 11)

    def test_only_red_channel_is_inspected(self):
        """Test the red-channel foreground rule"""
        arr = white_canvas(20, 20)
        arr[5, 5] = (255, 0, 0, 255)   # red-only pixel: background
        arr[8, 9] = (254, 255, 255, 255)  # faint: foreground
        box = find_bounding_box(RasterImage.from_array(arr))
        self.assertEqual(box, BoundingBox(9, 8, 9, 8))

    def test_disjoint_strokes_share_one_box(self):
        """Test separate strokes"""
        arr = white_canvas(60, 60)
        arr[5:8, 10:13] = 0
        arr[50:53, 40:43] = 0
        box = find_bounding_box(RasterImage.from_array(arr))
        self.assertEqual(box, BoundingBox(10, 5, 42, 52))


class TestSourceRegion(unittest.TestCase):
    """Test padding and edge clamping of the sampled region"""

    def test_centered_content(self):
        """Test padding around centred content"""
        image = RasterImage.blank(100, 100)
        region = source_region(image, BoundingBox(40, 45, 59, 54))
        # maxDim 20 -> padded 24 around centre (49.5, 49.5)
        self.assertAlmostEqual(region.x, 37.5)
        self.assertAlmostEqual(region.y, 37.5)
        self.assertAlmostEqual(region.width, 24.0)
        self.assertAlmostEqual(region.height, 24.0)

    def test_right_edge_shrinks_extent(self):
        """Test clipping at the right edge"""
        image = RasterImage.blank(100, 100)
        region = source_region(image, BoundingBox(90, 40, 99, 59))
        self.assertAlmostEqual(region.x, 82.5)
        self.assertAlmostEqual(region.width, 17.5)
        self.assertAlmostEqual(region.y, 37.5)
        self.assertAlmostEqual(region.height, 24.0)

    def test_left_edge_clamps_origin_only(self):
        """Test clamping at the left edge"""
        image = RasterImage.blank(100, 100)
        region = source_region(image, BoundingBox(0, 40, 9, 59))
        self.assertAlmostEqual(region.x, 0.0)
        # Origin clamp does not shorten the extent on this side
        self.assertAlmostEqual(region.width, 24.0)

    def test_padding_never_exceeds_smaller_canvas_side(self):
        """Test padding limit"""
        image = RasterImage.blank(200, 50)
        region = source_region(image, BoundingBox(0, 0, 199, 49))
        self.assertAlmostEqual(region.width, 50.0)
        self.assertAlmostEqual(region.height, 50.0)

    def test_empty_box_rejected(self):
        """Test empty box validation"""
        with self.assertRaises(ValueError):
            source_region(RasterImage.blank(10, 10), BoundingBox.EMPTY)


class TestCanonicalImageNormalizer(unittest.TestCase):
    """Test crop/centre/rescale onto the 28x28 canonical image"""

    def setUp(self):
        self.normalizer = CanonicalImageNormalizer()

    def test_blank_canvas_gives_white_image(self):
        """Test blank input"""
        result = self.normalizer.normalize(RasterImage.blank(280, 280))
        self.assertEqual(result.size, (TARGET_SIZE, TARGET_SIZE))
        self.assertTrue((result.pixels == 255).all())

    def test_blank_canonical_is_idempotent(self):
        """Test normalizing a blank canonical image"""
        blank = RasterImage.blank(TARGET_SIZE, TARGET_SIZE)
        self.assertEqual(self.normalizer.normalize(blank), blank)

    def test_output_is_always_28x28(self):
        """Test output size for varied canvases"""
        rng = np.random.default_rng(0)
        for width, height in [(1, 1), (5, 300), (300, 5), (280, 280), (31, 17)]:
            arr = white_canvas(width, height)
            ink = rng.random((height, width)) < 0.05
            ink[rng.integers(0, height), rng.integers(0, width)] = True
            arr[ink] = (0, 0, 0, 255)
            result = self.normalizer.normalize(RasterImage.from_array(arr))
            self.assertEqual(result.size, (TARGET_SIZE, TARGET_SIZE))
            self.assertEqual(result.pixels.shape, (TARGET_SIZE, TARGET_SIZE, 4))

    def test_single_pixel_at_origin(self):
        """Test magnifying a corner pixel"""
        arr = white_canvas(50, 50)
        arr[0, 0] = (0, 0, 0, 255)
        result = self.normalizer.normalize(RasterImage.from_array(arr))
        self.assertEqual(result.size, (TARGET_SIZE, TARGET_SIZE))
        # The tiny region around the corner is magnified into the output
        self.assertLess(result.pixels[0, 0, 0], 128)

    def test_input_is_not_mutated(self):
        """Test the input image is unchanged"""
        arr = white_canvas(40, 40)
        arr[10:30, 18:22] = 0
        image = RasterImage.from_array(arr)
        before = image.as_array()
        self.normalizer.normalize(image)
        np.testing.assert_array_equal(image.pixels, before)

    def test_explicit_box_is_used(self):
        """Test a caller-supplied box"""
        arr = white_canvas(40, 40)
        arr[10:30, 18:22] = 0
        image = RasterImage.from_array(arr)
        self.assertTrue((self.normalizer.normalize(image, BoundingBox.EMPTY).pixels == 255).all())

    def test_content_touching_edge(self):
        """Test content at the canvas edge"""
        arr = white_canvas(280, 280)
        arr[100:181, 272:280] = (0, 0, 0, 255)
        canonical, features = preprocess_drawing(RasterImage.from_array(arr))
        self.assertEqual(canonical.size, (TARGET_SIZE, TARGET_SIZE))
        self.assertEqual(features.shape, (FEATURE_LENGTH,))
        self.assertGreater(features.max(), 0.5)

    def test_custom_target_size(self):
        """Test a non-default target size"""
        normalizer = CanonicalImageNormalizer(target_size=16)
        arr = white_canvas(60, 60)
        arr[20:40, 25:35] = 0
        self.assertEqual(normalizer.normalize(RasterImage.from_array(arr)).size, (16, 16))


class TestTensorization(unittest.TestCase):
    """Test grayscale + invert + normalise feature extraction"""

    def test_black_image_gives_ones(self):
        """Test full ink"""
        black = RasterImage.blank(TARGET_SIZE, TARGET_SIZE, color=(0, 0, 0, 255))
        features = image_to_features(black)
        self.assertEqual(features.shape, (FEATURE_LENGTH,))
        np.testing.assert_allclose(features, 1.0)

    def test_white_image_gives_zeros(self):
        """Test no ink"""
        features = image_to_features(RasterImage.blank(TARGET_SIZE, TARGET_SIZE))
        np.testing.assert_array_equal(features, 0.0)

    def test_channel_mean_and_alpha_ignored(self):
        """Test grayscale conversion"""
        arr = white_canvas(TARGET_SIZE, TARGET_SIZE)
        arr[0, 1] = (255, 0, 0, 0)
        features = image_to_features(RasterImage.from_array(arr))
        self.assertAlmostEqual(float(features[1]), (255 - 85) / 255, places=5)
        self.assertEqual(float(features[0]), 0.0)

    def test_row_major_order(self):
        """Test feature order"""
        arr = white_canvas(TARGET_SIZE, TARGET_SIZE)
        arr[2, 5] = (0, 0, 0, 255)
        features = image_to_features(RasterImage.from_array(arr))
        self.assertEqual(int(np.argmax(features)), 2 * TARGET_SIZE + 5)

    def test_wrong_size_rejected(self):
        """Test input size validation"""
        with self.assertRaises(ValueError):
            image_to_features(RasterImage.blank(10, 10))

    def test_values_in_unit_interval(self):
        """Test feature range"""
        rng = np.random.default_rng(1)
        arr = rng.integers(0, 256, size=(TARGET_SIZE, TARGET_SIZE, 4), dtype=np.uint8)
        features = image_to_features(RasterImage.from_array(arr))
        self.assertTrue(features.min() >= 0 and features.max() <= 1)

    def test_blank_drawing_gives_zero_vector(self):
        """Test the blank drawing pipeline"""
        canonical, features = preprocess_drawing(RasterImage.blank(280, 280))
        self.assertTrue((canonical.pixels == 255).all())
        self.assertEqual(features.shape, (FEATURE_LENGTH,))
        self.assertFalse(features.any())


class TestPreview(unittest.TestCase):
    """Test nearest-neighbour magnification"""

    def test_pixels_are_replicated(self):
        """Test nearest-neighbour upscaling"""
        arr = white_canvas(TARGET_SIZE, TARGET_SIZE)
        arr[3, 4] = (0, 0, 0, 255)
        preview = preview_image(RasterImage.from_array(arr), scale=10)
        self.assertEqual(preview.size, (280, 280))
        block = preview.pixels[30:40, 40:50]
        self.assertTrue((block[..., :3] == 0).all())
        self.assertTrue((preview.pixels[29, 40, :3] == 255).all())
        # No smoothing: only the two source colours appear
        self.assertEqual(len(np.unique(preview.pixels[..., 0])), 2)


class TestScenarios(unittest.TestCase):
    """End-to-end drawing scenarios on a 280x280 canvas"""

    def test_vertical_stroke(self):
        """Test a vertical stroke end to end"""
        session = SketchSession()
        session.draw_stroke([(140, 40), (140, 240)])

        box = find_bounding_box(session.drawing())
        self.assertAlmostEqual(box.left, 136, delta=1)
        self.assertAlmostEqual(box.right, 144, delta=1)
        self.assertAlmostEqual(box.top, 38, delta=3)
        self.assertAlmostEqual(box.bottom, 242, delta=3)

        grid = session.features.reshape(TARGET_SIZE, TARGET_SIZE)
        ink = grid > 0.3
        ink_cols = np.flatnonzero(ink.any(axis=0))
        ink_rows = np.flatnonzero(ink.any(axis=1))
        self.assertTrue(ink_cols.size > 0)
        self.assertGreaterEqual(ink_cols.min(), 12)
        self.assertLessEqual(ink_cols.max(), 16)
        self.assertGreaterEqual(ink_rows.size, 20)

    def test_two_dots_are_scaled_together(self):
        """Test two separate dots end to end"""
        session = SketchSession()
        session.draw_stroke([(140, 80)])
        session.draw_stroke([(140, 200)])

        box = find_bounding_box(session.drawing())
        self.assertLess(box.top, 80)
        self.assertGreater(box.bottom, 200)

        grid = session.features.reshape(TARGET_SIZE, TARGET_SIZE)
        row_ink = grid.max(axis=1)
        self.assertGreater(row_ink[:7].max(), 0.3)
        self.assertGreater(row_ink[21:].max(), 0.3)
        self.assertLess(row_ink[10:18].max(), 0.05)


if __name__ == "__main__":
    unittest.main(verbosity=2)
