"""Tests for the pixel diff provider."""

import numpy as np
import pytest

from src.diff.pixel_diff import PixelDiffProvider, colour_distance
from src.models.config import PixelDiffConfig

RED = (255, 0, 0)
BLACK = (0, 0, 0)


@pytest.fixture
def provider() -> PixelDiffProvider:
    return PixelDiffProvider()


class TestColourDistance:
    """Tests for the CIEDE2000 colour distance."""

    def test_identical_colours(self):
        rgb = np.array([[12, 200, 90]], dtype=np.uint8)
        assert colour_distance(rgb, rgb)[0] == pytest.approx(0.0)

    def test_near_white_within_default_tolerance(self):
        white = np.array([[255, 255, 255]], dtype=np.uint8)
        near = np.array([[254, 254, 254]], dtype=np.uint8)
        assert 0 < colour_distance(white, near)[0] < 1.0

    def test_black_and_white(self):
        white = np.array([[255, 255, 255]], dtype=np.uint8)
        black = np.array([[0, 0, 0]], dtype=np.uint8)
        assert colour_distance(white, black)[0] == pytest.approx(100.0, abs=0.5)


class TestAntialiasing:
    """Tests for anti-aliased edge detection."""

    # Black box with a two-shade soft edge on its right side in the current capture.
    EDGE_RECTS = [
        ((10, 5, 19, 14), BLACK),
        ((20, 5, 20, 14), (96, 96, 96)),
        ((21, 5, 21, 14), (192, 192, 192)),
    ]

    def test_soft_edge_ignored(self, provider, png_factory):
        current = png_factory("current.png", rects=self.EDGE_RECTS)
        baseline = png_factory("baseline.png", rects=[((10, 5, 19, 14), BLACK)])
        assert provider.compare(current, baseline).equal is True

    def test_soft_edge_counted_when_not_ignored(self, provider, png_factory):
        current = png_factory("current.png", rects=self.EDGE_RECTS)
        baseline = png_factory("baseline.png", rects=[((10, 5, 19, 14), BLACK)])
        result = provider.compare(current, baseline, PixelDiffConfig(ignore_antialiasing=False))
        assert result.different_pixels == 20

    def test_different_noise_is_not_antialiasing(self, provider, texture_factory):
        current = texture_factory("current.png", seed=1, size=(100, 100))
        baseline = texture_factory("baseline.png", seed=2, size=(100, 100))
        result = provider.compare(current, baseline)
        assert result.different_pixels > 9900

    def test_replaced_texture_block_exceeds_tolerance(self, provider, texture_factory):
        box = (80, 80, 120, 120)
        current = texture_factory("current.png", seed=1, box=box)
        baseline = texture_factory("baseline.png", seed=2, box=box)
        result = provider.compare(current, baseline)
        # Only the block's outline may read as an edge against the white page.
        assert result.different_pixels >= 40 * 40 - 4 * 40
        assert result.different_pixels / result.total_pixels * 100 > 3.0


class TestPixelDiffProvider:
    """Tests for PixelDiffProvider.compare."""

    def test_identical_images(self, provider, png_factory):
        current = png_factory("current.png")
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline)
        assert result.equal is True
        assert result.different_pixels == 0
        assert result.total_pixels == 40 * 30
        assert result.diff_image is None

    def test_changed_region(self, provider, png_factory):
        current = png_factory("current.png", rects=[((5, 5, 14, 14), RED)])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline)
        assert result.equal is False
        assert result.different_pixels == 100
        assert result.total_pixels == 1200
        assert (result.diff_bounds.left, result.diff_bounds.top) == (5, 5)
        assert (result.diff_bounds.right, result.diff_bounds.bottom) == (14, 14)
        assert len(result.diff_clusters) == 1
        assert result.diff_clusters[0].width == 10

    def test_diff_image_highlights_changes(self, provider, png_factory):
        current = png_factory("current.png", rects=[((5, 5, 14, 14), RED)])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline)
        assert result.diff_image.size == (40, 30)
        assert result.diff_image.getpixel((7, 7)) == (255, 0, 255)
        assert result.diff_image.getpixel((0, 0)) == (255, 255, 255)

    def test_custom_highlight_colour(self, provider, png_factory):
        current = png_factory("current.png", rects=[((5, 5, 14, 14), RED)])
        baseline = png_factory("baseline.png")
        config = PixelDiffConfig(highlight_color=(0, 255, 0))
        result = provider.compare(current, baseline, config)
        assert result.diff_image.getpixel((7, 7)) == (0, 255, 0)

    def test_distant_changes_form_separate_clusters(self, provider, png_factory):
        current = png_factory("current.png", rects=[
            ((2, 2, 4, 4), RED), ((30, 20, 34, 24), RED),
        ])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline)
        assert len(result.diff_clusters) == 2

    def test_nearby_changes_merge_into_one_cluster(self, provider, png_factory):
        current = png_factory("current.png", rects=[
            ((2, 2, 4, 4), RED), ((8, 2, 10, 4), RED),
        ])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline)
        assert len(result.diff_clusters) == 1
        assert result.diff_clusters[0].left == 2
        assert result.diff_clusters[0].right == 10

    def test_clustering_disabled(self, provider, png_factory):
        current = png_factory("current.png", rects=[((5, 5, 14, 14), RED)])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline, PixelDiffConfig(should_cluster=False))
        assert result.diff_clusters == []
        assert result.diff_bounds is not None

    def test_size_mismatch_counts_missing_area(self, provider, png_factory):
        current = png_factory("current.png", size=(40, 30))
        baseline = png_factory("baseline.png", size=(40, 20))
        result = provider.compare(current, baseline)
        assert result.equal is False
        assert result.total_pixels == 1200
        assert result.different_pixels == 400
        assert result.diff_bounds.top == 20

    def test_colour_within_tolerance(self, provider, png_factory):
        current = png_factory("current.png", color=(254, 254, 254))
        baseline = png_factory("baseline.png")
        assert provider.compare(current, baseline).equal is True

    def test_strict_mode_has_zero_tolerance(self, provider, png_factory):
        current = png_factory("current.png", color=(254, 254, 254))
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline, PixelDiffConfig(strict=True))
        assert result.equal is False
        assert result.different_pixels == 1200

    def test_caret_line_ignored(self, provider, png_factory):
        current = png_factory("current.png", rects=[((10, 5, 10, 15), BLACK)])
        baseline = png_factory("baseline.png")
        assert provider.compare(current, baseline).equal is True

    def test_caret_line_counted_in_strict_mode(self, provider, png_factory):
        current = png_factory("current.png", rects=[((10, 5, 10, 15), BLACK)])
        baseline = png_factory("baseline.png")
        result = provider.compare(current, baseline, PixelDiffConfig(strict=True))
        assert result.different_pixels == 11

    def test_unreadable_image(self, provider, png_factory, tmp_path):
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not a png")
        result = provider.compare(broken, png_factory("baseline.png"))
        assert result.equal is False
        assert result.different_pixels is None
        assert result.total_pixels is None

    def test_missing_image(self, provider, png_factory, tmp_path):
        result = provider.compare(tmp_path / "missing.png", png_factory("baseline.png"))
        assert result.different_pixels is None
