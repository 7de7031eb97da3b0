"""Pixel diff provider: tolerance-based colour comparison with difference clustering.

Pixels are compared by CIEDE2000 colour distance against ``tolerance``. In non-strict
mode, anti-aliased edge pixels and one-pixel-wide caret lines are ignored. Remaining
differing pixels within ``clusters_size`` of each other are grouped into one cluster.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError
from scipy import ndimage
from skimage.color import deltaE_ciede2000, rgb2lab

from src.models.config import PixelDiffConfig
from src.models.visual import DiffCluster

logger = logging.getLogger(__name__)

_NEIGHBOUR_OFFSETS = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]
_CARET_MIN_HEIGHT = 3


@dataclass
class PixelDiffResult:
    equal: bool
    diff_image: Optional[Image.Image] = None  # only when not equal
    different_pixels: Optional[int] = None
    total_pixels: Optional[int] = None
    diff_bounds: Optional[DiffCluster] = None
    diff_clusters: list[DiffCluster] = field(default_factory=list)


def colour_distance(rgb1: np.ndarray, rgb2: np.ndarray) -> np.ndarray:
    """CIEDE2000 distance between two (N, 3) arrays of sRGB pixels."""
    lab1 = rgb2lab(rgb1.reshape(1, -1, 3))
    lab2 = rgb2lab(rgb2.reshape(1, -1, 3))
    return deltaE_ciede2000(lab1, lab2)[0]


def _brightness(rgb: np.ndarray) -> np.ndarray:
    rgb = rgb.astype(np.float64)
    return 0.29889531 * rgb[..., 0] + 0.58662247 * rgb[..., 1] + 0.11448223 * rgb[..., 2]


def _many_siblings(rgb: np.ndarray, valid: np.ndarray) -> np.ndarray:
    """Pixels with more than two identical neighbours; image borders count as one."""
    height, width = valid.shape
    padded = np.pad(rgb, ((1, 1), (1, 1), (0, 0)))
    padded_valid = np.pad(valid, 1)
    counts = np.zeros((height, width), dtype=np.int32)
    for dy, dx in _NEIGHBOUR_OFFSETS:
        shifted = padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]
        shifted_valid = padded_valid[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]
        counts += shifted_valid & np.all(shifted == rgb, axis=-1)
    border = np.zeros((height, width), dtype=bool)
    border[[0, -1], :] = True
    border[:, [0, -1]] = True
    counts += border
    return valid & (counts > 2)


def _antialiased(brightness: np.ndarray, valid: np.ndarray, ys: np.ndarray, xs: np.ndarray,
                 aa_tolerance: float, own_siblings: np.ndarray, other_siblings: np.ndarray) -> np.ndarray:
    """Edge pixels between a darker and a brighter neighbour, one of which sits in a flat area.

    The darkest or brightest neighbour must have many identical siblings in both images;
    textured content never qualifies.
    """
    height, width = brightness.shape
    centre = brightness[ys, xs]
    zeroes = np.zeros(len(ys), dtype=np.int32)
    min_delta = np.zeros(len(ys))
    max_delta = np.zeros(len(ys))
    min_y, min_x = ys.copy(), xs.copy()
    max_y, max_x = ys.copy(), xs.copy()
    for dy, dx in _NEIGHBOUR_OFFSETS:
        ny, nx = ys + dy, xs + dx
        inside = (ny >= 0) & (ny < height) & (nx >= 0) & (nx < width)
        ny_c, nx_c = np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)
        inside &= valid[ny_c, nx_c]
        delta = brightness[ny_c, nx_c] - centre
        zeroes += inside & (np.abs(delta) <= aa_tolerance)
        darkest = inside & (delta < -aa_tolerance) & (delta < min_delta)
        min_delta = np.where(darkest, delta, min_delta)
        min_y, min_x = np.where(darkest, ny_c, min_y), np.where(darkest, nx_c, min_x)
        brightest = inside & (delta > aa_tolerance) & (delta > max_delta)
        max_delta = np.where(brightest, delta, max_delta)
        max_y, max_x = np.where(brightest, ny_c, max_y), np.where(brightest, nx_c, max_x)

    edge = (zeroes <= 2) & (min_delta < 0) & (max_delta > 0)
    flat_darkest = own_siblings[min_y, min_x] & other_siblings[min_y, min_x]
    flat_brightest = own_siblings[max_y, max_x] & other_siblings[max_y, max_x]
    return edge & (flat_darkest | flat_brightest)


def _drop_carets(mask: np.ndarray) -> np.ndarray:
    labels, count = ndimage.label(mask, structure=np.ones((3, 3)))
    if count == 0:
        return mask
    for index, sl in enumerate(ndimage.find_objects(labels), start=1):
        if sl is None:
            continue
        height = sl[0].stop - sl[0].start
        width = sl[1].stop - sl[1].start
        if width == 1 and height >= _CARET_MIN_HEIGHT:
            mask[labels == index] = False
    return mask


def _cluster(mask: np.ndarray, clusters_size: float) -> list[DiffCluster]:
    """Group differing pixels that lie within ``clusters_size`` of each other."""
    radius = max(1, math.ceil(clusters_size / 2))
    dilated = ndimage.binary_dilation(mask, structure=np.ones((2 * radius + 1, 2 * radius + 1)))
    labels, _ = ndimage.label(dilated)
    labels = np.where(mask, labels, 0)
    clusters = []
    for sl in ndimage.find_objects(labels):
        if sl is None:
            continue
        clusters.append(DiffCluster(
            left=sl[1].start, top=sl[0].start, right=sl[1].stop - 1, bottom=sl[0].stop - 1,
        ))
    return clusters


def _load(path: str | Path) -> tuple[np.ndarray, np.ndarray]:
    with Image.open(path) as img:
        rgb = np.asarray(img.convert("RGB"))
    return rgb, np.ones(rgb.shape[:2], dtype=bool)


def _pad(rgb: np.ndarray, valid: np.ndarray, height: int, width: int) -> tuple[np.ndarray, np.ndarray]:
    out = np.zeros((height, width, 3), dtype=rgb.dtype)
    out_valid = np.zeros((height, width), dtype=bool)
    out[: rgb.shape[0], : rgb.shape[1]] = rgb
    out_valid[: valid.shape[0], : valid.shape[1]] = valid
    return out, out_valid


class PixelDiffProvider:
    """Compares two screenshots pixel by pixel."""

    def compare(
        self,
        current_path: str | Path,
        baseline_path: str | Path,
        config: PixelDiffConfig | None = None,
    ) -> PixelDiffResult:
        config = config or PixelDiffConfig()
        try:
            current, current_valid = _load(current_path)
            baseline, baseline_valid = _load(baseline_path)
        except (OSError, UnidentifiedImageError, ValueError) as e:
            logger.warning("Pixel comparison unavailable, could not read images: %s", e)
            return PixelDiffResult(equal=False)

        height = max(current.shape[0], baseline.shape[0])
        width = max(current.shape[1], baseline.shape[1])
        if current.shape != baseline.shape:
            logger.debug("Image sizes differ: current=%s baseline=%s",
                         current.shape[:2], baseline.shape[:2])
        current, current_valid = _pad(current, current_valid, height, width)
        baseline, baseline_valid = _pad(baseline, baseline_valid, height, width)

        overlap = current_valid & baseline_valid
        mask = ~overlap  # outside either image always differs
        candidates = overlap & np.any(current != baseline, axis=-1)
        ys, xs = np.nonzero(candidates)

        if len(ys):
            tolerance = 0.0 if config.strict else config.tolerance
            distance = colour_distance(current[ys, xs], baseline[ys, xs])
            differs = distance > tolerance
            if config.ignore_antialiasing and not config.strict:
                current_siblings = _many_siblings(current, current_valid)
                baseline_siblings = _many_siblings(baseline, baseline_valid)
                aa = (_antialiased(_brightness(current), current_valid, ys, xs,
                                   config.antialiasing_tolerance, current_siblings, baseline_siblings)
                      | _antialiased(_brightness(baseline), baseline_valid, ys, xs,
                                     config.antialiasing_tolerance, baseline_siblings, current_siblings))
                differs &= ~aa
            mask[ys[differs], xs[differs]] = True

        if config.ignore_caret and not config.strict:
            mask = _drop_carets(mask)

        different = int(mask.sum())
        total = int(height * width)
        if different == 0:
            return PixelDiffResult(equal=True, different_pixels=0, total_pixels=total)

        rows, cols = np.nonzero(mask)
        bounds = DiffCluster(left=int(cols.min()), top=int(rows.min()),
                             right=int(cols.max()), bottom=int(rows.max()))
        clusters = _cluster(mask, config.clusters_size * config.pixel_ratio) if config.should_cluster else []

        diff_rgb = baseline.copy()
        diff_rgb[~baseline_valid] = current[~baseline_valid]
        diff_rgb[mask] = config.highlight_color
        logger.debug("Pixel diff: %d/%d pixels differ in %d cluster(s)",
                     different, total, len(clusters))

        return PixelDiffResult(
            equal=False,
            diff_image=Image.fromarray(diff_rgb.astype(np.uint8), "RGB"),
            different_pixels=different,
            total_pixels=total,
            diff_bounds=bounds,
            diff_clusters=clusters,
        )
