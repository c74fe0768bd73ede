import math

import numpy as np
import pytest

from duotone_studio.config import HIGHLIGHT_COLOR, SHADOW_COLOR
from duotone_studio.errors import InvalidInputError
from duotone_studio.processing import duotone
from duotone_studio.processing.curve import enhance_contrast
from duotone_studio.processing.duotone import apply_duotone, endpoint_colors, luminance_range


def _random_image(seed: int = 7, height: int = 9, width: int = 11) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)


def _reference(pixels: np.ndarray, reverse: bool) -> np.ndarray:
    """Straight per-pixel rendition of the duotone mapping."""
    flat = pixels.reshape(-1, 4).astype(int)
    lums = [0.2126 * r + 0.7152 * g + 0.0722 * b for r, g, b, _ in flat]
    low, high = min(lums), max(lums)
    span = (high - low) or 1
    shadow, highlight = (HIGHLIGHT_COLOR, SHADOW_COLOR) if reverse else (SHADOW_COLOR, HIGHLIGHT_COLOR)
    out = []
    for (r, g, b, a), lum in zip(flat, lums):
        weight = enhance_contrast(max(0.0, min(1.0, (lum - low) / span)))
        out.append(
            [math.floor(s + weight * (h - s) + 0.5) for s, h in zip(shadow, highlight)] + [a]
        )
    return np.array(out, dtype=int).reshape(pixels.shape)


def test_single_gray_pixel_maps_to_shadow():
    buffer = np.array([[[128, 128, 128, 255]]], dtype=np.uint8)

    apply_duotone(buffer, reverse=False)

    assert buffer[0, 0].tolist() == [27, 96, 47, 255]


def test_black_and_white_map_to_endpoints():
    buffer = np.array([[[0, 0, 0, 255], [255, 255, 255, 255]]], dtype=np.uint8)

    apply_duotone(buffer)

    assert buffer[0, 0].tolist() == [*SHADOW_COLOR, 255]
    assert buffer[0, 1].tolist() == [*HIGHLIGHT_COLOR, 255]


def test_reverse_swaps_black_and_white_endpoints():
    buffer = np.array([[[0, 0, 0, 255], [255, 255, 255, 255]]], dtype=np.uint8)

    apply_duotone(buffer, reverse=True)

    assert buffer[0, 0].tolist() == [*HIGHLIGHT_COLOR, 255]
    assert buffer[0, 1].tolist() == [*SHADOW_COLOR, 255]


@pytest.mark.parametrize("reverse", [False, True])
def test_flat_image_is_uniform_shadow_side_color(reverse):
    buffer = np.empty((5, 7, 4), dtype=np.uint8)
    buffer[...] = (200, 10, 30, 90)

    apply_duotone(buffer, reverse=reverse)

    shadow_side, _ = endpoint_colors(reverse)
    assert np.all(buffer[..., :3] == np.array(shadow_side, dtype=np.uint8))
    assert np.all(buffer[..., 3] == 90)


def test_flat_white_image_has_zero_range():
    buffer = bytearray([255, 255, 255, 255] * 4)

    lum = luminance_range(buffer)

    assert lum.minimum == lum.maximum
    assert lum.span == 1.0


def test_alpha_is_untouched():
    image = _random_image()
    alpha = image[..., 3].copy()

    apply_duotone(image)

    assert np.array_equal(image[..., 3], alpha)


@pytest.mark.parametrize("reverse", [False, True])
def test_channels_stay_between_endpoints(reverse):
    image = _random_image(seed=3)

    apply_duotone(image, reverse=reverse)

    for channel in range(3):
        low = min(SHADOW_COLOR[channel], HIGHLIGHT_COLOR[channel])
        high = max(SHADOW_COLOR[channel], HIGHLIGHT_COLOR[channel])
        assert image[..., channel].min() >= low
        assert image[..., channel].max() <= high


@pytest.mark.parametrize("reverse", [False, True])
def test_matches_per_pixel_reference(reverse):
    image = _random_image(seed=11)
    expected = _reference(image, reverse)

    apply_duotone(image, reverse=reverse)

    # pow() may differ in the last ulp between numpy and libm
    assert np.abs(image.astype(int) - expected).max() <= 1


def test_orientations_share_normalized_luminance():
    image = _random_image(seed=5)
    normal, flipped = image.copy(), image.copy()

    apply_duotone(normal, reverse=False)
    apply_duotone(flipped, reverse=True)

    shadow = np.array(SHADOW_COLOR, dtype=float)
    highlight = np.array(HIGHLIGHT_COLOR, dtype=float)
    # Recover the blend weight from the channel with the widest spread (B)
    weight = (normal[..., 2].astype(float) - shadow[2]) / (highlight[2] - shadow[2])
    mirrored = highlight[2] + weight * (shadow[2] - highlight[2])
    assert np.abs(flipped[..., 2] - mirrored).max() <= 1.0


def test_brighter_pixels_never_get_a_smaller_weight():
    ramp = np.zeros((256, 4), dtype=np.uint8)
    ramp[:, :3] = np.arange(256, dtype=np.uint8)[:, None]
    ramp[:, 3] = 255

    apply_duotone(ramp)

    for channel in range(3):
        assert np.all(np.diff(ramp[:, channel].astype(int)) >= 0)
    assert ramp[0, :3].tolist() == list(SHADOW_COLOR)
    assert ramp[-1, :3].tolist() == list(HIGHLIGHT_COLOR)


def test_transform_is_not_idempotent():
    ramp = np.zeros((1, 256, 4), dtype=np.uint8)
    ramp[..., :3] = np.arange(256, dtype=np.uint8)[None, :, None]
    ramp[..., 3] = 255
    source = ramp.copy()

    apply_duotone(ramp)
    once = ramp.copy()
    apply_duotone(ramp)

    assert not np.array_equal(source, once)
    assert not np.array_equal(once, ramp)


def test_is_deterministic():
    first = _random_image(seed=21)
    second = first.copy()

    apply_duotone(first, reverse=True)
    apply_duotone(second, reverse=True)

    assert np.array_equal(first, second)


def test_accepts_bytearray_and_memoryview():
    raw = bytearray([0, 0, 0, 10, 255, 255, 255, 20])

    apply_duotone(raw)
    assert list(raw) == [*SHADOW_COLOR, 10, *HIGHLIGHT_COLOR, 20]

    view_source = bytearray([0, 0, 0, 10, 255, 255, 255, 20])
    apply_duotone(memoryview(view_source), reverse=True)
    assert list(view_source) == [*HIGHLIGHT_COLOR, 10, *SHADOW_COLOR, 20]


def test_writes_through_non_contiguous_views():
    parent = _random_image(seed=9, height=4, width=6)
    expected = parent[:, ::2].copy()
    apply_duotone(expected)
    untouched = parent[:, 1::2].copy()

    apply_duotone(parent[:, ::2])

    assert np.array_equal(parent[:, ::2], expected)
    assert np.array_equal(parent[:, 1::2], untouched)


def test_chunking_does_not_change_the_result(monkeypatch):
    image = _random_image(seed=13, height=7, width=5)
    chunked = image.copy()

    apply_duotone(image)
    monkeypatch.setattr(duotone, "CHUNK_PIXELS", 3)
    apply_duotone(chunked)

    assert np.array_equal(image, chunked)


@pytest.mark.parametrize(
    "buffer",
    [
        bytearray(),
        bytearray(6),
        bytes(8),
        np.zeros((0, 4), dtype=np.uint8),
        np.zeros((2, 2, 3), dtype=np.uint8),
        np.zeros((2, 2, 4), dtype=np.float32),
        [0, 0, 0, 255],
    ],
)
def test_rejects_malformed_buffers(buffer):
    with pytest.raises(InvalidInputError):
        apply_duotone(buffer)


def test_rejects_read_only_buffers_without_touching_them():
    image = _random_image(seed=1)
    image.flags.writeable = False
    before = image.copy()

    with pytest.raises(InvalidInputError):
        apply_duotone(image)
    with pytest.raises(InvalidInputError):
        apply_duotone(memoryview(bytes(8)))

    assert np.array_equal(image, before)


def test_misaligned_buffer_is_left_untouched():
    raw = bytearray([10, 20, 30, 40, 50, 60])

    with pytest.raises(InvalidInputError):
        apply_duotone(raw)

    assert list(raw) == [10, 20, 30, 40, 50, 60]


def test_luminance_range_uses_rec709_weights():
    lum = luminance_range(bytearray([255, 0, 0, 255, 0, 255, 0, 255]))

    assert lum.minimum == pytest.approx(0.2126 * 255)
    assert lum.maximum == pytest.approx(0.7152 * 255)
    assert lum.span == pytest.approx((0.7152 - 0.2126) * 255)
