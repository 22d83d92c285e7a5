from __future__ import annotations

from PIL import Image

from liora_gallery.hasher import compute_content_hash, compute_perceptual_hash, hamming_distance
from liora_gallery.imaging import open_image
from tests.utils.images import encode_image, split_image


def test_content_hash_is_sha256_hex() -> None:
    assert compute_content_hash(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert compute_content_hash(b"abc") == compute_content_hash(b"abc")
    assert compute_content_hash(b"abc") != compute_content_hash(b"abd")


def test_perceptual_hash_bit_layout() -> None:
    left_white = compute_perceptual_hash(split_image(vertical=True))
    top_white = compute_perceptual_hash(split_image(vertical=False))

    assert left_white == "f0f0f0f0f0f0f0f0"
    assert top_white == "ffffffff00000000"
    assert hamming_distance(left_white, top_white) == 32


def test_perceptual_hash_is_stable_across_reencoding() -> None:
    image = split_image(vertical=True)
    high = open_image(encode_image(image, "JPEG", quality=95))
    low = open_image(encode_image(image, "JPEG", quality=70))

    distance = hamming_distance(compute_perceptual_hash(high), compute_perceptual_hash(low))

    assert distance is not None
    assert distance <= 6


def test_perceptual_hash_pads_partial_nibbles() -> None:
    image = Image.new("RGB", (30, 30), color=(10, 200, 30))

    assert len(compute_perceptual_hash(image, hash_size=3)) == 3


def test_hamming_distance_rejects_mismatched_input() -> None:
    assert hamming_distance("f0", "f1") == 1
    assert hamming_distance("f0", "f0f0") is None
    assert hamming_distance("", "") is None
    assert hamming_distance("zz", "00") is None
