from __future__ import annotations

import io

import pytest
from PIL import Image

from src.presence.presence.integrations.storage import EvidenceUploadError, LocalEvidenceStore, compress_image


def _png(size=(2400, 1200), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color + (255,)).save(buf, format="PNG")
    return buf.getvalue()


def test_compress_image_produces_bounded_jpeg():
    data = compress_image(_png(), max_side=800)
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "JPEG"
        assert max(img.size) == 800
        assert img.mode == "RGB"


def test_local_store_writes_under_evidence_directory(tmp_path):
    store = LocalEvidenceStore(tmp_path)

    ref = store.upload(_png((64, 64)), "42_in")

    assert ref == "attendance_images/42_in.jpg"
    assert (tmp_path / ref).is_file()


def test_unreadable_image_raises_upload_error(tmp_path):
    with pytest.raises(EvidenceUploadError):
        LocalEvidenceStore(tmp_path).upload(b"not an image", "1_in")


def test_key_cannot_escape_the_evidence_directory(tmp_path):
    ref = LocalEvidenceStore(tmp_path).upload(_png((16, 16)), "../../etc/passwd")
    assert ref.startswith("attendance_images/")
    assert ".." not in ref


def test_decompression_bomb_raises_upload_error(tmp_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(EvidenceUploadError):
        LocalEvidenceStore(tmp_path).upload(_png((200, 200)), "1_in")

    assert not (tmp_path / "attendance_images" / "1_in.jpg").exists()
