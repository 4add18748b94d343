# tests/test_blobs.py

import hashlib

import pytest

from paper_kb.storage.blobs import BlobStore


def test_put_writes_content_and_digest(tmp_path):
    blobs = BlobStore(tmp_path)

    digest = blobs.put("html", "2401.15884", "<html>ü</html>")

    assert digest == hashlib.sha256("<html>ü</html>".encode("utf-8")).hexdigest()
    assert blobs.path_for("html", "2401.15884") == tmp_path / "html" / "2401.15884.html"
    assert blobs.get("html", "2401.15884") == "<html>ü</html>".encode("utf-8")
    assert blobs.digest("html", "2401.15884") == digest


def test_put_overwrites(tmp_path):
    blobs = BlobStore(tmp_path)
    blobs.put("pdf", "2401.15884", b"v1")
    digest = blobs.put("pdf", "2401.15884", b"v2")

    assert blobs.get("pdf", "2401.15884") == b"v2"
    assert blobs.digest("pdf", "2401.15884") == digest


def test_old_style_ids_and_missing_blobs(tmp_path):
    blobs = BlobStore(tmp_path)

    assert blobs.path_for("pdf", "hep-th/9901001").name == "hep-th_9901001.pdf"
    assert not blobs.exists("pdf", "2401.00000")
    assert blobs.get("pdf", "2401.00000") is None
    assert blobs.digest("pdf", "2401.00000") is None

    with pytest.raises(ValueError):
        blobs.path_for("tei", "2401.15884")
