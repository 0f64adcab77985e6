from __future__ import annotations

import io
import logging

import pytest
from fastapi.testclient import TestClient

KEY = {"X-Upload-Key": "testkey"}


@pytest.fixture
def api(monkeypatch, tmp_path):
    monkeypatch.setenv("DANFT_UPLOAD_KEYS", "testkey:laptop")

    from danft.api.server import create_app

    return TestClient(create_app(storage_dir=str(tmp_path / "store")))


def _upload(api, name, payload, headers=KEY):
    return api.post(
        "/uploadafile",
        headers=headers,
        files={"file": (name, io.BytesIO(payload), "application/octet-stream")},
    )


def test_requests_without_key_are_rejected(api):
    assert api.get("/apigetclip").status_code == 401
    assert api.get("/apigetclip", headers={"X-Upload-Key": "wrong"}).status_code == 401
    assert _upload(api, "a.txt", b"x", headers={}).status_code == 401


def test_upload_then_download_last_file(api):
    r = _upload(api, "report.txt", b"hello\n")
    assert r.status_code == 200
    assert r.json() == {"filename": "report.txt", "size_bytes": 6}
    assert r.headers.get("x-request-id")

    d = api.get("/apidownload/LAST_FILE", headers=KEY)
    assert d.status_code == 200
    assert d.headers["x-filename"] == "report.txt"
    assert d.content == b"hello\n"


def test_download_by_query_escaped_name(api):
    _upload(api, "my report.txt", b"spaced")
    _upload(api, "other.txt", b"other")

    d = api.get("/apidownload/my+report.txt", headers=KEY)
    assert d.status_code == 200
    assert d.headers["x-filename"] == "my report.txt"
    assert d.content == b"spaced"


def test_upload_name_is_reduced_to_base_name(api, tmp_path):
    r = _upload(api, "../../evil.txt", b"x")

    assert r.status_code == 200
    assert r.json()["filename"] == "evil.txt"
    assert (tmp_path / "store" / "files" / "evil.txt").is_file()


def test_download_unknown_or_nothing_uploaded(api):
    assert api.get("/apidownload/LAST_FILE", headers=KEY).status_code == 404
    assert api.get("/apidownload/nope.txt", headers=KEY).status_code == 404


def test_clip_roundtrip_and_empty_clip(api):
    r0 = api.get("/apigetclip", headers=KEY)
    assert r0.status_code == 200
    assert r0.text == ""

    assert api.post("/pasteaclip", headers=KEY, json={"clip": ""}).status_code == 400
    r = api.post("/pasteaclip", headers=KEY, json={"clip": "line one"})
    assert r.status_code == 200
    assert r.json() == {"size_chars": 8}

    r2 = api.get("/apigetclip", headers=KEY)
    assert r2.text == "line one"
    assert r2.headers["content-type"].startswith("text/plain")


def test_health_reports_auth_without_naming_files(api):
    _upload(api, "secret-plan.pdf", b"\x00")

    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "auth_required": True}
    assert "secret-plan" not in r.text


def test_dev_mode_without_keys(monkeypatch, tmp_path):
    monkeypatch.delenv("DANFT_UPLOAD_KEYS", raising=False)

    from danft.api.server import create_app

    api = TestClient(create_app(storage_dir=str(tmp_path)))
    assert api.post("/pasteaclip", json={"clip": "hi"}).status_code == 200
    assert api.get("/apigetclip").text == "hi"


def test_require_auth_without_keys_fails_closed(monkeypatch, tmp_path):
    monkeypatch.setenv("DANFT_REQUIRE_AUTH", "1")

    from danft.api.server import create_app

    api = TestClient(create_app(storage_dir=str(tmp_path)))
    assert api.get("/apigetclip", headers={"X-Upload-Key": "anything"}).status_code == 401


def _fresh_api(monkeypatch, tmp_path, **env):
    monkeypatch.setenv("DANFT_UPLOAD_KEYS", "testkey")
    for k, v in env.items():
        monkeypatch.setenv(k, v)

    from danft.api.server import create_app

    return TestClient(create_app(storage_dir=str(tmp_path / "store")))


def test_non_latin1_file_name_is_rejected_at_upload(api, tmp_path):
    r = _upload(api, "报告.txt", b"x")

    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_filename"
    assert list((tmp_path / "store" / "files").iterdir()) == []
    assert api.get("/apidownload/LAST_FILE", headers=KEY).status_code == 404


def test_latin1_file_name_round_trips(api):
    assert _upload(api, "café.txt", b"au lait").status_code == 200

    d = api.get("/apidownload/LAST_FILE", headers=KEY)
    assert d.status_code == 200
    assert d.headers["x-filename"] == "café.txt"
    assert d.content == b"au lait"


@pytest.mark.parametrize("keys", ["k1,k2", "k1;k2", "k1:laptop, k2:phone"])
def test_upload_keys_accept_comma_or_semicolon(monkeypatch, tmp_path, keys):
    monkeypatch.setenv("DANFT_UPLOAD_KEYS", keys)

    from danft.api.server import create_app

    api = TestClient(create_app(storage_dir=str(tmp_path)))
    for key in ("k1", "k2"):
        assert api.get("/apigetclip", headers={"X-Upload-Key": key}).status_code == 200
    assert api.get("/apigetclip", headers={"X-Upload-Key": "k1,k2"}).status_code == 401


def test_oversized_upload_is_413_and_leaves_no_temp_files(monkeypatch, tmp_path):
    api = _fresh_api(monkeypatch, tmp_path, DANFT_MAX_UPLOAD_BYTES="4")

    r = _upload(api, "big.bin", b"0123456789")

    assert r.status_code == 413
    assert r.json()["detail"] == "upload_too_large"
    assert list((tmp_path / "store" / "files").iterdir()) == []
    assert api.get("/apidownload/LAST_FILE", headers=KEY).status_code == 404


def test_upload_at_the_limit_is_accepted(monkeypatch, tmp_path):
    api = _fresh_api(monkeypatch, tmp_path, DANFT_MAX_UPLOAD_BYTES="4")

    assert _upload(api, "ok.bin", b"0123").status_code == 200
    assert [p.name for p in (tmp_path / "store" / "files").iterdir()] == ["ok.bin"]


def test_oversized_clip_is_413_and_keeps_previous_clip(monkeypatch, tmp_path):
    api = _fresh_api(monkeypatch, tmp_path, DANFT_MAX_CLIP_CHARS="5")

    assert api.post("/pasteaclip", headers=KEY, json={"clip": "short"}).status_code == 200
    r = api.post("/pasteaclip", headers=KEY, json={"clip": "too long"})

    assert r.status_code == 413
    assert r.json()["detail"] == "clip_too_large"
    assert api.get("/apigetclip", headers=KEY).text == "short"


def test_access_log_records_request_fields(api, caplog):
    api.post("/pasteaclip", headers=KEY, json={"clip": "abc"})
    caplog.clear()

    with caplog.at_level(logging.INFO, logger="danft.api"):
        r = api.get("/apigetclip", headers=KEY)

    (rec,) = [x for x in caplog.records if x.getMessage() == "transfer_request"]
    assert rec.method == "GET"
    assert rec.status_code == 200
    assert rec.uploader == "laptop"
    assert rec.request_id == r.headers["x-request-id"]
    assert rec.bytes_out == 3


def test_access_log_leaves_out_downloaded_file_name(api, caplog):
    _upload(api, "hidden-name.txt", b"abc")

    with caplog.at_level(logging.INFO, logger="danft.api"):
        assert api.get("/apidownload/hidden-name.txt", headers=KEY).status_code == 200

    recs = [x for x in caplog.records if x.getMessage() == "transfer_request"]
    assert recs
    for rec in recs:
        assert "hidden-name" not in repr(vars(rec))


def test_rejected_request_is_logged_without_uploader(monkeypatch, tmp_path, caplog):
    api = _fresh_api(monkeypatch, tmp_path)

    with caplog.at_level(logging.INFO, logger="danft.api"):
        assert api.get("/apigetclip").status_code == 401

    (rec,) = [x for x in caplog.records if x.getMessage() == "transfer_request"]
    assert rec.status_code == 401
    assert rec.uploader is None
