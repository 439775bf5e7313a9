"""
Day 98 -- Text recognizer lifecycle and output shaping (no tesseract needed).

Covers:
  Engine lifecycle:
  - concurrent first callers share one initialization
  - init failure cached, recognize() returns the failed result
  - close() allows a fresh initialization

  Recognition:
  - recognize() text / confidence / method on success
  - unreadable image bytes -> failed result, no exception
  - recognize_pages() joins non-empty pages

  Helpers:
  - _data_to_text groups words by block/paragraph/line, skips conf -1
  - choose_languages keeps installed languages, falls back to eng
  - preprocess_image keeps the image size and 3 channels
  - health() reports init errors
"""

from __future__ import annotations

import io
import threading
import time

import numpy as np
import pytest
from PIL import Image

from extraction.ocr_engine import (
    EngineHandle,
    RecognitionResult,
    TextRecognizer,
    _data_to_text,
    choose_languages,
    preprocess_image,
)


def _png_bytes(size=(120, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, "white").save(buf, format="PNG")
    return buf.getvalue()


def _engine() -> EngineHandle:
    return EngineHandle(cmd="/usr/bin/tesseract", version="5.3.0", lang="eng+tam",
                        available_languages=["eng", "tam"])


@pytest.fixture()
def recognizer(monkeypatch):
    rec = TextRecognizer(lang="eng+tam", preprocess=False)
    monkeypatch.setattr(rec, "_load_engine", _engine)
    return rec


class TestEngineLifecycle:
    def test_single_flight_init(self, monkeypatch):
        rec = TextRecognizer()
        loads = []

        def slow_load():
            loads.append(1)
            time.sleep(0.05)
            return _engine()

        monkeypatch.setattr(rec, "_load_engine", slow_load)
        barrier = threading.Barrier(8)
        handles = []

        def worker():
            barrier.wait()
            handles.append(rec._ensure_engine())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(loads) == 1
        assert rec.init_count == 1
        assert len(handles) == 8
        assert all(h is handles[0] for h in handles)
        assert rec.ready

    def test_init_failure_cached(self, monkeypatch):
        rec = TextRecognizer()
        calls = []

        def broken():
            calls.append(1)
            raise RuntimeError("tesseract executable not found")

        monkeypatch.setattr(rec, "_load_engine", broken)
        first = rec.recognize(_png_bytes())
        second = rec.recognize(_png_bytes())
        assert first.to_dict() == {"text": "", "confidence": 0, "method": "failed"}
        assert second.method == "failed"
        assert len(calls) == 1
        assert not rec.ready

    def test_close_reinitializes(self, recognizer):
        recognizer._ensure_engine()
        recognizer.close()
        assert not recognizer.ready
        recognizer._ensure_engine()
        assert recognizer.init_count == 2


class TestRecognition:
    def test_recognize_success(self, recognizer, monkeypatch):
        monkeypatch.setattr(recognizer, "_recognize_pil", lambda engine, img: ("Hoppers 250", 88.5))
        res = recognizer.recognize(_png_bytes())
        assert res.text == "Hoppers 250"
        assert res.confidence == 88.5
        assert res.method == "tesseract"
        assert res.pages == 1

    def test_unreadable_bytes(self, recognizer):
        res = recognizer.recognize(b"not an image")
        assert res == RecognitionResult.failed()

    def test_recognize_pages(self, recognizer, monkeypatch):
        outputs = iter([("Hoppers 250", 80.0), ("", 0.0), ("Idli 180", 90.0)])
        monkeypatch.setattr(recognizer, "_recognize_pil", lambda engine, img: next(outputs))
        pages = [Image.new("RGB", (50, 50), "white") for _ in range(3)]
        res = recognizer.recognize_pages(pages)
        assert res.text == "Hoppers 250\n\nIdli 180"
        assert res.confidence == 85.0
        assert res.pages == 2


class TestHelpers:
    def test_data_to_text(self):
        data = {
            "text": ["Hoppers", "250", "", "Idli", "noise"],
            "conf": ["90", "80", "-1", "70", "-1"],
            "block_num": [1, 1, 1, 1, 1],
            "par_num": [1, 1, 1, 1, 1],
            "line_num": [1, 1, 1, 2, 2],
        }
        text, conf = _data_to_text(data)
        assert text == "Hoppers 250\nIdli"
        assert conf == 80.0

    def test_data_to_text_empty(self):
        assert _data_to_text({"text": []}) == ("", 0.0)

    def test_choose_languages(self):
        assert choose_languages("eng+tam", ["eng", "tam", "osd"]) == "eng+tam"
        assert choose_languages("eng+tam", ["eng"]) == "eng"
        assert choose_languages("tam", []) == "eng"

    def test_preprocess_keeps_shape(self):
        img = np.full((80, 160, 3), 255, dtype=np.uint8)
        img[30:50, 20:140] = 0
        out = preprocess_image(img)
        assert out.shape == (80, 160, 3)

    def test_health_reports_error(self, monkeypatch):
        rec = TextRecognizer(tesseract_cmd="/nowhere/tesseract")

        def broken():
            raise RuntimeError("no binary")

        monkeypatch.setattr(rec, "_load_engine", broken)
        health = rec.health()
        assert health["ready"] is False
        assert health["error"] == "no binary"
        assert health["tesseract"]["found_on_disk"] is False

    def test_health_ready(self, recognizer):
        health = recognizer.health()
        assert health["ready"] is True
        assert health["tesseract"]["version"] == "5.3.0"
        assert health["tesseract"]["languages"] == ["eng", "tam"]
