"""End-to-end tests for detection.detector on a synthetic map scan."""

from __future__ import annotations

import cv2
import numpy as np
import pytest
from PIL import Image

from conftest import CIRCLE_CENTER, CIRCLE_RADIUS, CountingFactory, StubOcrEngine, make_map_image
from detection import (
    Contour,
    DetectionConfig,
    HouseNumberDetection,
    build_pipeline,
    detect_house_numbers,
    extract_detections,
    load_image,
    marker_center,
)
from pipeline import BoundingBox, DebugDirectoryError, ImageDecodeError, PipelineData


def _assert_inside_marker(detection: HouseNumberDetection) -> None:
    cx, cy = CIRCLE_CENTER
    assert (detection.x - cx) ** 2 + (detection.y - cy) ** 2 <= CIRCLE_RADIUS ** 2


class TestDetectionConfig:
    def test_defaults_are_valid(self):
        DetectionConfig().validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"blur_sigma": 0},
            {"edge_low_threshold": 120, "edge_high_threshold": 100},
            {"min_circle_radius": 50, "max_circle_radius": 10},
            {"min_aspect_ratio": 1.5, "max_aspect_ratio": 1.0},
            {"brightness_threshold": 300},
            {"contour_connectivity": 6},
            {"upscale_size": 0},
            {"ocr_min_confidence": 1.5},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            DetectionConfig(**overrides).validate()

    def test_build_pipeline_validates(self):
        with pytest.raises(ValueError):
            build_pipeline(DetectionConfig(blur_sigma=-1))


class TestBuildPipeline:
    def test_full_step_order(self):
        pipeline = build_pipeline(DetectionConfig(), ocr_engine_factory=StubOcrEngine)
        assert [step.name for step in pipeline] == [
            "Grayscale Conversion",
            "Gaussian Blur",
            "Edge Detection",
            "Contour Detection",
            "Circle Filtering",
            "White Circle Filtering",
            "Background Removal",
            "Upscale",
            "OCR Recognition",
        ]

    def test_skip_ocr_stops_after_white_filter(self):
        pipeline = build_pipeline(DetectionConfig(ocr_enabled=False))
        assert len(pipeline) == 6
        assert pipeline.ocr_engine_factory is None

    def test_sharpen_inserted_before_ocr(self):
        pipeline = build_pipeline(DetectionConfig(sharpen_enabled=True), StubOcrEngine)
        names = [step.name for step in pipeline]
        assert names[-2:] == ["Sharpen", "OCR Recognition"]

    def test_non_empty_debug_dir_rejected(self, tmp_path):
        (tmp_path / "old.png").write_bytes(b"x")
        with pytest.raises(DebugDirectoryError):
            build_pipeline(DetectionConfig(debug_dir=tmp_path))
        assert [p.name for p in tmp_path.iterdir()] == ["old.png"]


class TestDetectHouseNumbers:
    @pytest.mark.parametrize("use_executor", [True, False])
    def test_finds_marked_number(self, map_image, use_executor):
        detections = detect_house_numbers(
            map_image,
            DetectionConfig(),
            ocr_engine_factory=StubOcrEngine,
            use_executor=use_executor,
        )
        assert len(detections) == 1
        assert detections[0].text == "42"
        assert 0.0 <= detections[0].confidence <= 1.0
        _assert_inside_marker(detections[0])

    def test_engine_loaded_once(self, map_image):
        factory = CountingFactory()
        detect_house_numbers(map_image, DetectionConfig(), ocr_engine_factory=factory)
        assert factory.calls == 1

    def test_skip_ocr_reports_white_circle(self, map_image):
        pipeline = build_pipeline(DetectionConfig(ocr_enabled=False))
        records = pipeline.run_with_executor(map_image)
        assert len(records) == 1
        assert records[0].get_bool("is_white") is True
        assert records[0].get_string("ocr_text") is None
        assert extract_detections(records) == []

    def test_strict_circularity_finds_nothing(self, map_image):
        detections = detect_house_numbers(
            map_image,
            DetectionConfig(circularity_threshold=0.01),
            ocr_engine_factory=StubOcrEngine,
        )
        assert detections == []

    def test_executor_and_sequential_agree_on_two_markers(self):
        image = np.full((200, 400, 3), 80, dtype=np.uint8)
        for cx in (100, 300):
            cv2.circle(image, (cx, 100), 30, (255, 255, 255), thickness=-1)
            cv2.putText(image, "7", (cx - 6, 108), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 2)

        cfg = DetectionConfig()
        concurrent = detect_house_numbers(image, cfg, StubOcrEngine, use_executor=True)
        sequential = detect_house_numbers(image, cfg, StubOcrEngine, use_executor=False)
        assert sorted((d.x, d.y, d.text) for d in concurrent) == sorted(
            (d.x, d.y, d.text) for d in sequential
        )
        assert len(concurrent) == 2

    def test_sixteen_bit_input_matches_eight_bit(self, map_image):
        deep = map_image.astype(np.uint16) * 257
        expected = detect_house_numbers(map_image, DetectionConfig(), StubOcrEngine)
        detections = detect_house_numbers(deep, DetectionConfig(), StubOcrEngine)
        assert len(detections) == 1
        assert detections == expected

    def test_marker_at_image_edge_reported_at_its_centre(self):
        image = np.full((200, 200, 3), 80, dtype=np.uint8)
        cv2.circle(image, (33, 100), 30, (255, 255, 255), thickness=-1)
        cv2.putText(image, "7", (27, 108), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 2)

        detections = detect_house_numbers(image, DetectionConfig(), StubOcrEngine)
        assert len(detections) == 1
        assert abs(detections[0].x - 33) <= 1
        assert abs(detections[0].y - 100) <= 1

    def test_input_image_not_mutated(self, map_image):
        before = map_image.copy()
        detect_house_numbers(map_image, DetectionConfig(), ocr_engine_factory=StubOcrEngine)
        assert np.array_equal(map_image, before)

    def test_debug_output_written(self, tmp_path, map_image):
        debug_dir = tmp_path / "debug"
        detect_house_numbers(
            map_image,
            DetectionConfig(debug_dir=debug_dir),
            ocr_engine_factory=StubOcrEngine,
        )
        assert (debug_dir / "00_input" / "01.png").exists()
        assert any((debug_dir / "09_ocr_recognition").iterdir())


class TestExtractDetections:
    def test_uses_bbox_center_and_skips_unread(self):
        original = np.zeros((100, 100), dtype=np.uint8)
        root = PipelineData.from_image(original)
        bbox = BoundingBox(x=10, y=20, width=40, height=30)
        region = PipelineData.from_region(bbox.crop(root.original), root.original, bbox)

        read = region.with_metadata_items(ocr_text="12", ocr_confidence=0.75)
        unread = region.with_metadata("is_white", True)

        detections = extract_detections([read, unread])
        assert detections == [HouseNumberDetection(text="12", x=30, y=35, confidence=0.75)]

    def test_prefers_contour_center(self):
        original = np.zeros((100, 100), dtype=np.uint8)
        root = PipelineData.from_image(original)
        # Padded box clipped at the left edge, so it is wider right of the circle
        bbox = BoundingBox(x=0, y=10, width=50, height=40)
        region = PipelineData.from_region(bbox.crop(root.original), root.original, bbox)
        contour = Contour(label=1, min_x=2, min_y=20, max_x=32, max_y=40, pixel_count=80)
        read = region.with_metadata_items(
            ocr_text="3", ocr_confidence=0.5, **contour.to_metadata()
        )

        assert marker_center(read) == (17, 30)
        assert extract_detections([read])[0].x == 17

    def test_to_dict(self):
        detection = HouseNumberDetection(text="12a", x=1, y=2, confidence=0.5)
        assert detection.to_dict() == {"text": "12a", "x": 1, "y": 2, "confidence": 0.5}
        assert HouseNumberDetection.from_dict(detection.to_dict()) == detection


class TestLoadImage:
    def test_decodes_rgb(self, tmp_path):
        image = make_map_image()
        path = tmp_path / "map.png"
        cv2.imwrite(str(path), cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
        loaded = load_image(path)
        assert loaded.shape == image.shape
        assert np.array_equal(loaded, image)

    def test_sixteen_bit_png_rescaled(self, tmp_path):
        gray = make_map_image()[..., 0].astype(np.uint16) * 257
        path = tmp_path / "deep.png"
        Image.fromarray(gray).save(path)

        loaded = load_image(path)
        assert loaded.dtype == np.uint8
        assert loaded.shape == gray.shape + (3,)
        assert loaded[0, 0].tolist() == [80, 80, 80]
        assert loaded[CIRCLE_CENTER[1] - 20, CIRCLE_CENTER[0]].tolist() == [255, 255, 255]

        detections = detect_house_numbers(loaded, DetectionConfig(), StubOcrEngine)
        assert [d.text for d in detections] == ["42"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageDecodeError):
            load_image(tmp_path / "nope.png")

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("not an image")
        with pytest.raises(ImageDecodeError):
            load_image(path)


@pytest.mark.slow
class TestRealOcr:
    def test_reads_marked_number(self):
        image = make_map_image("42")
        detections = detect_house_numbers(image, DetectionConfig())
        assert [d.text for d in detections] == ["42"]
        _assert_inside_marker(detections[0])
