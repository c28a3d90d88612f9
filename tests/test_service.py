import json
import re
import threading
from pathlib import Path

import pytest
from PIL import Image

from image_optimizer.config import AppConfig, RuntimeConfig, build_request
from image_optimizer.core import ConversionService
from image_optimizer.errors import DecodeError, DeleteError, EncodeError, WriteError
from image_optimizer.models import ConversionRequest

TOKEN_NAME = re.compile(r"^[0-9a-f]{32}\.webp$")


def build_service(log_file: Path | None = None) -> ConversionService:
    runtime = RuntimeConfig(parallelism=4, log_file=log_file)
    return ConversionService(AppConfig(runtime=runtime))


def test_convert_file_writes_output_and_removes_source(make_image, tmp_path: Path) -> None:
    source = make_image("photo.png")
    target = tmp_path / "photo.webp"
    outcome = build_service().convert_file(source, target, keep_original=False, quality=75)
    assert outcome.status == "success"
    assert outcome.output_path == target
    assert target.exists()
    assert not source.exists()
    assert outcome.output_bytes == target.stat().st_size
    assert outcome.timings.encode_ms >= 0


def test_convert_file_keeps_original_on_request(make_image, tmp_path: Path) -> None:
    source = make_image("photo.jpg")
    outcome = build_service().convert_file(source, tmp_path / "out.webp", keep_original=True, quality=50)
    assert outcome.ok
    assert source.exists()


def test_decode_failure_leaves_files_untouched(corrupt_file: Path, tmp_path: Path) -> None:
    target = tmp_path / "out.webp"
    outcome = build_service().convert_file(corrupt_file, target, keep_original=False, quality=75)
    assert outcome.status == "failure"
    assert isinstance(outcome.error, DecodeError)
    assert outcome.output_path is None
    assert corrupt_file.exists()
    assert not target.exists()


def test_encode_failure_leaves_files_untouched(make_image, tmp_path: Path, monkeypatch) -> None:
    source = make_image("photo.png")
    target = tmp_path / "out.webp"
    service = build_service()

    def failing_encode(image, quality):
        raise EncodeError("encoder exploded")

    monkeypatch.setattr(service.codec, "encode", failing_encode)
    outcome = service.convert_file(source, target, keep_original=False, quality=75)
    assert isinstance(outcome.error, EncodeError)
    assert source.exists()
    assert not target.exists()


def test_existing_output_is_not_overwritten(make_image, tmp_path: Path) -> None:
    source = make_image("photo.png")
    target = tmp_path / "taken.webp"
    target.write_bytes(b"someone else's file")
    outcome = build_service().convert_file(source, target, keep_original=False, quality=75)
    assert isinstance(outcome.error, WriteError)
    assert "already exists" in str(outcome.error)
    assert target.read_bytes() == b"someone else's file"
    assert source.exists()


def test_output_equal_to_source_is_rejected(make_image) -> None:
    source = make_image("cover.webp", fmt="WEBP")
    before = source.read_bytes()
    outcome = build_service().convert_file(source, source, keep_original=False, quality=75)
    assert isinstance(outcome.error, WriteError)
    assert source.read_bytes() == before


def test_write_failure_keeps_source(make_image, tmp_path: Path) -> None:
    source = make_image("photo.png")
    target = tmp_path / "missing-dir" / "out.webp"
    outcome = build_service().convert_file(source, target, keep_original=False, quality=75)
    assert isinstance(outcome.error, WriteError)
    assert outcome.error.code == "WRITE"
    assert source.exists()
    assert not target.exists()


def test_delete_failure_is_partial_success(make_image, tmp_path: Path, monkeypatch) -> None:
    source = make_image("photo.png")
    target = tmp_path / "out.webp"
    original_unlink = Path.unlink

    def guarded_unlink(self, missing_ok=False):
        if self == source:
            raise PermissionError(13, "Permission denied")
        return original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", guarded_unlink)
    outcome = build_service().convert_file(source, target, keep_original=False, quality=75)
    assert outcome.status == "partial"
    assert outcome.ok
    assert isinstance(outcome.error, DeleteError)
    assert outcome.output_path == target
    assert target.exists()
    assert source.exists()


def test_single_file_without_name_gets_random_token(make_image, tmp_path: Path) -> None:
    source = make_image("photo.png")
    request = build_request([source], config=AppConfig())
    result = build_service().run(request)
    [outcome] = result.outcomes
    assert outcome.status == "success"
    assert outcome.output_path.parent == tmp_path
    assert TOKEN_NAME.match(outcome.output_path.name)
    assert outcome.output_path.exists()
    assert not source.exists()


def test_named_batch_keeps_originals(make_image, tmp_path: Path) -> None:
    sources = [make_image(name) for name in ("a.png", "b.jpg", "c.bmp")]
    request = ConversionRequest(sources=tuple(sources), output_base_name="img", keep_original=True, quality=80, parallelism=3)
    result = build_service().run(request)
    assert [o.output_path.name for o in result.outcomes] == ["img1.webp", "img2.webp", "img3.webp"]
    assert all((tmp_path / f"img{i}.webp").exists() for i in (1, 2, 3))
    assert all(path.exists() for path in sources)
    assert result.summary.successes == 3


def test_corrupt_item_does_not_affect_siblings(make_image, corrupt_file: Path) -> None:
    good = [make_image(f"good{i}.png") for i in range(4)]
    sources = (good[0], good[1], corrupt_file, good[2], good[3])
    request = ConversionRequest(sources=sources, quality=75, parallelism=3)
    result = build_service().run(request)

    assert len(result.outcomes) == len(sources)
    assert [o.source_path for o in result.outcomes] == list(sources)
    broken = result.outcomes[2]
    assert isinstance(broken.error, DecodeError)
    assert corrupt_file.exists()
    assert all(o.status == "success" for i, o in enumerate(result.outcomes) if i != 2)
    assert not any(path.exists() for path in good)
    assert result.summary.total == 5
    assert result.summary.successes == 4
    assert result.summary.failures == 1
    assert result.summary.errors == {"DECODE": 1}


def test_all_failures_still_return_every_outcome(tmp_path: Path) -> None:
    sources = []
    for i in range(6):
        path = tmp_path / f"junk{i}.png"
        path.write_bytes(b"junk")
        sources.append(path)
    result = build_service().run(ConversionRequest(sources=tuple(sources), parallelism=4))
    assert len(result.outcomes) == 6
    assert result.summary.failures == 6


def test_unexpected_worker_error_becomes_failure(make_image, monkeypatch) -> None:
    sources = (make_image("a.png"), make_image("b.png"))
    service = build_service()

    def broken_decode(source):
        raise TypeError("bug in codec")

    monkeypatch.setattr(service.codec, "decode", broken_decode)
    result = service.run(ConversionRequest(sources=sources, parallelism=2))
    assert [o.error_code for o in result.outcomes] == ["INTERNAL", "INTERNAL"]
    assert all(path.exists() for path in sources)
    assert all(o.source_bytes == path.stat().st_size for o, path in zip(result.outcomes, sources))


def test_outcome_callback_runs_on_calling_thread(make_image) -> None:
    sources = tuple(make_image(f"p{i}.png") for i in range(5))
    seen: list[tuple[Path, str]] = []

    def record(outcome) -> None:
        seen.append((outcome.source_path, threading.current_thread().name))

    build_service().run(ConversionRequest(sources=sources, keep_original=True, parallelism=3), on_outcome=record)
    assert sorted(path for path, _ in seen) == sorted(sources)
    assert {name for _, name in seen} == {threading.current_thread().name}


def test_run_log_records_each_item(make_image, corrupt_file: Path, tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.jsonl"
    sources = (make_image("ok.png"), corrupt_file)
    build_service(log_file).run(ConversionRequest(sources=sources, quality=60, parallelism=2))
    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert len(entries) == 2
    by_status = {entry["status"]: entry for entry in entries}
    assert by_status["success"]["quality"] == 60
    assert by_status["success"]["output_path"].endswith(".webp")
    assert by_status["failure"]["error_code"] == "DECODE"
    assert set(by_status["success"]["timings"]) == {"decode_ms", "encode_ms", "write_ms", "delete_ms"}


def test_plugin_crash_on_corrupt_file_is_a_decode_failure(make_image, monkeypatch) -> None:
    good = make_image("good.png")
    scan = make_image("scan.tif", fmt="TIFF")
    real_open = Image.open

    def flaky_open(fp, *args, **kwargs):
        if Path(fp) == scan:
            raise TypeError("'float' object cannot be interpreted as an integer")
        return real_open(fp, *args, **kwargs)

    monkeypatch.setattr("image_optimizer.codecs.base.Image.open", flaky_open)
    result = build_service().run(ConversionRequest(sources=(good, scan), parallelism=2))
    assert [o.error_code for o in result.outcomes] == [None, "DECODE"]
    assert scan.exists()


@pytest.mark.parametrize("parallelism", [1, 3])
def test_run_log_failure_still_returns_every_outcome(make_image, tmp_path: Path, parallelism: int) -> None:
    log_dir = tmp_path / "not-a-file.jsonl"
    log_dir.mkdir()
    sources = tuple(make_image(f"p{i}.png") for i in range(6))
    seen: list[Path] = []

    result = build_service(log_dir).run(
        ConversionRequest(sources=sources, parallelism=parallelism),
        on_outcome=lambda outcome: seen.append(outcome.source_path),
    )

    assert len(result.outcomes) == 6
    assert all(o.status == "success" for o in result.outcomes)
    assert sorted(seen) == sorted(sources)
    assert len(list(tmp_path.glob("*.webp"))) == 6
    assert len(result.summary.log_errors) == 6
    assert all(str(log_dir) in message for message in result.summary.log_errors)
