import asyncio

import pytest
from PIL import Image

from sizefit.compression import CancellationToken, OutcomeReason
from sizefit.processor import BatchCompressor, BatchItemResult, CompressionTask, summarize


@pytest.fixture
def two_images(tmp_path, noise_image):
    src = tmp_path / "src"
    src.mkdir()
    paths = []
    for name in ("first.png", "second.png"):
        path = src / name
        noise_image.save(path, format='PNG')
        paths.append(path)
    return paths


def _batch(paths, target_bytes, **kwargs):
    batch = BatchCompressor()
    for path in paths:
        batch.add_to_queue(CompressionTask(filepath=path, target_bytes=target_bytes, **kwargs))
    return batch


def test_task_validation(png_file):
    with pytest.raises(ValueError):
        CompressionTask(filepath=png_file, target_bytes=1000, format='BMP')
    with pytest.raises(ValueError):
        CompressionTask(filepath=png_file, target_bytes=0)
    with pytest.raises(ValueError):
        CompressionTask(filepath=png_file, target_bytes=1000, preset='nope')


def test_task_normalizes_inputs(png_file):
    task = CompressionTask(filepath=str(png_file), target_bytes=1000, format='jpg')

    assert task.filepath == png_file
    assert task.format == 'JPEG'


def test_task_overrides_apply_to_preset(png_file):
    task = CompressionTask(
        filepath=png_file,
        target_bytes=1000,
        preset='fast',
        overrides={'max_attempts': 3, 'tolerance_ratio': None},
    )

    preset = task.get_preset()

    assert preset.max_attempts == 3
    assert preset.tolerance_ratio == 0.05


def test_queue_management(png_file):
    batch = BatchCompressor()
    batch.add_to_queue(CompressionTask(filepath=png_file, target_bytes=1000))
    batch.add_to_queue(CompressionTask(filepath=png_file, target_bytes=2000))

    batch.remove_from_queue(5)
    assert batch.get_queue_size() == 2

    batch.remove_from_queue(0)
    assert batch.queue[0].target_bytes == 2000

    batch.clear_queue()
    assert batch.get_queue_size() == 0


def test_expected_output_path_uses_format_extension(tmp_path):
    batch = BatchCompressor()

    assert batch.get_expected_output_path(tmp_path / "a.png", tmp_path, 'WEBP') == tmp_path / "a.webp"
    assert batch.get_expected_output_path(tmp_path / "a.png", tmp_path, 'JPEG') == tmp_path / "a.jpg"


def test_expected_output_path_keeps_name_when_under_target(png_file, tmp_path):
    batch = BatchCompressor()
    size = png_file.stat().st_size

    assert batch.get_expected_output_path(png_file, tmp_path, 'JPEG', size) == tmp_path / "noise.png"
    assert batch.get_expected_output_path(png_file, tmp_path, 'JPEG', size - 1) == tmp_path / "noise.jpg"


def test_process_batch_writes_every_file(two_images, tmp_path):
    target = two_images[0].stat().st_size // 8
    batch = _batch(two_images, target, preset='fast', overrides={'max_attempts': 20})
    progress = []

    results = asyncio.run(batch.process_batch(
        tmp_path / "out",
        lambda current, total, name: progress.append((current, total)),
    ))

    assert [item.filepath for item in results] == two_images
    for item in results:
        assert item.written
        assert item.output_path.suffix == '.jpg'
        assert item.output_path.stat().st_size == item.outcome.result.size_bytes
        with Image.open(item.output_path) as img:
            assert img.format == 'JPEG'
    assert sorted(progress) == [(1, 2), (2, 2)]


def test_target_above_original_copies_file(two_images, tmp_path):
    batch = _batch(two_images[:1], 10 * 1024 * 1024)

    results = asyncio.run(batch.process_batch(tmp_path / "out"))

    item = results[0]
    assert item.outcome.reason is OutcomeReason.EXACT
    assert item.output_path == tmp_path / "out" / "first.png"
    assert item.output_path.read_bytes() == two_images[0].read_bytes()


def test_collisions_get_numeric_suffix(two_images, tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "first.jpg").write_bytes(b"existing")
    target = two_images[0].stat().st_size // 8

    results = asyncio.run(_batch(two_images[:1], target).process_batch(out))

    assert results[0].output_path == out / "first_1.jpg"
    assert (out / "first.jpg").read_bytes() == b"existing"


def test_overwrite_replaces_existing(two_images, tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "first.jpg").write_bytes(b"existing")
    target = two_images[0].stat().st_size // 8

    results = asyncio.run(_batch(two_images[:1], target).process_batch(out, overwrite=True))

    assert results[0].output_path == out / "first.jpg"
    assert (out / "first.jpg").read_bytes() != b"existing"


def test_skip_existing(two_images, tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "first.jpg").write_bytes(b"existing")
    batch = _batch(two_images, two_images[0].stat().st_size // 8)

    assert batch.check_existing_files(two_images, out, 'JPEG') == [out / "first.jpg"]

    results = asyncio.run(batch.process_batch(out, skip_existing=True))

    assert results[0].skipped
    assert results[1].written
    assert summarize(results)['skipped'] == 1


def test_unreadable_image_is_reported_not_raised(tmp_path, two_images):
    broken = tmp_path / "broken.png"
    broken.write_text("not an image")
    batch = _batch([broken, two_images[0]], 20_000)

    results = asyncio.run(batch.process_batch(tmp_path / "out"))

    assert results[0].error.startswith("Not a supported image file")
    assert not results[0].written
    assert results[1].written
    assert summarize(results)['failed'] == 1


def test_missing_input_is_reported_not_raised(tmp_path, two_images):
    missing = tmp_path / "missing.png"
    batch = _batch([missing, two_images[0]], two_images[0].stat().st_size // 8)

    results = asyncio.run(batch.process_batch(tmp_path / "out"))

    assert "not found" in results[0].error
    assert results[0].outcome is None
    assert results[1].written
    summary = summarize(results)
    assert summary['written'] == 1
    assert summary['failed'] == 1


def test_skip_existing_sees_copied_original(two_images, tmp_path):
    out = tmp_path / "out"
    batch = _batch(two_images[:1], 10 * 1024 * 1024)

    first = asyncio.run(batch.process_batch(out, skip_existing=True))
    second = asyncio.run(batch.process_batch(out, skip_existing=True))

    assert first[0].output_path == out / "first.png"
    assert second[0].skipped
    assert sorted(p.name for p in out.iterdir()) == ["first.png"]
    assert batch.check_existing_files(two_images[:1], out, 'JPEG', 10 * 1024 * 1024) == [out / "first.png"]
    assert batch.check_existing_files(two_images[:1], out, 'JPEG') == []


def test_cancelled_batch_keeps_best_or_reports(two_images, tmp_path):
    token = CancellationToken()
    token.cancel()

    results = asyncio.run(_batch(two_images, 20_000).process_batch(tmp_path / "out", cancel_token=token))

    for item in results:
        assert item.outcome.cancelled
        assert not item.written


def test_invalid_batch_arguments(tmp_path):
    batch = BatchCompressor()

    with pytest.raises(ValueError):
        asyncio.run(batch.process_batch(None))
    with pytest.raises(ValueError):
        asyncio.run(batch.process_batch(tmp_path, max_concurrency=0))


def test_summarize_counts():
    assert summarize([BatchItemResult(filepath=None, skipped=True)]) == {
        'written': 0, 'target_met': 0, 'best_effort': 0, 'failed': 0, 'skipped': 1,
    }
