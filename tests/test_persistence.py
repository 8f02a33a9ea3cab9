from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image, features

from conftest import encode, palette_image
from genmix_engine.errors import PersistenceIOError, UnsupportedFormat
from genmix_engine.fanout import GenerationResult
from genmix_engine.persistence import (
    SaveOptions,
    default_filename,
    prompt_slug,
    resolve_extension,
    save_images,
)
from genmix_engine.profiles import (
    EncodingOverride,
    LosslessPaletteProfile,
    LossyProfile,
    NearLosslessProfile,
)
from genmix_engine.providers.parsing import ImagePayload

EXPECTED_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "tiff": "TIFF",
    "tif": "TIFF",
}


def _result(count: int = 1, prompt: str = "A futuristic city", **kwargs) -> GenerationResult:
    images = tuple(
        ImagePayload(data=encode(Image.new("RGBA", (24, 16), (idx * 50, 100, 150, 255)), "PNG"))
        for idx in range(count)
    )
    return GenerationResult(prompt=prompt, images=images, **kwargs)


@pytest.mark.parametrize("extension", sorted(EXPECTED_FORMATS))
def test_every_supported_extension_writes_matching_format(tmp_path: Path, extension: str) -> None:
    if extension == "avif" and not features.check("avif"):
        pytest.skip("Pillow built without AVIF support")
    saved = save_images(_result(), SaveOptions(directory=tmp_path, filename="out", extension=extension))
    assert len(saved) == 1
    expected_suffix = "jpg" if extension == "jpeg" else extension
    assert saved[0].path == tmp_path / f"out.{expected_suffix}"
    with Image.open(saved[0].path) as image:
        assert image.format == EXPECTED_FORMATS[extension]


def test_extension_is_normalized(tmp_path: Path) -> None:
    saved = save_images(_result(), SaveOptions(directory=tmp_path, filename="shot", extension=".PNG"))
    assert saved[0].path.name == "shot.png"
    assert resolve_extension(SaveOptions(extension="JPEG")) == ("jpg", "jpeg")
    assert resolve_extension(SaveOptions(extension="tif")) == ("tif", "tiff")


def test_unsupported_extension_writes_nothing(tmp_path: Path) -> None:
    target = tmp_path / "never-created"
    with pytest.raises(UnsupportedFormat, match="bmp"):
        save_images(_result(2), SaveOptions(directory=target, extension="bmp"))
    assert not target.exists()


def test_filename_stem_with_batch_gets_index_suffix(tmp_path: Path) -> None:
    saved = save_images(_result(2), SaveOptions(directory=tmp_path, filename="variant", extension="png"))
    assert [artifact.path.name for artifact in saved] == ["variant_0.png", "variant_1.png"]
    assert all(artifact.path.exists() for artifact in saved)


def test_filename_stem_with_single_image_has_no_suffix(tmp_path: Path) -> None:
    saved = save_images(_result(1), SaveOptions(directory=tmp_path, filename="variant", extension="png"))
    assert [artifact.path.name for artifact in saved] == ["variant.png"]


def test_default_names_are_salted_per_call() -> None:
    first = default_filename("same prompt", 0, clock=lambda: 1_000)
    second = default_filename("same prompt", 0, clock=lambda: 2_000)
    assert first != second
    assert first.startswith("same-prompt-")
    assert default_filename("same prompt", 0) != default_filename("same prompt", 0)


def test_default_names_without_stem(tmp_path: Path) -> None:
    result = _result(2, prompt="Cyberpunk skyline at dusk")
    first = save_images(result, SaveOptions(directory=tmp_path, extension="jpg"))
    second = save_images(result, SaveOptions(directory=tmp_path, extension="jpg"))
    names = {artifact.path.name for artifact in first + second}
    assert len(names) == 4
    assert all(name.startswith("cyberpunk-skyline-at-dusk-") and name.endswith(".jpg") for name in names)


def test_prompt_slug_is_bounded() -> None:
    assert prompt_slug("  Hello, World!! ") == "hello-world"
    assert prompt_slug("!!!") == ""
    assert len(prompt_slug("word " * 50)) <= 40


def test_no_images_returns_empty_list(tmp_path: Path) -> None:
    target = tmp_path / "out"
    assert save_images(GenerationResult(prompt="p"), SaveOptions(directory=target)) == []
    assert not target.exists()


def test_directory_is_created_with_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "c"
    saved = save_images(_result(), SaveOptions(directory=target, extension="webp"))
    assert saved[0].path.parent == target
    assert saved[0].path.exists()


def test_inferred_palette_profile_applies_when_formats_match(tmp_path: Path) -> None:
    profile = LosslessPaletteProfile(width=12, height=10, colors=8)
    saved = save_images(
        _result(reference_profile=profile),
        SaveOptions(directory=tmp_path, filename="pal", extension="png"),
    )
    assert saved[0].profile == profile
    with Image.open(saved[0].path) as image:
        assert image.mode == "P"
        assert image.size == (12, 10)
        assert len(image.convert("RGB").getcolors(maxcolors=1024)) <= 8


def test_inferred_profile_ignored_for_other_formats(tmp_path: Path) -> None:
    profile = NearLosslessProfile(width=12, height=10)
    saved = save_images(
        _result(reference_profile=profile),
        SaveOptions(directory=tmp_path, filename="plain", extension="png"),
    )
    assert saved[0].profile is None
    with Image.open(saved[0].path) as image:
        assert image.size == (24, 16)


def test_jpeg_profile_matches_jpg_extension(tmp_path: Path) -> None:
    profile = LossyProfile(width=30, height=20, quality=70)
    saved = save_images(_result(reference_profile=profile), SaveOptions(directory=tmp_path, extension="jpg"))
    assert saved[0].profile == profile
    with Image.open(saved[0].path) as image:
        assert image.size == (30, 20)


def test_explicit_override_wins_over_inferred_profile(tmp_path: Path) -> None:
    profile = LossyProfile(width=30, height=20, quality=70)
    override = EncodingOverride(quality=95, width=8, height=8)
    saved = save_images(
        _result(reference_profile=profile),
        SaveOptions(directory=tmp_path, filename="o", extension="jpg", override=override),
    )
    assert saved[0].profile == override
    with Image.open(saved[0].path) as image:
        assert image.size == (8, 8)


def test_override_format_replaces_extension(tmp_path: Path) -> None:
    override = EncodingOverride(format="webp", quality=60)
    saved = save_images(_result(), SaveOptions(directory=tmp_path, filename="o", extension="jpg", override=override))
    assert saved[0].path.name == "o.webp"
    assert saved[0].format == "webp"


def test_palette_override_quantizes_png(tmp_path: Path) -> None:
    source = GenerationResult(prompt="p", images=(ImagePayload(data=encode(palette_image(16).convert("RGB"), "PNG")),))
    override = EncodingOverride(palette=True, colors=4, compression_level=6, effort=9)
    saved = save_images(source, SaveOptions(directory=tmp_path, filename="q", extension="png", override=override))
    with Image.open(saved[0].path) as image:
        assert image.mode == "P"
        assert len(image.convert("RGB").getcolors(maxcolors=1024)) <= 4


def test_failure_aborts_batch_but_keeps_earlier_files(tmp_path: Path) -> None:
    good = encode(Image.new("RGB", (4, 4), (1, 2, 3)), "PNG")
    result = GenerationResult(
        prompt="p",
        images=(ImagePayload(data=good), ImagePayload(data=b"corrupt"), ImagePayload(data=good)),
    )
    with pytest.raises(PersistenceIOError, match="batch_1.png"):
        save_images(result, SaveOptions(directory=tmp_path, filename="batch", extension="png"))
    assert (tmp_path / "batch_0.png").exists()
    assert not (tmp_path / "batch_1.png").exists()
    assert not (tmp_path / "batch_2.png").exists()


def test_decoder_errors_surface_as_persistence_errors(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    with pytest.raises(PersistenceIOError, match="bomb.png") as excinfo:
        save_images(_result(), SaveOptions(directory=tmp_path, filename="bomb", extension="png"))
    assert isinstance(excinfo.value.__cause__, Image.DecompressionBombError)
    assert not (tmp_path / "bomb.png").exists()
