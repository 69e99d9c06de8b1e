from __future__ import annotations

import pytest

from intelliconvert.core.exceptions import UnsupportedFormatPairError
from intelliconvert.core.formats import CANONICAL_FORMATS, FormatTag
from intelliconvert.tools import load_builtin_backends
from intelliconvert.tools.common.pipeline import (
    PRIORITY_BUILTIN,
    PRIORITY_REMOTE,
    BackendRegistry,
    registry,
)
from intelliconvert.tools.router import ConversionRouter, PathKind


def setup_module(module):
    load_builtin_backends()


@pytest.fixture()
def router() -> ConversionRouter:
    return ConversionRouter(registry)


def test_every_table_pair_routes_directly(router: ConversionRouter) -> None:
    for source, target in registry.pairs():
        if source is target:
            continue
        path = router.route(source, target)
        assert path.kind is PathKind.DIRECT
        assert path.segments == [(source, target)]


def test_same_format_is_a_passthrough(router: ConversionRouter) -> None:
    for tag in CANONICAL_FORMATS:
        path = router.route(tag, tag)
        assert path.is_passthrough
        assert path.segments == []


def test_reencode_uses_the_same_format_entry(router: ConversionRouter) -> None:
    assert router.route(FormatTag.IMAGE, FormatTag.IMAGE, reencode=True).kind is PathKind.DIRECT
    assert router.route(FormatTag.TEXT, FormatTag.TEXT, reencode=True).is_passthrough


def test_doc_to_image_goes_through_pdf(router: ConversionRouter) -> None:
    path = router.route("doc", "image")
    assert path.kind is PathKind.TWO_HOP
    assert path.formats == (FormatTag.DOC, FormatTag.PDF, FormatTag.IMAGE)
    assert path.intermediate is FormatTag.PDF
    assert path.describe() == "doc -> pdf -> image"


def test_two_hop_paths_are_built_from_table_entries(router: ConversionRouter) -> None:
    for source in CANONICAL_FORMATS:
        for target in CANONICAL_FORMATS:
            path = router.try_route(source, target)
            if path is None or path.kind is not PathKind.TWO_HOP:
                continue
            assert path.intermediate not in (source, target)
            for segment in path.segments:
                assert registry.has_pair(*segment)


@pytest.mark.parametrize(("source", "target"), [("image", "text"), ("image", "html")])
def test_lossy_compositions_are_unsupported(router: ConversionRouter, source: str, target: str) -> None:
    with pytest.raises(UnsupportedFormatPairError):
        router.route(source, target)


def test_unknown_tags_are_unsupported(router: ConversionRouter) -> None:
    with pytest.raises(UnsupportedFormatPairError) as excinfo:
        router.route("text", "xyz")
    assert excinfo.value.target == "xyz"
    assert "XYZ" in excinfo.value.user_message
    assert router.try_route("unknown", "pdf") is None


def test_supported_targets_exclude_blocked_pairs(router: ConversionRouter) -> None:
    targets = router.supported_targets(FormatTag.IMAGE)
    assert FormatTag.PDF in targets
    assert FormatTag.DOCX in targets
    assert FormatTag.TEXT not in targets
    assert FormatTag.HTML not in targets
    assert FormatTag.IMAGE not in targets


def test_missing_pairs_without_intermediate_are_unsupported(stub_registry: BackendRegistry, stub_backend) -> None:
    stub_registry.register(stub_backend("only-text-pdf"), [("text", "pdf")])
    router = ConversionRouter(stub_registry)
    assert router.route("text", "pdf").kind is PathKind.DIRECT
    with pytest.raises(UnsupportedFormatPairError):
        router.route("text", "docx")


def test_intermediate_preference_order(stub_registry: BackendRegistry, stub_backend) -> None:
    stub_registry.register(stub_backend("html-docx"), [("html", "docx")])
    stub_registry.register(stub_backend("docx-image"), [("docx", "image")])
    stub_registry.register(stub_backend("html-pdf"), [("html", "pdf")])
    stub_registry.register(stub_backend("pdf-image"), [("pdf", "image")])
    path = ConversionRouter(stub_registry).route("html", "image")
    assert path.intermediate is FormatTag.PDF


def test_registry_orders_cascades_by_priority(stub_registry: BackendRegistry, stub_backend) -> None:
    local = stub_registry.register(stub_backend("local"), [("text", "pdf")], priority=PRIORITY_BUILTIN)
    remote = stub_registry.register(stub_backend("remote"), [("text", "pdf")], priority=PRIORITY_REMOTE)
    assert stub_registry.backends_for("text", "pdf") == [remote, local]


def test_registry_rejects_duplicates_and_blocked_pairs(stub_registry: BackendRegistry, stub_backend) -> None:
    stub_registry.register(stub_backend("ocr"), [("pdf", "text")])
    with pytest.raises(ValueError):
        stub_registry.register(stub_backend("ocr"), [("pdf", "text")])
    with pytest.raises(ValueError):
        stub_registry.register(stub_backend("fake-ocr"), [("image", "text")])


def test_builtin_cascade_order() -> None:
    names = [backend.name for backend in registry.backends_for("pdf", "image")]
    assert names == ["cloudconvert", "convertio", "pdftoppm", "pymupdf", "fallback-renderer"]
    names = [backend.name for backend in registry.backends_for("text", "pdf")]
    assert names == ["html-pdf-service", "reportlab-text"]
