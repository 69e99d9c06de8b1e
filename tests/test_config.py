from __future__ import annotations

from pathlib import Path

import pytest

from intelliconvert.core.config import LOCAL_TIMEOUT, PipelineSettings


def test_defaults_without_environment() -> None:
    settings = PipelineSettings.from_env({})

    assert settings.remote_timeout == 10.0
    assert settings.local_timeout == LOCAL_TIMEOUT
    assert settings.external_tools
    assert settings.cloudconvert_api_key is None
    assert settings.minimum_output("docx") == 512
    assert settings.minimum_output("unheard-of") == 1


def test_environment_overrides() -> None:
    settings = PipelineSettings.from_env(
        {
            "INTELLICONVERT_REMOTE_TIMEOUT": "2.5",
            "INTELLICONVERT_SCRATCH_DIR": "/var/tmp/convert",
            "INTELLICONVERT_EXTERNAL_TOOLS": "off",
            "CLOUDCONVERT_API_KEY": "cc",
            "CONVERTIO_API_KEY": "",
            "INTELLICONVERT_HTML_PDF_URL": "https://render.example/pdf",
        }
    )

    assert settings.remote_timeout == 2.5
    assert settings.scratch_root == Path("/var/tmp/convert")
    assert not settings.external_tools
    assert settings.cloudconvert_api_key == "cc"
    assert settings.convertio_api_key is None
    assert settings.html_pdf_url == "https://render.example/pdf"


@pytest.mark.parametrize("value", ["soon", "-1", "0"])
def test_invalid_timeouts_are_rejected(value: str) -> None:
    with pytest.raises(ValueError):
        PipelineSettings.from_env({"INTELLICONVERT_LOCAL_TIMEOUT": value})


def test_offline_strips_every_outbound_route() -> None:
    settings = PipelineSettings(
        cloudconvert_api_key="cc", convertio_api_key="cv", html_pdf_url="https://x", external_tools=True
    ).offline()

    assert settings.cloudconvert_api_key is None
    assert settings.convertio_api_key is None
    assert settings.html_pdf_url is None
    assert not settings.external_tools


def test_wrap_width_must_be_usable() -> None:
    with pytest.raises(ValueError):
        PipelineSettings(wrap_width=3)


@pytest.mark.parametrize(
    "overrides",
    [
        {"line_height": 0},
        {"line_height": -4},
        {"page_size": (0, 1000)},
        {"page_size": (800, -1)},
        {"page_size": (800,)},
    ],
)
def test_page_geometry_must_be_positive(overrides) -> None:
    with pytest.raises(ValueError):
        PipelineSettings(**overrides)
