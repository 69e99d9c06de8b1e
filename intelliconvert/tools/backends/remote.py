"""Remote conversion services reached over HTTP with :mod:`requests`.

Each backend declines immediately when its credentials or endpoint are not
configured. A single attempt, including polling, never outlives the remote
timeout of the pipeline settings.
"""

from __future__ import annotations

import base64
import time

import requests

from ...core.exceptions import BackendError
from ...core.formats import FormatTag, detect_image_format, extension_for
from ...core.sanitizer import decode_text, sanitize
from ...core.utils import get_logger
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_REMOTE, register_backend
from .html import render_html_page

LOGGER = get_logger("intelliconvert.backends.remote")

CLOUDCONVERT_API = "https://api.cloudconvert.com/v2"
CONVERTIO_API = "https://api.convertio.co"
POLL_INTERVAL = 1.0

REMOTE_PAIRS = [
    ("doc", "pdf"),
    ("docx", "pdf"),
    ("pdf", "docx"),
    ("pdf", "doc"),
    ("image", "pdf"),
    ("pdf", "image"),
]

_SERVICE_FORMATS = {"jpeg": "jpg"}


def service_format(target_format: FormatTag, image_format: str) -> str:
    if target_format is FormatTag.IMAGE:
        return _SERVICE_FORMATS.get(image_format, image_format)
    return target_format.value


def input_filename(data: bytes, source_format: FormatTag) -> str:
    return "input" + extension_for(source_format, detect_image_format(data))


class _Deadline:
    def __init__(self, seconds: float) -> None:
        self._expires = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(self._expires - time.monotonic(), 0.0)

    def request_timeout(self) -> float:
        remaining = self.remaining()
        if remaining <= 0:
            raise TimeoutError("remote deadline exceeded")
        return remaining

    def sleep(self, interval: float) -> None:
        time.sleep(min(interval, self.remaining()))


class _RemoteBackend(ConverterBackend):
    remote = True

    def _convert(self, data: bytes, source_format: FormatTag, target_format: FormatTag, options: BackendOptions, deadline: _Deadline) -> bytes:  # pragma: no cover - abstract
        raise NotImplementedError

    def _credentials(self, options: BackendOptions) -> str | None:  # pragma: no cover - abstract
        raise NotImplementedError

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        if not self._credentials(options):
            return BackendOutcome.reject(f"{self.name} is not configured")
        deadline = _Deadline(self.timeout(options.settings))
        try:
            output = self._convert(data, source_format, target_format, options, deadline)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            return BackendOutcome.failed(f"{self.name} answered HTTP {status}")
        except requests.RequestException as exc:
            return BackendOutcome.failed(f"{self.name} request failed: {type(exc).__name__}")
        except TimeoutError:
            return BackendOutcome.failed(f"{self.name} did not finish in time")
        except BackendError as exc:
            return BackendOutcome.failed(f"{self.name} {exc.message}")
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            return BackendOutcome.failed(f"{self.name} sent an unexpected response: {type(exc).__name__}")
        LOGGER.info("%s converted %s -> %s", self.name, source_format.value, target_format.value)
        return BackendOutcome.produced(output)


@register_backend("cloudconvert", pairs=REMOTE_PAIRS, priority=PRIORITY_REMOTE)
class CloudConvertBackend(_RemoteBackend):
    """CloudConvert job API: import/upload, convert, export/url."""

    def _credentials(self, options: BackendOptions) -> str | None:
        return options.settings.cloudconvert_api_key

    def _convert(self, data, source_format, target_format, options, deadline) -> bytes:
        headers = {"Authorization": f"Bearer {options.settings.cloudconvert_api_key}"}
        with requests.Session() as session:
            response = session.post(
                f"{CLOUDCONVERT_API}/jobs",
                json={
                    "tasks": {
                        "import-1": {"operation": "import/upload"},
                        "convert-1": {
                            "operation": "convert",
                            "input": "import-1",
                            "output_format": service_format(target_format, options.image_format),
                        },
                        "export-1": {"operation": "export/url", "input": "convert-1"},
                    }
                },
                headers=headers,
                timeout=deadline.request_timeout(),
            )
            response.raise_for_status()
            job = response.json()["data"]
            upload = next(task for task in job["tasks"] if task["operation"] == "import/upload")
            form = upload["result"]["form"]
            uploaded = session.post(
                form["url"],
                data=form.get("parameters", {}),
                files={"file": (input_filename(data, source_format), data)},
                timeout=deadline.request_timeout(),
            )
            uploaded.raise_for_status()

            while True:
                status = session.get(
                    f"{CLOUDCONVERT_API}/jobs/{job['id']}", headers=headers, timeout=deadline.request_timeout()
                )
                status.raise_for_status()
                tasks = status.json()["data"]["tasks"]
                export = next((task for task in tasks if task["operation"] == "export/url"), None)
                if any(task.get("status") == "error" for task in tasks):
                    raise BackendError("job reported an error")
                if export is not None and export.get("status") == "finished":
                    file_url = export["result"]["files"][0]["url"]
                    download = session.get(file_url, timeout=deadline.request_timeout())
                    download.raise_for_status()
                    return download.content
                deadline.sleep(POLL_INTERVAL)
                deadline.request_timeout()


@register_backend("convertio", pairs=REMOTE_PAIRS, priority=PRIORITY_REMOTE)
class ConvertioBackend(_RemoteBackend):
    """Convertio API with a base64 upload."""

    def _credentials(self, options: BackendOptions) -> str | None:
        return options.settings.convertio_api_key

    def _convert(self, data, source_format, target_format, options, deadline) -> bytes:
        api_key = options.settings.convertio_api_key
        with requests.Session() as session:
            response = session.post(
                f"{CONVERTIO_API}/convert",
                json={
                    "apikey": api_key,
                    "input": "base64",
                    "file": base64.b64encode(data).decode("ascii"),
                    "filename": input_filename(data, source_format),
                    "outputformat": service_format(target_format, options.image_format),
                },
                timeout=deadline.request_timeout(),
            )
            response.raise_for_status()
            started = response.json()
            if started.get("status") != "ok":
                raise BackendError("conversion was not accepted")
            conversion_id = started["data"]["id"]

            while True:
                deadline.sleep(POLL_INTERVAL)
                status = session.get(
                    f"{CONVERTIO_API}/convert/{conversion_id}/status",
                    params={"apikey": api_key},
                    timeout=deadline.request_timeout(),
                )
                status.raise_for_status()
                payload = status.json()
                if payload.get("status") != "ok":
                    raise BackendError("conversion failed remotely")
                if payload["data"].get("step") == "finish":
                    download = session.get(payload["data"]["output"]["url"], timeout=deadline.request_timeout())
                    download.raise_for_status()
                    return download.content


@register_backend("html-pdf-service", pairs=[("text", "pdf"), ("html", "pdf")], priority=PRIORITY_REMOTE)
class HtmlPdfServiceBackend(_RemoteBackend):
    """POST an HTML page to a configured HTML-to-PDF endpoint."""

    def _credentials(self, options: BackendOptions) -> str | None:
        return options.settings.html_pdf_url

    def _convert(self, data, source_format, target_format, options, deadline) -> bytes:
        if source_format is FormatTag.HTML:
            html = decode_text(data)
        else:
            html = render_html_page(
                sanitize(decode_text(data)), title=options.title, attribution=options.settings.attribution
            )
        response = requests.post(
            options.settings.html_pdf_url,
            json={
                "html": html,
                "options": {
                    "format": "A4",
                    "margin": {"top": "1in", "bottom": "1in", "left": "0.5in", "right": "0.5in"},
                },
            },
            timeout=deadline.request_timeout(),
        )
        response.raise_for_status()
        return response.content


__all__ = [
    "CloudConvertBackend",
    "ConvertioBackend",
    "HtmlPdfServiceBackend",
    "REMOTE_PAIRS",
    "service_format",
    "input_filename",
]
