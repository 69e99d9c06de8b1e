"""FastAPI application exposing the IntelliConvert pipeline over HTTP."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse, Response

from intelliconvert import ConversionPipeline, ConversionResult, ErrorKind, FormatTag, PipelineSettings

app = FastAPI(title="IntelliConvert API", version="0.1.0")
DOCS_PREFIX = "/api"

_ERROR_STATUS = {
    ErrorKind.UNSUPPORTED_FORMAT_PAIR: 422,
    ErrorKind.BACKEND_EXHAUSTED: 502,
    ErrorKind.RESOURCE_FAULT: 503,
}


@lru_cache(maxsize=1)
def get_pipeline() -> ConversionPipeline:
    """Shared pipeline; runs hold no state between requests."""

    return ConversionPipeline(settings=PipelineSettings.from_env())


def _diagnostic_headers(result: ConversionResult) -> dict[str, str]:
    headers = {
        "X-IntelliConvert-Attempts": str(len(result.attempts)),
        "X-IntelliConvert-Degraded": "true" if result.degraded else "false",
    }
    if result.path is not None:
        headers["X-IntelliConvert-Path"] = result.path.describe()
    return headers


@app.get("/health", response_class=JSONResponse)
async def health() -> dict[str, str]:
    """Lightweight health endpoint for uptime checks."""
    return {"status": "ok"}


@app.get(
    f"{DOCS_PREFIX}/openapi.json",
    include_in_schema=False,
    name="prefixed_openapi",
)
async def prefixed_openapi() -> JSONResponse:
    """Expose the OpenAPI schema under the gateway's ``/api`` prefix."""

    return JSONResponse(app.openapi())


@app.get(f"{DOCS_PREFIX}/docs", include_in_schema=False)
async def prefixed_swagger_ui(request: Request) -> HTMLResponse:
    """Serve Swagger UI from the same ``/api`` prefix used by the gateway."""

    return get_swagger_ui_html(
        openapi_url=str(request.url_for("prefixed_openapi")),
        title=f"{app.title} - Swagger UI",
    )


@app.get("/formats", response_class=JSONResponse)
async def list_formats(pipeline: ConversionPipeline = Depends(get_pipeline)) -> dict[str, list[str]]:
    """Map every source format to the targets it can be converted to."""

    return {
        source.value: [target.value for target in pipeline.router.supported_targets(source)]
        for source in sorted(FormatTag, key=lambda tag: tag.value)
        if source is not FormatTag.UNKNOWN
    }


@app.post(
    "/convert",
    summary="Convert an upload or a text message",
    response_description="The converted document.",
)
async def convert_content_endpoint(
    target: str = Form(..., description="Target format: text, pdf, doc, docx, html, image, png, jpg or webp."),
    file: UploadFile | None = File(None, description="Attachment to convert."),
    text: str | None = Form(None, description="Message text to convert when no file is attached."),
    title: str | None = Form(None, description="Optional document title."),
    image_format: str | None = Form(None, description="Raster encoding for image output."),
    page: int = Form(1, description="PDF page to rasterise (1-indexed)."),
    pipeline: ConversionPipeline = Depends(get_pipeline),
) -> Response:
    """Convert the uploaded file, or the submitted text, to ``target``.

    Failures answer with a single user-safe sentence; backend details only
    appear in the server log.
    """

    if file is not None and text is not None:
        raise HTTPException(status_code=400, detail="Provide either a file or text, not both.")

    if file is not None:
        contents = await file.read()
        if not contents:
            raise HTTPException(status_code=400, detail=f"File '{file.filename}' is empty.")
        filename = file.filename
        declared_mime_type = file.content_type
    elif text is not None and text.strip():
        contents = text.encode("utf-8")
        filename = None
        declared_mime_type = "text/plain"
    else:
        raise HTTPException(status_code=400, detail="A file or non-empty text must be provided.")

    try:
        result = await run_in_threadpool(
            pipeline.convert,
            contents,
            target,
            declared_mime_type=declared_mime_type,
            filename=filename,
            title=title,
            image_format=image_format,
            page_number=page,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not result.success:
        status_code = _ERROR_STATUS.get(result.error_kind, 500)
        return JSONResponse(
            status_code=status_code,
            content={"detail": result.user_message, "error": result.error_kind.value if result.error_kind else None},
            headers=_diagnostic_headers(result),
        )

    headers = _diagnostic_headers(result)
    headers["Content-Disposition"] = f'attachment; filename="{result.suggested_file_name}"'
    return Response(
        content=result.output_bytes,
        media_type=result.mime_type or "application/octet-stream",
        headers=headers,
    )


__all__ = ["app", "get_pipeline"]
