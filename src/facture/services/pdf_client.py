"""Client for the external HTML-to-PDF service.

Any service that accepts an ``index.html`` multipart upload and answers with
PDF bytes works; Gotenberg's ``/forms/chromium/convert/html`` route is the
reference target.
"""

from __future__ import annotations

import logging

import requests

from facture.config import PDF_TIMEOUT, get_pdf_url
from facture.services.exceptions import RenderError
from facture.services.http_retry import PDF_RENDER, RetryableHTTPError, retry_call

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
HTML_MEDIA_TYPE = "text/html"


def invoice_filename(invoice_number: str, ext: str = "pdf") -> str:
    return f"invoice-{invoice_number}.{ext}"


def _check_response(resp: requests.Response) -> None:
    if resp.ok:
        return
    body = resp.text[:500] if resp.text else ""
    if resp.status_code in PDF_RENDER.retryable_status_codes:
        raise RetryableHTTPError(f"PDF service error ({resp.status_code}): {body}")
    raise RenderError(f"PDF service error ({resp.status_code})", response_body=body)


def render_pdf(html: bytes, url: str | None = None) -> bytes:
    """Send *html* to the PDF service and return the rendered PDF bytes."""
    url = url or get_pdf_url()
    if not url:
        raise RenderError("No PDF service configured (set FACTURE_PDF_URL)")

    def _do_post() -> bytes:
        resp = requests.post(
            url,
            files={"files": ("index.html", html, HTML_MEDIA_TYPE)},
            data={"paperWidth": "8.27", "paperHeight": "11.7", "printBackground": "true"},
            timeout=PDF_TIMEOUT,
        )
        _check_response(resp)
        return resp.content

    try:
        content = retry_call(_do_post, PDF_RENDER)
    except RetryableHTTPError as e:
        raise RenderError(str(e)) from e
    except requests.exceptions.RequestException as e:
        raise RenderError(f"PDF service unreachable: {e}") from e
    if not content.startswith(b"%PDF"):
        logger.warning("PDF service answered without a PDF signature (%d bytes)", len(content))
    return content
