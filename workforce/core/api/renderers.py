from __future__ import annotations

from typing import Any

from rest_framework.renderers import JSONRenderer


class EnvelopeJSONRenderer(JSONRenderer):
    """Wrap API bodies as ``{"data": ...}`` or ``{"error": ...}``.

    Error bodies produced by ``envelope_exception_handler`` already carry the
    ``error`` key and pass through untouched.
    """

    def render(self, data: Any, accepted_media_type=None, renderer_context=None):
        renderer_context = renderer_context or {}
        response = renderer_context.get("response")
        status_code = getattr(response, "status_code", 200)

        if status_code == 204 and data is None:  # noqa: PLR2004
            return super().render(data, accepted_media_type, renderer_context)

        if status_code >= 400:  # noqa: PLR2004
            if not (isinstance(data, dict) and "error" in data):
                data = {"error": "Request failed", "details": data}
        else:
            data = {"data": data}
        return super().render(data, accepted_media_type, renderer_context)
