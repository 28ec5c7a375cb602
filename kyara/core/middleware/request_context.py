from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from kyara.core.context import request_id_ctx_var, user_id_ctx_var
from kyara.core.validation import is_valid_request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the request id and the selection owner to the logging context.

    The owner is whoever the synchronizer had loaded when the request arrived;
    a sign-in handled by this request does not change it.
    """

    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        incoming = (request.headers.get(self.header_name) or "").strip()
        rid = incoming if incoming and is_valid_request_id(incoming) else uuid.uuid4().hex
        request.state.request_id = rid

        synchronizer = getattr(request.app.state, "synchronizer", None)
        owner = getattr(synchronizer, "user_id", None) or "-"

        rid_token = request_id_ctx_var.set(rid)
        owner_token = user_id_ctx_var.set(owner)
        try:
            response = await call_next(request)
        finally:
            user_id_ctx_var.reset(owner_token)
            request_id_ctx_var.reset(rid_token)
        response.headers[self.header_name] = rid
        return response
