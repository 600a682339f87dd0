# Overview: Request decorators for API routes.

from functools import wraps
from flask import jsonify, g, current_app, request

from .services.tenant_service import resolve_request_tenant


def require_tenant(f):
    """
    Establish tenant context for the request.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.user_id: The acting user, if known (used as finalized_by)

    SECURITY: Returns 401 if no tenant could be resolved. The tenant is
    taken from g when upstream auth already set it, otherwise from the
    tenant header only when TRUST_TENANT_HEADER is enabled.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_id, user_id = resolve_request_tenant()

        if not isinstance(org_id, str) or not org_id.strip():
            current_app.logger.warning("Request without tenant context: %s %s", request.method, request.path)
            return jsonify({"error": "missing_tenant_context", "message": "Tenant context required"}), 401

        g.org_id = org_id.strip()
        g.user_id = user_id

        return f(*args, **kwargs)

    return decorated_function
