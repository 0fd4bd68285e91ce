"""
FundTrack
Blueprint registry and shared request helpers.
"""

from flask import jsonify, request

from fundtrack.utils.errors import E, api_error


def json_body():
    """Return ``(data, None)`` for a JSON object body, ``(None, error)`` otherwise.

    An empty body is treated as ``{}``.
    """
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            return None, api_error(E.VALIDATION_INVALID, "Request body must be valid JSON")
        return {}, None
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


def parse_bool(value, default=None):
    """Accept real booleans and the usual string spellings; None if unparseable."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", "off"):
        return False
    return None


def status_result_response(result):
    """Serialize a toggle / approval result.

    ``{"ok": False, ...}`` results become 422 READINESS_NOT_MET with the
    missing items in ``details``.
    """
    if not result["ok"]:
        return api_error(E.READINESS_NOT_MET, result["reason"] or "Readiness not met", details=result)
    body = dict(result)
    project = body.pop("project", None)
    if project is not None:
        body["project"] = project.to_dict()
    return jsonify(body), 200
