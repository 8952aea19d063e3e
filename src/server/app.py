"""
HTTP layer: render templates straight out of git.

Routes:
    /raw/<commit>/<path>  → rendered bytes
    /md5/<commit>/<path>  → "<md5>  <basename>\\n" of the rendered bytes

Request values (query string and form body) are the render data; the form
body wins over the query string for the same key.
"""

import logging
from typing import Dict

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import BadRequest
from werkzeug.routing import BaseConverter

from repo.errors import ErrorKind, TemplateRepoError
from repo.reference import FileRef
from repo.store import TemplateRepo

from .digest import md5_line

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.COMMIT_NOT_FOUND: 404,
    ErrorKind.FILE_NOT_FOUND: 404,
    ErrorKind.MISSING_KEY: 400,
}

templates_bp = Blueprint("templates", __name__)


class CommitConverter(BaseConverter):
    """Full 40-character lowercase hex commit id."""

    regex = "[0-9a-f]{40}"


def error_response(code: str, status: int = 400, detail: str = None):
    payload = {"error": code}
    if detail:
        payload["detail"] = detail
    return jsonify(payload), status


def failure_response(err: TemplateRepoError):
    status = STATUS_BY_KIND.get(err.kind, 500)
    if status >= 500:
        logger.error("failed to render template: %s", err)
    else:
        logger.info("request failed (%s): %s", err.kind.value, err)
    return error_response(err.kind.value, status, str(err))


def parse_data() -> Dict[str, str]:
    """First value of every query/form key, form values taking precedence."""
    data = request.args.to_dict(flat=True)
    data.update(request.form.to_dict(flat=True))
    return data


def get_repo() -> TemplateRepo:
    return current_app.extensions["template_repo"]


def render_ref(ref: FileRef, data: Dict[str, str]) -> bytes:
    template = get_repo().get_template(ref, sync=True)
    return template.render(data)


@templates_bp.route("/raw/<commit:commit>/<path:path>", methods=["GET", "POST"])
def raw(commit: str, path: str):
    try:
        data = parse_data()
    except BadRequest as e:
        return error_response("bad_request", 400, e.description)

    ref = FileRef(commit=commit, path=path)
    try:
        out = render_ref(ref, data)
    except TemplateRepoError as e:
        return failure_response(e)
    return Response(out, mimetype="text/plain")


@templates_bp.route("/md5/<commit:commit>/<path:path>", methods=["GET", "POST"])
def md5(commit: str, path: str):
    try:
        data = parse_data()
    except BadRequest as e:
        return error_response("bad_request", 400, e.description)

    ref = FileRef(commit=commit, path=path)
    try:
        out = render_ref(ref, data)
    except TemplateRepoError as e:
        return failure_response(e)
    return Response(md5_line(out, ref.path), mimetype="text/plain")


def log_request() -> None:
    logger.info("%s %s from %s", request.method, request.url, request.remote_addr)


def create_app(repo: TemplateRepo) -> Flask:
    app = Flask(__name__)
    app.url_map.converters["commit"] = CommitConverter
    app.extensions["template_repo"] = repo
    app.before_request(log_request)
    app.register_blueprint(templates_bp)
    return app
