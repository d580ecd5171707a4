import logging

from flask import Blueprint, jsonify, request

from .errors import AdmissionError, MalformedRequestError
from .helpers import Profiler, make_error_response
from .models import (
    NODE_RESOURCE,
    POD_RESOURCE,
    AdmissionReviewModel,
    NodeModel,
    PodModel,
)
from .nodes import mutate_node
from .pods import mutate_pod

log = logging.getLogger("ci-scheduling-webhook")


def read_admission_review() -> AdmissionReviewModel:
    """Parse the AdmissionReview from the current Flask request."""
    if request.mimetype != "application/json":
        raise MalformedRequestError(
            f"expected application/json content-type, got {request.content_type!r}"
        )
    review_json = request.get_json(silent=True)
    if review_json is None:
        raise MalformedRequestError("error getting admission review from request")
    return AdmissionReviewModel.from_dict(review_json)


def create_routes(settings, prioritization):
    bp = Blueprint("webhook", __name__)

    def handle_pod(admission: AdmissionReviewModel):
        req = admission.request
        # Should also be enforced by the MutatingWebhookConfiguration in the cluster
        if req.resource != POD_RESOURCE:
            raise MalformedRequestError(f"did not receive pod, got {req.resource}")

        profile = Profiler("mutate-pod", req.uid)
        pod = PodModel.from_dict(req.obj)
        profile("decoded request")

        review = mutate_pod(admission, pod, settings, prioritization, profile)
        profile("ready to write response")
        return review

    def handle_node(admission: AdmissionReviewModel):
        req = admission.request
        if req.resource != NODE_RESOURCE:
            raise MalformedRequestError(f"did not receive node, got {req.resource}")

        profile = Profiler("mutate-node", req.uid)
        node = NodeModel.from_dict(req.obj)
        profile("decoded request")

        review = mutate_node(admission, node, prioritization, profile)
        profile("ready to write response")
        return review

    @bp.route("/health", methods=["GET"])
    def health():
        return {"status": "healthy"}, 200

    @bp.route("/mutate", methods=["POST"])
    def mutate():
        admission = None
        try:
            admission = read_admission_review()
            resource = admission.request.resource
            if resource is not None and resource.resource == NODE_RESOURCE.resource:
                return jsonify(handle_node(admission))
            return jsonify(handle_pod(admission))
        except AdmissionError as e:
            log.error("error during mutation operation: %s", e.message)
            return _error(admission, e.status_code, e.message)
        except Exception as e:
            log.error("Error in /mutate", exc_info=True)
            return _error(admission, 500, str(e))

    return bp


def _error(admission: AdmissionReviewModel | None, status_code: int, message: str):
    if admission is None:
        review = make_error_response("", status_code, message)
    else:
        review = make_error_response(
            admission.request.uid,
            status_code,
            message,
            api_version=admission.api_version,
            kind=admission.kind,
        )
    return jsonify(review), status_code
