"""
The CRD conversion webhook protocol.

A :class:`ResourceConverter` is bound to exactly one resource kind. It takes a
``ConversionReview`` request, converts every contained object to the desired
version and answers with a ``ConversionReview`` response. Failures are never
raised to the caller: they are reported in the response body with
``result.status = "Failure"`` and the request uid, and a request fails as a
whole if any of its objects fails.
"""

import logging
from typing import Dict, Iterable, Optional

from versioning.schema import ResourceSchema
from versioning.version import ApiVersion, ParseVersionError, Version

from .codec import ShapeError, SpecCodec
from .errors import (
    ConversionError,
    ConvertReviewToRequestError,
    DeserializeObjectSpecError,
    ObjectApiVersionNotStringError,
    ObjectHasNoApiVersionError,
    ObjectHasNoKindError,
    ObjectHasNoSpecError,
    ObjectKindNotStringError,
    ParseCurrentResourceVersionError,
    ParseDesiredResourceVersionError,
    SerializeObjectSpecError,
    WrongObjectKindError,
)
from .graph import ConversionGraph

logger = logging.getLogger(__name__)

CONVERSION_REVIEW_API_VERSION = "apiextensions.k8s.io/v1"
CONVERSION_REVIEW_KIND = "ConversionReview"


def review_response(review, uid: str, converted=None, failure: Optional[str] = None) -> dict:
    api_version = None
    if isinstance(review, dict) and isinstance(review.get("apiVersion"), str):
        api_version = review["apiVersion"]
    if failure is None:
        result = {"status": "Success"}
    else:
        result = {"status": "Failure", "message": failure}
    return {
        "apiVersion": api_version or CONVERSION_REVIEW_API_VERSION,
        "kind": CONVERSION_REVIEW_KIND,
        "response": {
            "uid": uid,
            "result": result,
            "convertedObjects": converted if failure is None else [],
        },
    }


def request_uid(review) -> str:
    if isinstance(review, dict):
        request = review.get("request")
        if isinstance(request, dict) and isinstance(request.get("uid"), str):
            return request["uid"]
    return ""


class ResourceConverter:
    def __init__(self, schema: ResourceSchema):
        self.schema = schema
        self.graph = ConversionGraph(schema)
        self.codec = SpecCodec(schema)

    @property
    def kind(self) -> str:
        return self.schema.kind

    def convert_review(self, review) -> dict:
        uid = request_uid(review)
        try:
            request = self._parse_request(review)
            desired_text = request["desiredAPIVersion"]
            desired = self._parse_api_version(desired_text, ParseDesiredResourceVersionError)
            converted = [
                self.convert_object(obj, desired, desired_text) for obj in request["objects"]
            ]
        except ConversionError as e:
            logger.warning(
                f"Conversion of {self.kind} failed for request {uid or '<no uid>'} "
                f"({e.category} error, severity {e.severity}): {e}"
            )
            return review_response(review, uid, failure=str(e))
        logger.debug(f"Converted {len(converted)} {self.kind} objects to {desired_text}")
        if converted and self.schema.fields.is_deprecated(desired):
            logger.warning(self.schema.fields.deprecation_warning(desired))
        return review_response(review, uid, converted=converted)

    def convert_object(self, obj, desired: Version, desired_api_version: Optional[str] = None) -> dict:
        if not isinstance(obj, dict):
            raise ConvertReviewToRequestError("objects must be JSON objects")
        if "kind" not in obj:
            raise ObjectHasNoKindError()
        if "apiVersion" not in obj:
            raise ObjectHasNoApiVersionError()
        kind = obj["kind"]
        if not isinstance(kind, str):
            raise ObjectKindNotStringError(kind)
        api_version = obj["apiVersion"]
        if not isinstance(api_version, str):
            raise ObjectApiVersionNotStringError(api_version)
        if kind != self.kind:
            raise WrongObjectKindError(self.kind, kind)
        if "spec" not in obj:
            raise ObjectHasNoSpecError()

        current = self._parse_api_version(api_version, ParseCurrentResourceVersionError)
        if current == desired:
            return obj

        converter = self.graph.converter(current, desired)
        try:
            known, unknown = self.codec.decode(obj["spec"], current)
        except ShapeError as e:
            raise DeserializeObjectSpecError(kind, current, e) from e
        try:
            converted = converter(known)
        except Exception as e:
            raise SerializeObjectSpecError(kind, desired, f"conversion failed: {e}") from e
        try:
            spec = self.codec.encode(converted, desired, unknown)
        except ShapeError as e:
            raise SerializeObjectSpecError(kind, desired, e) from e

        result = dict(obj)
        result["apiVersion"] = desired_api_version or self.schema.api_version(desired)
        result["spec"] = spec
        metadata = obj.get("metadata")
        name = metadata.get("name") if isinstance(metadata, dict) else None
        logger.info(f"Converted {self.kind} {name or '<unnamed>'} {current} → {desired}")
        return result

    def _parse_request(self, review) -> dict:
        if not isinstance(review, dict):
            raise ConvertReviewToRequestError("review must be a JSON object")
        request = review.get("request")
        if not isinstance(request, dict):
            raise ConvertReviewToRequestError('review has no "request"')
        if not isinstance(request.get("uid"), str):
            raise ConvertReviewToRequestError('request has no string "uid"')
        if not isinstance(request.get("desiredAPIVersion"), str):
            raise ConvertReviewToRequestError('request has no string "desiredAPIVersion"')
        if not isinstance(request.get("objects"), list):
            raise ConvertReviewToRequestError('request has no "objects" list')
        return request

    def _parse_api_version(self, text: str, error) -> Version:
        try:
            api_version = ApiVersion.parse(text)
        except ParseVersionError as e:
            raise error(text, e) from e
        if api_version.group is not None and str(api_version.group) != self.schema.group:
            raise error(text, f"group {api_version.group} is not {self.schema.group}")
        if api_version.version not in self.schema.fields:
            raise error(text, f"the resource version {api_version.version} is not known")
        return api_version.version


def build_converters(schemas: Iterable[ResourceSchema]) -> Dict[str, ResourceConverter]:
    """Build the converter of every schema once, keyed by kind."""
    return {schema.kind: ResourceConverter(schema) for schema in schemas}
