"""
Errors raised while serving a ConversionReview.

All of them end up in the body of the review response with
``result.status = "Failure"``; the transport always answers with success.
``severity`` is an HTTP-like code used only for logging.
"""

REQUEST = "request"
DATA = "data"
INTERNAL = "internal"


class ConversionError(Exception):
    category = INTERNAL
    severity = 500


class ConvertReviewToRequestError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self, reason):
        super().__init__(f"failed to convert ConversionReview to ConversionRequest: {reason}")


class ObjectHasNoSpecError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self):
        super().__init__('the object sent for conversion has no "spec" field')


class ObjectHasNoKindError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self):
        super().__init__('the object sent for conversion has no "kind" field')


class ObjectHasNoApiVersionError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self):
        super().__init__('the object sent for conversion has no "apiVersion" field')


class ObjectKindNotStringError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self, kind):
        self.kind = kind
        super().__init__(
            f'the "kind" field of the object sent for conversion is not a string: {kind!r}'
        )


class ObjectApiVersionNotStringError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self, api_version):
        self.api_version = api_version
        super().__init__(
            f'the "apiVersion" field of the object sent for conversion is not a string: {api_version!r}'
        )


class WrongObjectKindError(ConversionError):
    category = REQUEST
    severity = 400

    def __init__(self, expected_kind, sent_kind):
        self.expected_kind = expected_kind
        self.sent_kind = sent_kind
        super().__init__(
            f'asked to convert the kind "{sent_kind}", but only objects of kind '
            f'"{expected_kind}" can be converted'
        )


class ParseCurrentResourceVersionError(ConversionError):
    category = DATA
    severity = 422

    def __init__(self, version, reason):
        self.version = version
        super().__init__(f'failed to parse current resource version "{version}": {reason}')


class ParseDesiredResourceVersionError(ConversionError):
    category = DATA
    severity = 422

    def __init__(self, version, reason):
        self.version = version
        super().__init__(f'failed to parse desired resource version "{version}": {reason}')


class NoConversionPathError(ConversionError):
    category = DATA
    severity = 422

    def __init__(self, source, destination):
        self.source = source
        self.destination = destination
        super().__init__(f"no conversion path from {source} to {destination}")


class DeserializeObjectSpecError(ConversionError):
    def __init__(self, kind, version, reason):
        self.kind = kind
        super().__init__(f'failed to deserialize object of kind "{kind}" as {version}: {reason}')


class SerializeObjectSpecError(ConversionError):
    def __init__(self, kind, version, reason):
        self.kind = kind
        super().__init__(f'failed to serialize object of kind "{kind}" as {version}: {reason}')
