from .codec import ShapeError, SpecCodec
from .converters import register_converter, resolve_converter, UnknownConverterError
from .descriptor import DescriptorError, load_descriptor, load_descriptors, schema_from_dict
from .errors import *  # noqa: F401,F403
from .graph import ConversionGraph
from .review import ResourceConverter, build_converters, review_response
