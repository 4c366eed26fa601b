from .version import (
    ApiVersion,
    Group,
    InvalidFormatError,
    Level,
    NumericOverflowError,
    ParseGroupError,
    ParseVersionError,
    UnknownLevelIdentifierError,
    Version,
    compare,
    format_version,
    parse_version,
)
from .changes import (
    NOT_PRESENT,
    Added,
    Addition,
    Deprecated,
    Deprecation,
    ItemStatus,
    NoChange,
    NotPresent,
    Rename,
    Renamed,
    Retype,
    Retyped,
)
from .chain import ItemVersionChain, floor, get_neighbors
from .errors import (
    ChainOrderError,
    DuplicateVersionError,
    EmptyVersionSetError,
    NameCollisionError,
    SchemaError,
    VersionNotDeclaredError,
)
from .schema import (
    FieldShape,
    ResourceSchema,
    SchemaMember,
    SchemaVersionSet,
    VersionDefinition,
    VersionShape,
)
