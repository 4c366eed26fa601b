"""Errors raised while building a versioned schema.

These indicate an invalid schema declaration rather than bad input, so they
are raised once at startup and never while serving a conversion.
"""


class SchemaError(Exception):
    pass


class VersionNotDeclaredError(SchemaError):
    def __init__(self, member, version):
        self.member = member
        self.version = version
        super().__init__(
            f"member {member!r} declares a change in version {version}, "
            f"which is not declared by the resource"
        )


class ChainOrderError(SchemaError):
    """Declarations of one member are duplicated or not in a valid order."""


class NameCollisionError(SchemaError):
    def __init__(self, version, name, members):
        self.version = version
        self.name = name
        self.members = members
        super().__init__(
            f"members {', '.join(repr(m) for m in members)} all resolve to the "
            f"name {name!r} in version {version}"
        )


class DuplicateVersionError(SchemaError):
    pass


class EmptyVersionSetError(SchemaError):
    pass
