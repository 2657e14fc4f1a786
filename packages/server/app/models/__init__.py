# SQLModel definitions, imported here so metadata is populated before create_all.
from .base import IDMixin, SoftDeleteMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .membership import OrganizationMembership  # noqa: F401
