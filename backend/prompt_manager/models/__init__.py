from .enums import MembershipTier  # noqa: F401
from .tables import Customer, Prompt  # noqa: F401
