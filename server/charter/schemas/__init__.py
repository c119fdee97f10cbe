"""Pydantic schemas for request/response validation."""

from .admin import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .invoice import *  # noqa: F403
from .party import *  # noqa: F403
from .passenger import *  # noqa: F403
from .payment import *  # noqa: F403
from .quote import *  # noqa: F403
from .rating import *  # noqa: F403
from .request import *  # noqa: F403
