# API Routes Module
from tierwise.api.routes import (
    billing,
    webhooks,
)

__all__ = [
    "billing",
    "webhooks",
]
