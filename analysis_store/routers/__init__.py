# Routers package
from . import analysis_router
from . import store_router

__all__ = [
    "analysis_router",
    "store_router",
]
