from .sessions import sessions_router
from .metrics import router_metrics
from .compilation import compilation_router

__all__ = ["sessions_router", "router_metrics", "compilation_router"]
