from .webhook import router as webhook_router

ROUTERS = (webhook_router,)

__all__ = ["ROUTERS", "webhook_router"]
