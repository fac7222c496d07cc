from .router import internal_router, router

all_router = [
    router,
    internal_router,
]
