import importlib
import logging
import pkgutil

from fastapi import FastAPI, APIRouter

logger = logging.getLogger(__name__)

# Routers with catch-all path segments ("/{session_id}/...") go last.
_LAST = ("sessions",)


def register_routers(app: FastAPI) -> None:
    package = importlib.import_module(__name__)

    module_names = sorted(
        (name for _, name, is_pkg in pkgutil.iter_modules(package.__path__) if not is_pkg),
        key=lambda name: (name in _LAST, name),
    )

    for module_name in module_names:
        module = importlib.import_module(f"{__name__}.{module_name}")
        router = getattr(module, "router", None)

        if not isinstance(router, APIRouter):
            continue

        app.include_router(router)
        logger.debug("Registered router %s", module_name)
