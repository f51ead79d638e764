import importlib
import logging
import pkgutil

from fastapi import FastAPI, APIRouter

logger = logging.getLogger(__name__)


def register_routers(app: FastAPI):
    """Include the ``router`` of every module in this package, alphabetically."""
    package = importlib.import_module(__name__)

    for _, module_name, is_pkg in sorted(pkgutil.iter_modules(package.__path__), key=lambda m: m.name):
        if is_pkg:
            continue

        module = importlib.import_module(f"{__name__}.{module_name}")
        router = getattr(module, "router", None)

        if not isinstance(router, APIRouter):
            continue

        app.include_router(router)
        logger.debug("Registered router %s (%s)", module_name, router.prefix or "/")
