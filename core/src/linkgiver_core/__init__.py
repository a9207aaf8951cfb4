from linkgiver_core.config import CoreConfig, load_core_config
from linkgiver_core.home import LinkGiverPaths, ensure_linkgiver_layout, resolve_linkgiver_home

__version__ = "0.1.0"

__all__ = [
    "CoreConfig",
    "LinkGiverPaths",
    "__version__",
    "ensure_linkgiver_layout",
    "load_core_config",
    "resolve_linkgiver_home",
]
