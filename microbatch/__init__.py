__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'microbatch'
__license__ = 'MIT'
# Placeholder, modified by dynamic-versioning.
__version__ = "0.0.0"

from .binder import *
from .catalog import *
from .commands import *
from .dispatcher import *
from .engine import *
from .faults import *
from .formatter import *
from .logs import *
from .parameters import *
from .resolver import *
from .utils import Unset, coalesce

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

# Placeholder, modified by dynamic-versioning.
version_info = VersionInfo(0, 0, 0, "final", 0, "")

__all__ = (
    "__path__",
    "__title__",
    "__license__",
    "__version__",
    "version_info",
    "Unset",
    "coalesce",
)

# Load the exposed API of every layer, leaf-first
__all__ += parameters.__all__  # type: ignore[attr-defined]
__all__ += commands.__all__  # type: ignore[attr-defined]
__all__ += catalog.__all__  # type: ignore[attr-defined]
__all__ += resolver.__all__  # type: ignore[attr-defined]
__all__ += binder.__all__  # type: ignore[attr-defined]
__all__ += dispatcher.__all__  # type: ignore[attr-defined]
__all__ += formatter.__all__  # type: ignore[attr-defined]
__all__ += engine.__all__  # type: ignore[attr-defined]
__all__ += logs.__all__  # type: ignore[attr-defined]
__all__ += faults.__all__  # type: ignore[attr-defined]
