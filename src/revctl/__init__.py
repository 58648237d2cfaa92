# All types a user would care about are made available in the top level package.
# A user should never have to import anything from sub modules.

from .exceptions import *  # noqa: F403 public API
from .resources import *  # noqa: F403 public API
from .cache import *  # noqa: F403 public API
from .source import *  # noqa: F403 public API
from .controller import *  # noqa: F403 public API
from .client import *  # noqa: F403 public API
from .workqueue import *  # noqa: F403 public API
from .revision import *  # noqa: F403 public API
from .config import ChildSettings, QueueSettings, Settings
from .manager import Manager
