# Settings used by pytest (pytest-django). sacristia.settings detects test mode
# via "test" in sys.argv, which holds under `manage.py test` but not pytest.
import sys

if "test" not in sys.argv:
    sys.argv.append("test")

from .settings import *  # noqa: E402,F401,F403
