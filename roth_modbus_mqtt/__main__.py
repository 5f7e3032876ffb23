"""Allow ``python -m roth_modbus_mqtt``."""

import sys

from .cli import main

sys.exit(main())
