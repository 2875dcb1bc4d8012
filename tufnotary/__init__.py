# Copyright New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""Trust data publishing for container image repositories
"""

import tufnotary.api
import tufnotary.repository

# This value is used in the requests user agent.
__version__ = "1.0.0"
__all__ = [
    tufnotary.api.__name__,
    tufnotary.repository.__name__,
]
