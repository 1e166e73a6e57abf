#!/usr/bin/env python3
"""
Print Agent - local HTTP/WebSocket bridge between a POS front-end and
receipt printers. Equivalent to the `print-agent` console script.
"""

import sys

from print_agent.runner import main

if __name__ == "__main__":
    sys.exit(main())
