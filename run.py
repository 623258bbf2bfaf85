#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Run script for spotiwidget.

This script provides a convenient way to run the application
directly from the source directory.
"""

import sys
from pathlib import Path

# Add the parent directory to the path so we can import the package
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))

from spotiwidget.main import main_cli

if __name__ == "__main__":
    main_cli()
