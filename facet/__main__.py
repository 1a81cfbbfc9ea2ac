"""Run the command line with `python -m facet`."""
import sys

from .cli import main

sys.exit(main())
