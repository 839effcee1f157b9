"""Allow ``python -m filesync``."""

from filesync.cli import main

main()
