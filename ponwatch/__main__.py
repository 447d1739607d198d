"""Allow ``python -m ponwatch``."""

from ponwatch.cli import main

main()
