"""Allow running as ``python -m zap``."""

from zap.cli import main

main()
