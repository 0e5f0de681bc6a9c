"""Allow ``python -m trusttls``."""

from trusttls.cli.main import main

main()
