"""Allow ``python -m guidebase.cli`` execution."""

from guidebase.cli.guides import main

main()
