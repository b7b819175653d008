"""Entry point for `python -m figmacase`."""

from figmacase.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
