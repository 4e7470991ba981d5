"""Allow ``python -m vmcreate``."""

from vmcreate.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
