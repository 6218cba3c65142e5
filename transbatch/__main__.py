"""Module entrypoint for running transbatch as ``python -m transbatch``."""

from __future__ import annotations

from transbatch.cli import main


if __name__ == "__main__":
    main()
