"""Module entrypoint for `python -m fleece`."""

from __future__ import annotations

from fleece.cli import main_entry

if __name__ == "__main__":
    main_entry()
