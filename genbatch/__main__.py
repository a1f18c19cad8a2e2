"""Main entry point when executing genbatch as a package.

This allows running the package using python -m genbatch.
"""

from genbatch.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
