"""Main entry point when executing motionkit as a package.

This allows running the package using python -m motionkit.
"""

from motionkit.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
