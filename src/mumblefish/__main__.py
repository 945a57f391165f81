"""
Entry point for the MumbleFish application.

Run with: python -m mumblefish [callback-url]
Or: mumblefish (if installed as package)
"""

import sys


def main() -> int:
    """Main entry point."""
    from .app import run_app
    return run_app(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
