"""Entry point for ``python -m peerlink``."""

from peerlink.cli import main

if __name__ == "__main__":
    main()
