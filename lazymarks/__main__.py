"""Module entrypoint for ``python -m lazymarks``."""

from .cli import main


if __name__ == "__main__":
    main()
