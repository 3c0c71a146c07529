"""Entry point for running gitritual via python -m gitritual"""

from .cli import main

if __name__ == "__main__":
    main()
