"""Entry point for running gpuwatch as a module.

This allows running the CLI with:
    python -m gpuwatch
"""

from gpuwatch.cli.main import main

if __name__ == "__main__":
    main()
