"""
Module entry point for: python -m pool_parser

Allows running the parser directly as a module:
    python -m pool_parser parse <docx_path> [options]
    python -m pool_parser info <docx_path>
    python -m pool_parser serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
