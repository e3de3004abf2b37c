"""Entry point for `python -m lineage_engine.cli` and `lineage-engine` console script."""

from __future__ import annotations

from lineage_engine.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
