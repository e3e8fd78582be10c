"""Entry point for CLI invocation via python -m."""

from Typo3Nix.ExtensionCatalog.cli import app

if __name__ == "__main__":
    app(prog_name="typo3nix-extensions")
