import logging
import typer
from vendor_intel.core.config_loader import CONFIG
from vendor_intel.core.coordinator import investigation_app
from vendor_intel.core.enrichment_oracle import oracle_app
from vendor_intel.core.investigation_store import history_app
from vendor_intel.core.logger_config import setup_logging
from vendor_intel.core.pii_scanner import privacy_app


def get_cli_app():
    """
    Creates the Typer application with every sub-command registered.
    Used both at runtime and by the CLI tests.
    """
    app = typer.Typer(
        name="Vendor Intel",
        help="Vendor-onboarding fraud and compliance risk scoring.",
        add_completion=False,
        rich_markup_mode="markdown",
    )

    app.add_typer(
        investigation_app,
        name="investigate",
        help="Run and inspect vendor risk investigations.",
    )
    app.add_typer(history_app, name="history", help="Browse stored investigations.")
    app.add_typer(privacy_app, name="privacy", help="Scan submissions for sensitive PII.")
    app.add_typer(oracle_app, name="oracle", help="Manage the AI enrichment oracle.")

    @app.command(name="version", help="Show Vendor Intel version.")
    def version():
        """Show Vendor Intel version."""
        typer.echo(f"{CONFIG.app_name} v{CONFIG.version}")

    return app


app = get_cli_app()


def main():
    """
    Main entry point for the Vendor Intel CLI application.
    """
    level = logging.getLevelName(CONFIG.log_level.upper())
    # getLevelName returns a "Level X" string for unknown names.
    setup_logging(default_level=level if isinstance(level, int) else logging.INFO)
    app()


if __name__ == "__main__":
    main()
