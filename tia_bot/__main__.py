"""Allow running as `python -m tia_bot`."""

from tia_bot.cli.commands import app

if __name__ == "__main__":
    app()
