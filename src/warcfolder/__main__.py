"""
Entry point for running warcfolder as a module.
Usage: python -m warcfolder [command]
"""
from .cli import app

if __name__ == "__main__":
    app()
