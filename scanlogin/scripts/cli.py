"""
A simple CLI for running the server.
"""

import sys

import uvicorn


def main():
    try:
        run = sys.argv[1] == "run"
    except IndexError:
        run = False

    if not run:
        print("Only supported command is scanlogin run")
        exit(1)

    from scanlogin.api.dependencies import SETTINGS

    settings = SETTINGS()

    uvicorn.run(
        "scanlogin.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )
