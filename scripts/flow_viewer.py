"""Helper entrypoint for running the viewer CLI via `python scripts/flow_viewer.py`."""

from cli.viewer import app

if __name__ == "__main__":
    app(prog_name="flowwarden-viewer")
