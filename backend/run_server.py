"""Development entry point for the Disease Explorer API.

Usage:
    python run_server.py --port 8000
"""

import argparse


def main() -> None:
    parser = argparse.ArgumentParser(description="Disease Explorer Backend")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Interface to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    import uvicorn
    from disease_explorer.main import app

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
