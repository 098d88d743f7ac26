"""
Start the confirmation desk API.

Usage:
    python -m tradeconf                  # localhost:8000
    python -m tradeconf --port 8080
    python -m tradeconf --reload
"""
import argparse
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Start the trade confirmation desk API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()
    uvicorn.run("tradeconf.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
