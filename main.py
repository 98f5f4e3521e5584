"""Dev launcher for Where Are We? Starts the backend (and the frontend if present) in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")
FRONTEND_PORT = os.getenv("FRONTEND_PORT", "13014")


def main():
    parser = argparse.ArgumentParser(description="Where Are We? dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Config directory (default: ./data)")
    parser.add_argument("--backend-only", action="store_true",
                        help="Do not start the frontend dev server")
    args = parser.parse_args()

    # Build env for subprocesses so backend picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    ))

    frontend = ROOT / "frontend"
    if not args.backend_only and frontend.is_dir():
        print(f"Starting frontend on http://localhost:{FRONTEND_PORT} ...")
        procs.append(subprocess.Popen(
            ["bun", "run", "dev", "--port", FRONTEND_PORT],
            cwd=frontend, env=env,
        ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
