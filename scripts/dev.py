#!/usr/bin/env python3
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / 'backend'


def spawn_api() -> subprocess.Popen:
    env = os.environ.copy()
    # Local runs against SQLite need the tables created up front.
    if env.get('DATABASE_URL', '').startswith('sqlite'):
        env.setdefault('CREATE_SCHEMA_ON_STARTUP', 'true')

    cmd = [
        sys.executable,
        '-m',
        'uvicorn',
        'assessment_engine.main:app',
        '--host',
        '0.0.0.0',
        '--port',
        os.environ.get('PORT', '8001'),
        '--reload',
    ]
    return subprocess.Popen(cmd, cwd=str(BACKEND_DIR), env=env)


def terminate(process: subprocess.Popen) -> None:
    if process.poll() is None:
        process.terminate()

    time.sleep(1)
    if process.poll() is None:
        process.kill()


def main() -> int:
    process = spawn_api()

    def handle_signal(_sig: int, _frame: object) -> None:
        terminate(process)
        raise SystemExit(0)

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    while process.poll() is None:
        time.sleep(0.5)
    return process.returncode or 0


if __name__ == '__main__':
    raise SystemExit(main())
