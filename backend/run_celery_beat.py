#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Local Celery beat runner.
Schedules the auto-payout run and the nightly wallet sweep.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "local")

if __name__ == "__main__":
    print("⏰ Starting Celery beat (ENVIRONMENT=" + os.environ["ENVIRONMENT"] + ")…")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "iqraquest.tasks.celery_app",
        "beat",
        "--loglevel=info",
    ]

    subprocess.run(cmd)
