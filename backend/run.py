#!/usr/bin/env python3
# backend/run.py
"""
Local API server for the IqraQuest payouts service.
Serves the webhook endpoints, /health and /metrics with auto-reload.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "local")

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"🚀 Starting IqraQuest payouts API (ENVIRONMENT={os.environ['ENVIRONMENT']})…")
    print(f"🔔 Webhooks: http://localhost:{port}/api/v1/webhooks/{{paystack,stripe,paypal}}")
    print(f"📊 Metrics:  http://localhost:{port}/metrics")

    uvicorn.run("iqraquest.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
