"""
Follow a server-side import job until it finishes, printing its log.
"""

from __future__ import annotations

import argparse
import json
import threading
from typing import Any

from app.polling.status_client import ImportStatusClient, build_job_watcher


def main() -> int:
    parser = argparse.ArgumentParser(description="Poll an irradiance import job until it is terminal.")
    parser.add_argument("job_id", help="Import job id returned by POST /irradiance/imports.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=3600.0,
        help="Give up after this many seconds.",
    )
    args = parser.parse_args()

    client = ImportStatusClient()
    done = threading.Event()
    result: dict[str, Any] = {}

    def on_complete(payload: dict[str, Any]) -> None:
        result.update(payload)
        done.set()

    with build_job_watcher(client) as watcher:
        watcher.watch(args.job_id, on_complete)
        if not done.wait(args.timeout):
            print(json.dumps({"job_id": args.job_id, "status": "timeout"}, indent=2))
            return 2

    for entry in client.job_logs(args.job_id):
        print(f"{entry.get('timestamp')} [{entry.get('level')}] {entry.get('message')}")
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("status") == "success" else 1


if __name__ == "__main__":
    raise SystemExit(main())
