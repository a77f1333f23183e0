#!/usr/bin/env python3
"""
healthcheck.py
- Healthcheck script for Docker HEALTHCHECK / Kubernetes exec probes.
- Returns exit code 0 if the mirror loop is bootstrapping or syncing, 1 if not.
"""

import os
import sys

import requests

from labelmirror.core.constants import DEFAULT_HEALTH_PORT


def check(url, timeout=3):
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        print(f"❌ Healthcheck failed: {e}")
        return False
    if response.status_code != 200:
        print(f"❌ Healthcheck failed: {response.status_code} {response.text.strip()}")
        return False
    return True


def main():
    port = os.getenv("HEALTH_PORT", str(DEFAULT_HEALTH_PORT))
    url = os.getenv("HEALTH_URL", f"http://127.0.0.1:{port}/healthz")
    sys.exit(0 if check(url) else 1)


if __name__ == "__main__":
    main()
