#!/usr/bin/env python3
"""
Poll the server the way a box does: heartbeat, fetch a command, "execute" it
and clear it. Handy for watching the unlock flow without hardware.
"""

import argparse
import time

import requests

from lostfound.shared import load_config

config = load_config()

# Configuration
BASE_URL = f"http://127.0.0.1:{config.network.port}"
DEVICE_ID = "BOX_A1"
POLL_INTERVAL = config.devices.poll_interval  # seconds
PING_EVERY = 10  # polls between heartbeats


def ping(session, base_url, device_id):
    response = session.post(f"{base_url}/arduino/ping", params={"device_id": device_id}, timeout=5)
    if response.status_code == 404:
        print(f"Box {device_id} is not registered on the server")
    elif response.ok:
        print(f"Heartbeat acknowledged at {response.json()['data']['timestamp']}")
    return response.ok


def fetch_command(session, base_url, device_id):
    response = session.get(f"{base_url}/arduino/command", params={"device_id": device_id}, timeout=5)
    response.raise_for_status()
    return response.json()["data"]


def clear_command(session, base_url, device_id):
    response = session.post(f"{base_url}/arduino/clear", params={"device_id": device_id}, timeout=5)
    response.raise_for_status()
    return response.json()["data"]["cleared"]


def report_status(session, base_url, device_id, status):
    response = session.post(
        f"{base_url}/arduino/status",
        json={"device_id": device_id, "status": status},
        timeout=5,
    )
    return response.ok


def run(base_url, device_id, interval):
    session = requests.Session()
    polls = 0

    if not ping(session, base_url, device_id):
        return

    while True:
        try:
            if polls % PING_EVERY == 0:
                ping(session, base_url, device_id)

            data = fetch_command(session, base_url, device_id)
            command = data.get("command")
            if command:
                print(f"Received '{command}' (issued {data['age_seconds']}s ago)")
                # A real box drives the lock here
                status = "occupied" if command == "lock" else "available"
                report_status(session, base_url, device_id, status)
                print(f"Cleared: {clear_command(session, base_url, device_id)}")

        except requests.RequestException as e:
            print(f"Poll failed: {e}")

        polls += 1
        time.sleep(interval)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Emulate a box polling the server")
    parser.add_argument("--url", default=BASE_URL, help="Server base URL")
    parser.add_argument("--device-id", default=DEVICE_ID, help="Box id to poll as")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL, help="Seconds between polls")
    args = parser.parse_args()

    try:
        run(args.url, args.device_id, args.interval)
    except KeyboardInterrupt:
        print("Stopped")
