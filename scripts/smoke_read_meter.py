"""Upload a meter photo to a running server and, if needed, correct it by hand.

Usage:
  python scripts/seed_local_data.py            # prints building/room ids
  python scripts/smoke_read_meter.py photo.jpg <buildingId> <roomId> [manual value]
"""
import os
import sys

import requests

BASE = os.getenv("METER_API_BASE", "http://localhost:8000")


def login(username, password):
    r = requests.post(f"{BASE}/api/auth/login", json={"username": username, "password": password}, timeout=10)
    r.raise_for_status()
    return r.json()["access_token"]


def main(photo, building_id, room_id, manual_value=None):
    token = login(os.getenv("METER_USER", "demo"), os.getenv("METER_PASSWORD", "demo1234"))
    headers = {"Authorization": f"Bearer {token}"}

    with open(photo, "rb") as f:
        r = requests.post(
            f"{BASE}/api/read-meter",
            files={"file": (os.path.basename(photo), f, "image/jpeg")},
            data={"buildingId": building_id, "roomId": room_id},
            headers=headers,
            timeout=90,
        )
    print(f"Status Code: {r.status_code}")
    print(f"Response: {r.text}")
    body = r.json()

    if not body.get("success") and body.get("imageUrl") and manual_value:
        r = requests.patch(
            f"{BASE}/api/readings/correction",
            json={"imageUrl": body["imageUrl"], "manualValue": manual_value},
            headers=headers,
            timeout=10,
        )
        print(f"Correction {r.status_code}: {r.text}")


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)
    main(*sys.argv[1:5])
