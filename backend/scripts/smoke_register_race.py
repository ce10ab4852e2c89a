# backend/scripts/smoke_register_race.py
"""
Fire two bulk generations for next year at a running server at once.
Expect exactly one 200 and one 409 (already generated, or busy).

Run against a throwaway database: a passing run leaves next year generated.
"""
import sys
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor, as_completed
import requests

BASE = "http://127.0.0.1:8000"


def call_generate(year):
    try:
        r = requests.post(
            f"{BASE}/register-numbers/generate",
            json={"target_year": year, "confirm_generation": True},
            headers={"X-Acting-User": "smoke-race"},
            timeout=60,
        )
        ct = r.headers.get("content-type", "")
        body = r.json() if ct.startswith("application/json") else r.text
        return r.status_code, body
    except requests.RequestException as e:
        return -1, str(e)


def main():
    year = datetime.now().year + 1
    with ThreadPoolExecutor(max_workers=2) as ex:
        futs = [ex.submit(call_generate, year) for _ in range(2)]
        results = [f.result() for f in as_completed(futs)]
    ok = sum(1 for s, _ in results if s == 200)
    refused = sum(1 for s, _ in results if s == 409)
    print("Results:", results)

    status = requests.get(f"{BASE}/register-numbers/status/{year}", timeout=30).json()
    print("Status:", status)

    if ok == 1 and refused == 1:
        print("✅ RACE SMOKE OK: one generation, one conflict")
        return 0
    print("❌ RACE SMOKE FAIL")
    return 1


if __name__ == "__main__":
    sys.exit(main())
