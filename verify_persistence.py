import time
import subprocess
import httpx
import sys
import os
import signal
import uuid
from decimal import Decimal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )

def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()

def ensure_account(code, name, account_type):
    """Create the account, or look it up if an earlier run already did."""
    resp = httpx.post(f"{BASE_URL}{API_PREFIX}/accounts", json={
        "code": code, "name": name, "account_type": account_type
    })
    if resp.status_code == 201:
        return resp.json()
    if resp.status_code == 409:
        accounts = httpx.get(f"{BASE_URL}{API_PREFIX}/accounts").json()
        return next(a for a in accounts if a["code"] == code)
    raise RuntimeError(f"Account setup failed: {resp.status_code} {resp.text}")

def get_balance(account_id):
    resp = httpx.get(f"{BASE_URL}{API_PREFIX}/accounts/{account_id}/balance")
    resp.raise_for_status()
    return Decimal(resp.json()["balance"])

def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise RuntimeError("Server start failed")

        # 2. Post a journal voucher
        print("\n--- [Step 2] Posting Journal Voucher (Persistence Test) ---")
        cash = ensure_account("1000", "Cash", "ASSET")
        capital = ensure_account("3000", "Owner's Capital", "EQUITY")
        before = get_balance(cash["id"])

        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/transactions", json={
            "reference": f"persist-{uuid.uuid4().hex[:12]}",
            "description": "Persistence check",
            "lines": [
                {"account_id": cash["id"], "side": "DEBIT", "amount": "12.34"},
                {"account_id": capital["id"], "side": "CREDIT", "amount": "12.34"},
            ],
        })
        if resp.status_code != 201:
            print(f"❌ Posting Failed: {resp.status_code} {resp.text}")
            raise RuntimeError("Posting failed")
        transaction_id = resp.json()["id"]
        expected = before + Decimal("12.34")
        print(f"✅ Transaction {transaction_id} posted, cash balance now {expected}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        # 4. Re-read the ledger
        print("\n--- [Step 5] Reading Ledger (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/transactions/{transaction_id}")
        if resp.status_code != 200:
            print(f"❌ Transaction Missing (Persistence Issue?): {resp.status_code} {resp.text}")
            raise RuntimeError("Transaction lost after restart")
        print("✅ Transaction Persisted")

        actual = get_balance(cash["id"])
        if actual == expected:
            print(f"✅ Balance Verified: {actual}")
        else:
            print(f"❌ Balance Mismatch: expected {expected}, got {actual}")
            raise RuntimeError("Balance mismatch after restart")

    finally:
        print("\n--- [Step 6] Stopping Server ---")
        stop_server(proc2)

if __name__ == "__main__":
    run_verification()
