#!/usr/bin/env python3
"""
Smoke test for the PDB data API.
Hits /api/health and each /api/pdb-data mode against a running server.

Usage:
    # Ensure server is running first:
    # cd backend && uvicorn server:app --host 127.0.0.1 --port 8000

    # Then run this script:
    python scripts/smoke_test_backend.py

    # Or specify custom base URL and ids:
    API_BASE_URL=http://localhost:8000 SMOKE_UNIPROT_ID=P04637 python scripts/smoke_test_backend.py
"""

import os
import sys
import requests

API_BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
UNIPROT_ID = os.getenv("SMOKE_UNIPROT_ID", "P04637")
PDB_IDS = os.getenv("SMOKE_PDB_IDS", "1tup 2ocj")


def check_health():
    """Check /api/health endpoint"""
    print("\n🏥 Checking /api/health...")
    try:
        response = requests.get(f"{API_BASE}/api/health", timeout=5)
        assert response.status_code == 200, f"Expected 200, got {response.status_code}"
        assert response.json().get("ok") is True, "Health check should return ok: true"
        print("  ✅ Health check passed")
        return True
    except requests.exceptions.ConnectionError:
        print(f"  ❌ Cannot connect to {API_BASE}")
        print(f"  💡 Make sure the server is running:")
        print(f"     cd backend && uvicorn server:app --host 127.0.0.1 --port 8000")
        return False
    except Exception as e:
        print(f"  ❌ Health check failed: {e}")
        return False


def check_summary():
    """Check alignment count for a UniProt id"""
    print(f"\n🔢 Checking summary for {UNIPROT_ID}...")
    try:
        response = requests.get(f"{API_BASE}/api/pdb-data",
                                params={"uniprotId": UNIPROT_ID, "type": "summary"}, timeout=30)
        assert response.status_code == 200, f"Expected 200, got {response.status_code}"
        count = response.json()["alignmentCount"]
        assert isinstance(count, int), f"alignmentCount should be int, got {type(count)}"
        print(f"  ✅ Summary passed ({count} alignments)")
        return True
    except Exception as e:
        print(f"  ❌ Summary failed: {e}")
        return False


def check_alignments_and_positions():
    """List alignments, then map the first alignment's start position"""
    print(f"\n🧬 Checking alignments for {UNIPROT_ID}...")
    try:
        response = requests.get(f"{API_BASE}/api/pdb-data", params={"uniprotId": UNIPROT_ID}, timeout=30)
        assert response.status_code == 200, f"Expected 200, got {response.status_code}"
        alignments = response.json()
        assert isinstance(alignments, list), f"Expected a list, got {type(alignments)}"
        print(f"  ✅ Alignment list passed ({len(alignments)} alignments)")

        if not alignments:
            print("  ⚠️  No alignments imported; skipping position map")
            return True

        first = alignments[0]
        response = requests.post(
            f"{API_BASE}/api/pdb-data",
            data={"alignments": str(first["alignmentId"]), "positions": str(first["uniprotFrom"])},
            timeout=30,
        )
        assert response.status_code == 200, f"Expected 200, got {response.status_code}"
        position_map = response.json()["positionMap"]
        print(f"  ✅ Position map passed ({len(position_map)} positions mapped)")
        return True
    except Exception as e:
        print(f"  ❌ Alignment check failed: {e}")
        import traceback
        traceback.print_exc()
        return False


def check_pdb_info():
    """Fetch header info for a few PDB ids (hits the remote service on cache miss)"""
    print(f"\n📄 Checking PDB info for {PDB_IDS}...")
    try:
        response = requests.get(f"{API_BASE}/api/pdb-data", params={"pdbIds": PDB_IDS}, timeout=60)
        assert response.status_code == 200, f"Expected 200, got {response.status_code}"
        data = response.json()
        for pdb_id, info in data.items():
            if info is None:
                print(f"  ⚠️  {pdb_id}: not available")
            else:
                print(f"  ✅ {pdb_id}: {info['title'][:60]}")
        return True
    except Exception as e:
        print(f"  ❌ PDB info failed: {e}")
        return False


def main():
    """Run all smoke checks"""
    print("=" * 60)
    print("💨 PDB Data API Smoke Test")
    print("=" * 60)
    print(f"Testing API at: {API_BASE}")

    if not check_health():
        print("\n❌ Server is not reachable. Please start it first.")
        return 1

    checks = [
        check_summary,
        check_alignments_and_positions,
        check_pdb_info,
    ]

    passed = sum(1 for check in checks if check())
    failed = len(checks) - passed

    print("\n" + "=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
