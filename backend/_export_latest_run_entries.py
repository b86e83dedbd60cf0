import os
import json
import csv
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx


BASE_URL = os.environ.get("TT_API_BASE_URL", "http://localhost:8000")
SCHOOL_ID = os.environ.get("TT_SCHOOL_ID", "")


def _timetable_url(school_id: str) -> str:
    return f"{BASE_URL}/api/schools/{school_id}/timetable"


def _list_runs(client: httpx.Client, school_id: str) -> List[Dict[str, Any]]:
    resp = client.get(f"{_timetable_url(school_id)}/runs", params={"limit": 200})
    resp.raise_for_status()
    data = resp.json()
    runs = data.get("runs") if isinstance(data, dict) else data
    if not isinstance(runs, list):
        raise RuntimeError("Unexpected runs response format")
    return runs


def _pick_latest_run(runs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # Only SUCCEEDED runs ever write entries.
    succeeded = [r for r in runs if r.get("status") == "SUCCEEDED"]
    if not succeeded:
        return None
    succeeded.sort(key=lambda r: r.get("created_at", ""), reverse=True)
    return succeeded[0]


def _get_entries(client: httpx.Client, school_id: str, run_id: str) -> List[Dict[str, Any]]:
    resp = client.get(f"{_timetable_url(school_id)}/entries")
    resp.raise_for_status()
    data = resp.json()
    entries = data.get("entries") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise RuntimeError("Unexpected entries response format")
    return [e for e in entries if str(e.get("generated_by_run_id")) == str(run_id)]


def _export_json(entries: List[Dict[str, Any]], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(entries, f, ensure_ascii=False, indent=2)


def _export_csv(entries: List[Dict[str, Any]], path: str) -> None:
    # Header is the union of keys so entries without a room still line up.
    keys = set()
    for e in entries:
        keys.update(e.keys())
    header = sorted(keys)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header)
        writer.writeheader()
        for e in entries:
            writer.writerow(e)


def main() -> None:
    if not SCHOOL_ID:
        raise SystemExit("Set TT_SCHOOL_ID to the school to export.")
    outputs_dir = os.path.join(os.path.dirname(__file__), "outputs")
    os.makedirs(outputs_dir, exist_ok=True)
    with httpx.Client(follow_redirects=True) as client:
        runs = _list_runs(client, SCHOOL_ID)
        chosen = _pick_latest_run(runs)
        if chosen is None:
            print("No succeeded runs found to export.")
            return
        run_id = chosen.get("id")
        if not run_id:
            raise RuntimeError("Run identifier not found in run object")
        entries = _get_entries(client, SCHOOL_ID, run_id)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = os.path.join(outputs_dir, f"run_{run_id}_{ts}")
        json_path = f"{base}_entries.json"
        csv_path = f"{base}_entries.csv"
        _export_json(entries, json_path)
        _export_csv(entries, csv_path)
        print({
            "run_id": run_id,
            "entries_count": len(entries),
            "json_path": json_path,
            "csv_path": csv_path,
        })


if __name__ == "__main__":
    main()
