#!/usr/bin/env python3

import json
import logging
import sys

from batchgcd import pipeline
from batchgcd.errors import BatchGCDError

LOGGER = logging.getLogger("batchgcd")

ACTION_LUT = {
    "build_tree": pipeline.build_tree,
    "find_weak_keys": pipeline.find_weak_keys,
    "batch_gcd": pipeline.batch_gcd,
    "cross_check": pipeline.cross_check,
}

def dispatch_action(action, arguments, action_lut):
    """
    Mapped die action auf die korrespondierende Funktion.
    Fehler werden als expliziter Ergebniswert mit Fehlerart und Kontext zurückgegeben.
    """
    mapped_action = action_lut.get(action)
    if mapped_action is None:
        return {"error": "Unknown action"}
    try:
        return mapped_action(arguments)
    except BatchGCDError as e:
        LOGGER.error("Fatal error in action %s: %s", action, e)
        return e.to_reply()
    except Exception as e:
        LOGGER.exception("Action %s failed", action)
        return {"error": f"Action failed: {e}"}

def run_jobs(jobs, action_lut) -> bool:
    """
    Führt alle Jobs aus und gibt pro Job eine JSON-Zeile aus.
    Rückgabe: True, wenn kein Job fehlgeschlagen ist.
    """
    ok = True
    for uuid, content in jobs.items():
        if not isinstance(content, dict):
            print(json.dumps({"id": uuid, "reply": {"error": "Invalid job"}}))
            ok = False
            continue
        action = content.get("action")
        arguments = content.get("arguments", {})
        response = dispatch_action(action, arguments, action_lut)
        print(json.dumps({"id": uuid, "reply": response}))
        if "error" in response:
            ok = False
    return ok

def main(argv=None):
    """
    Ohne Argument läuft das komplette Audit auf data/moduli.csv.
    Mit einer JSON-Datei werden deren Jobs nacheinander ausgeführt.
    """
    if argv is None:
        argv = sys.argv[1:]
    logging.basicConfig(level=logging.INFO, stream=sys.stderr,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if len(argv) > 1:
        print("Syntax: python3 audit.py [<json_filename>]", file=sys.stderr)
        return 1

    if not argv:
        jobs = {"audit": {"action": "batch_gcd", "arguments": {}}}
    else:
        json_jobs = argv[0]
        try:
            with open(json_jobs, 'r', encoding='utf-8') as file:
                data = json.load(file)
        except FileNotFoundError:
            print(f"File {json_jobs} not found", file=sys.stderr)
            return 1
        except json.decoder.JSONDecodeError as e:
            print(f"Invalid JSON: {e}", file=sys.stderr)
            return 1
        # Jobs entweder unter "jobs" oder direkt auf oberster Ebene
        jobs = data.get("jobs", data) if isinstance(data, dict) else None
        if not isinstance(jobs, dict):
            print("Invalid job file: expected an object of jobs", file=sys.stderr)
            return 1

    return 0 if run_jobs(jobs, ACTION_LUT) else 1

if __name__ == '__main__':
    sys.exit(main())
