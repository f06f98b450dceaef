"""
countrygen/audit.py

Tamper-evident audit log of authentication decisions.

One JSON object per line (JSONL), hash-chained:

  H_0 = "0"*64
  H_n = SHA3-256( bytes.fromhex(H_{n-1}) || canonical_json(event_without_hash_fields) )

Each line stores:
  - prev_hash: hex string (64 chars)
  - hash:      hex string (64 chars)

Properties:
- Any modification, deletion, or reordering of log lines breaks the chain.
- Chain state is persisted in <log>.state next to the log.
- Appends take an exclusive flock on <log>.lock so several worker processes
  can share one log.

Only digests and lengths of request material are recorded; raw bodies and
signatures never reach disk.
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# Linux file lock (works in Docker/Linux)
import fcntl

GENESIS_HASH = "0" * 64  # 32 bytes hex


def _canonical_json_bytes(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _sha3_256_hex(data: bytes) -> str:
    return hashlib.sha3_256(data).hexdigest()


def _chain(prev_hash: str, event: Dict[str, Any]) -> str:
    return _sha3_256_hex(bytes.fromhex(prev_hash) + _canonical_json_bytes(event))


def build_event(
    *,
    result: str,
    reason: str,
    timestamp: Optional[str] = None,
    body: Optional[bytes] = None,
    signature_hex: Optional[str] = None,
    request_ip: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build one audit event. Keep this "boring" and stable.

    result: "accepted" | "rejected"
    reason: short machine-readable cause ("ok", "InvalidSignature", ...)
    """
    out: Dict[str, Any] = {
        "ts": int(time.time()),
        "result": result,
        "reason": reason,
    }

    if timestamp is not None:
        out["signature_timestamp"] = timestamp[:32]
    if request_ip:
        out["request_ip"] = request_ip

    if body is not None:
        out["body_len"] = len(body)
        out["body_sha3_256"] = _sha3_256_hex(body)

    if signature_hex is not None:
        out["signature_sha3_256"] = _sha3_256_hex(signature_hex.encode("utf-8", "replace"))

    return out


class AuditLog:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.state_path = self.path.with_name(self.path.name + ".state")
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    def _read_last_hash_unlocked(self) -> str:
        """
        Read last hash from the state file. Caller must hold lock.
        Returns GENESIS_HASH if state missing/empty/garbled.
        """
        try:
            s = self.state_path.read_text(encoding="utf-8").strip().lower()
        except (OSError, UnicodeDecodeError):
            return GENESIS_HASH
        if len(s) != 64:
            return GENESIS_HASH
        try:
            bytes.fromhex(s)
        except ValueError:
            return GENESIS_HASH
        return s

    def append(self, event: Dict[str, Any]) -> str:
        """
        Append one event with hash chaining and return its hash.

        - locks <log>.lock
        - reads prev hash
        - computes next hash over the canonical event (excluding chain fields)
        - writes the JSONL line, then updates the state file
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.lock_path, "a+", encoding="utf-8") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                prev_hash = self._read_last_hash_unlocked()

                # Never allow callers to inject their own chain fields.
                e = dict(event)
                e.pop("prev_hash", None)
                e.pop("hash", None)

                next_hash = _chain(prev_hash, e)
                stored = {**e, "prev_hash": prev_hash, "hash": next_hash}

                with open(self.path, "ab") as f:
                    f.write(_canonical_json_bytes(stored) + b"\n")
                    f.flush()
                    os.fsync(f.fileno())

                self.state_path.write_text(next_hash + "\n", encoding="utf-8")
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

        return next_hash


def verify_log_chain(path: str | Path) -> bool:
    """
    Verify the hash chain of an audit log file.
    A missing log is trivially valid.
    """
    path = Path(path)
    if not path.exists():
        return True

    prev = GENESIS_HASH
    with open(path, "rb") as f:
        for raw_line in f:
            raw_line = raw_line.strip()
            if not raw_line:
                continue
            try:
                obj = json.loads(raw_line.decode("utf-8"))
            except ValueError:
                return False
            if not isinstance(obj, dict):
                return False

            if obj.pop("prev_hash", None) != prev:
                return False
            line_hash = obj.pop("hash", None)
            if _chain(prev, obj) != line_hash:
                return False
            prev = line_hash

    return True
