import json

from countrygen.audit import GENESIS_HASH, AuditLog, build_event, verify_log_chain


def _lines(log: AuditLog):
    return [json.loads(x) for x in log.path.read_text(encoding="utf-8").splitlines()]


class TestBuildEvent:
    def test_digests_only(self):
        e = build_event(
            result="rejected",
            reason="InvalidSignature",
            timestamp="1700000000",
            body=b'{"type":1}',
            signature_hex="00" * 64,
            request_ip="10.0.0.1",
        )
        assert e["result"] == "rejected"
        assert e["reason"] == "InvalidSignature"
        assert e["signature_timestamp"] == "1700000000"
        assert e["body_len"] == 10
        assert len(e["body_sha3_256"]) == 64
        assert len(e["signature_sha3_256"]) == 64
        assert e["request_ip"] == "10.0.0.1"
        assert '{"type":1}' not in json.dumps(e)

    def test_optional_fields_omitted(self):
        e = build_event(result="accepted", reason="ok")
        assert set(e) == {"ts", "result", "reason"}


class TestAuditLog:
    def test_chain(self, tmp_path):
        log = AuditLog(tmp_path / "audit" / "auth.jsonl")
        h1 = log.append(build_event(result="accepted", reason="ok"))
        h2 = log.append(build_event(result="rejected", reason="InvalidSignature"))

        lines = _lines(log)
        assert lines[0]["prev_hash"] == GENESIS_HASH
        assert lines[0]["hash"] == h1
        assert lines[1]["prev_hash"] == h1
        assert lines[1]["hash"] == h2
        assert log.state_path.read_text().strip() == h2
        assert verify_log_chain(log.path)

    def test_callers_cannot_inject_chain_fields(self, tmp_path):
        log = AuditLog(tmp_path / "auth.jsonl")
        log.append({"result": "accepted", "prev_hash": "f" * 64, "hash": "e" * 64})
        assert _lines(log)[0]["prev_hash"] == GENESIS_HASH
        assert verify_log_chain(log.path)

    def test_tampering_is_detected(self, tmp_path):
        log = AuditLog(tmp_path / "auth.jsonl")
        for reason in ("ok", "InvalidSignature", "ok"):
            log.append(build_event(result="accepted", reason=reason))

        lines = log.path.read_text(encoding="utf-8").splitlines()
        lines[1] = lines[1].replace("InvalidSignature", "ok")
        log.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        assert not verify_log_chain(log.path)

    def test_deleted_line_is_detected(self, tmp_path):
        log = AuditLog(tmp_path / "auth.jsonl")
        for _ in range(3):
            log.append(build_event(result="accepted", reason="ok"))

        lines = log.path.read_text(encoding="utf-8").splitlines()
        del lines[1]
        log.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        assert not verify_log_chain(log.path)

    def test_garbage_is_detected(self, tmp_path):
        path = tmp_path / "auth.jsonl"
        path.write_text("not json\n", encoding="utf-8")
        assert not verify_log_chain(path)

    def test_missing_log_is_valid(self, tmp_path):
        assert verify_log_chain(tmp_path / "nope.jsonl")

    def test_garbled_state_restarts_from_genesis(self, tmp_path):
        log = AuditLog(tmp_path / "auth.jsonl")
        log.state_path.write_text("zz\n", encoding="utf-8")
        log.append(build_event(result="accepted", reason="ok"))
        assert _lines(log)[0]["prev_hash"] == GENESIS_HASH

    def test_undecodable_state_restarts_from_genesis(self, tmp_path):
        log = AuditLog(tmp_path / "auth.jsonl")
        log.state_path.write_bytes(b"\xff\xfe garbage")
        log.append(build_event(result="accepted", reason="ok"))
        assert _lines(log)[0]["prev_hash"] == GENESIS_HASH
        assert verify_log_chain(log.path)
