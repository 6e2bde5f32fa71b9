import json
from pathlib import Path

from bundlepack.engine.audit import AuditLogger, TransitionAuditEntry


def test_audit_logger_writes_entry(tmp_path: Path):
    log_path = tmp_path / "audit.jsonl"
    logger = AuditLogger(log_path)

    entry = TransitionAuditEntry(
        timestamp="2024-01-01T00:00:00Z",
        run_id="20240101T000000Z_abcd",
        project="calc",
        step="bundle",
        from_state="DEPENDENCIES_INSTALLED",
        to_state="BUNDLED",
        allowed=True,
    )
    
    logger.log(entry)

    content = log_path.read_text().strip()
    record = json.loads(content)

    assert record["step"] =="bundle"
    assert record["allowed"] is True
    assert record["reason"] is None


def test_audit_logger_appends(tmp_path: Path):
    log_path = tmp_path / "nested" / "audit.jsonl"
    logger = AuditLogger(log_path)

    for to_state in ("DEPENDENCIES_INSTALLED", "FAILED"):
        logger.log(
            TransitionAuditEntry(
                timestamp=AuditLogger.now_iso(),
                run_id="r",
                project="calc",
                step="install_dependencies",
                from_state="INIT",
                to_state=to_state,
                allowed=to_state != "FAILED",
                reason="boom" if to_state == "FAILED" else None,
            )
        )

    records = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert [r["to_state"] for r in records] == ["DEPENDENCIES_INSTALLED", "FAILED"]
    assert records[1]["reason"] == "boom"
