from __future__ import annotations

import itertools
from datetime import datetime

from batch_monitor.monitor.models import Severity
from batch_monitor.monitor.reconciler import (
    LogTimeline,
    classify_severity,
    parse_raw_line,
    reconcile,
    strip_time_token,
)

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0)


def _fixed_clock() -> datetime:
    return FIXED_NOW


def test_strip_time_token_only_removes_leading_token() -> None:
    assert strip_time_token("[10:00:01] Iniciando") == "Iniciando"
    assert strip_time_token("[10:00:01]Sin espacio") == "Sin espacio"
    assert strip_time_token("Fila [10:00:01] intacta") == "Fila [10:00:01] intacta"
    assert strip_time_token("[1:00:01] no es token") == "[1:00:01] no es token"


def test_classify_severity_first_match_wins() -> None:
    assert classify_severity("✅ Fila 3 guardada") is Severity.SUCCESS
    assert classify_severity("Registro ÉXITO") is Severity.SUCCESS
    assert classify_severity("✅ guardado pese a ERROR previo") is Severity.SUCCESS
    assert classify_severity("❌ Fila 4 rechazada") is Severity.ERROR
    assert classify_severity("ERROR WARNING mezclados") is Severity.ERROR
    assert classify_severity("⚠️ Fila 5 incompleta") is Severity.WARNING
    assert classify_severity("WARNING: email vacío") is Severity.WARNING
    assert classify_severity("Procesando fila 6") is Severity.INFO


def test_parse_raw_line_prefers_structured_level() -> None:
    message, severity = parse_raw_line(
        {"message": "[10:00:01] ✅ listo", "level": "warning"}
    )
    assert message == "✅ listo"
    assert severity is Severity.WARNING

    message, severity = parse_raw_line({"message": "❌ falló", "level": "verbose"})
    assert message == "❌ falló"
    assert severity is Severity.ERROR


def test_reconcile_only_emits_unseen_suffix() -> None:
    ids = itertools.count(1)
    first, consumed = reconcile(
        0,
        ["[10:00:01] Iniciando", "[10:00:02] ✅ Fila 1 ÉXITO"],
        next_id=lambda: next(ids),
        clock=_fixed_clock,
    )
    assert [entry.message for entry in first] == ["Iniciando", "✅ Fila 1 ÉXITO"]
    assert [entry.id for entry in first] == [1, 2]
    assert consumed == 2
    assert all(entry.timestamp == FIXED_NOW for entry in first)

    second, consumed = reconcile(
        consumed,
        ["[10:00:01] Iniciando", "[10:00:02] ✅ Fila 1 ÉXITO", "sin marcador"],
        next_id=lambda: next(ids),
        clock=_fixed_clock,
    )
    assert len(second) == 1
    assert second[0].id == 3
    assert second[0].severity is Severity.INFO
    assert consumed == 3


def test_reconcile_tolerates_unchanged_or_shrunk_log() -> None:
    ids = itertools.count(1)
    entries, consumed = reconcile(3, ["a", "b", "c"], next_id=lambda: next(ids))
    assert entries == []
    assert consumed == 3

    entries, consumed = reconcile(3, ["a"], next_id=lambda: next(ids))
    assert entries == []
    assert consumed == 3
    assert next(ids) == 1


def test_timeline_consumed_count_tracks_longest_log() -> None:
    timeline = LogTimeline(clock=_fixed_clock)
    longest = 0
    for logs in (["a", "b"], ["a"], ["a", "b", "c"], [], ["a", "b", "c"]):
        timeline.absorb(logs)
        longest = max(longest, len(logs))
        assert timeline.consumed_count == longest
    assert [entry.message for entry in timeline.entries] == ["a", "b", "c"]


def test_timeline_ids_shared_with_synthesized_entries_and_reset_on_clear() -> None:
    timeline = LogTimeline(clock=_fixed_clock)
    timeline.append("📤 inicio")
    timeline.absorb(["uno", "dos"])
    timeline.append("🎉 fin", Severity.SUCCESS)
    ids = [entry.id for entry in timeline.entries]
    assert ids == [1, 2, 3, 4]

    timeline.clear()
    assert len(timeline) == 0
    assert timeline.consumed_count == 0
    assert timeline.append("otra vez").id == 1
