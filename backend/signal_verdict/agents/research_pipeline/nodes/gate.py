"""
App-Name Gate Node

Drops signals that never mention the subject app when a subject name is
given. Store reviews of the app itself always pass. Without a subject
name every signal passes through untouched; a blank name is an input
error, not "no scope".
"""

from dataclasses import asdict
from typing import Any, Dict

from ....services.app_name_gate import apply_app_name_gate, log_gate_result
from ....timing import StepTimer
from ..state import ResearchState


async def gate_signals(state: ResearchState) -> Dict[str, Any]:
    timer = StepTimer("gate")
    signals = list(state.get("signals") or [])
    subject_name = state.get("subject_name")

    if subject_name is None:
        return {"gated_signals": signals, "gate_stats": None}

    # InvalidSubjectNameError propagates; the caller rejects the request.
    with timer.step("apply_app_name_gate"):
        result = apply_app_name_gate(signals, subject_name)
    log_gate_result(result, "signals")

    timer.summary()
    return {"gated_signals": result.passed, "gate_stats": asdict(result.stats)}
