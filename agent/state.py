from dataclasses import dataclass, field
from typing import TypedDict, Dict, List, Optional, Any
from pathlib import Path


@dataclass(frozen=True)
class Credentials:
    """Identity-provider login pair. Held in memory only."""
    identity: str
    secret: str = field(repr=False)


class GenerationState(TypedDict):
    """Defines the state passed between the orchestration graph nodes."""
    job_id: str
    prompt: str
    target_url: str

    # Session & Authentication
    session_restored: bool
    auth_state: str

    # Generation
    polls: int

    # Results & Artifacts
    files: Dict[str, str]
    session_saved: bool
    job_artifacts_dir: Path
    history: List[str]


def initial_state(job_id: str, prompt: str, target_url: str, job_artifacts_dir: Path) -> GenerationState:
    return GenerationState(
        job_id=job_id, prompt=prompt, target_url=target_url,
        session_restored=False, auth_state="unknown",
        polls=0,
        files={}, session_saved=False, job_artifacts_dir=job_artifacts_dir, history=[],
    )


def summarize(state: Dict[str, Any], step: str, detail: Optional[str] = None) -> None:
    entry = f"[{step}]" + (f" {detail}" if detail else "")
    state["history"].append(entry)
