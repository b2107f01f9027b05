from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..common.models import ProjectProfile
from ..generator.models import GenerationResult
from ..store.workspace_models import CommitResult
from ..verifier.models import LoopResult


class SynthesisStatus(Enum):
    """Synthesis status enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    UNVERIFIED = "unverified"
    FAILED = "failed"


@dataclass
class SynthesisReport:
    """Everything known about one synthesis run."""
    source: str
    wrapper_dir: str
    synthesis_id: str
    status: SynthesisStatus = SynthesisStatus.PENDING
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    profile: Optional[ProjectProfile] = None
    generation: Optional[GenerationResult] = None
    loop_result: Optional[LoopResult] = None
    commits: List[CommitResult] = field(default_factory=list)
    exit_code: int = 0
    error_message: Optional[str] = None

    @property
    def total_time(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def unresolved_placeholders(self) -> List[str]:
        return list(self.generation.unresolved_placeholders) if self.generation else []

    @property
    def final_state(self) -> Optional[str]:
        return self.loop_result.final_state.value if self.loop_result else None
