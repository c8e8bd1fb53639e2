"""Sortie improvement loop."""

from sortie.loop.controller import (
    ImprovementLoop,
    LoopConfig,
    LoopError,
    LoopOutcome,
    LoopState,
    RebuildError,
    build_fix_prompt,
    git_commit,
    rebuild,
    run_fix_step,
    run_loop,
)

__all__ = [
    "ImprovementLoop",
    "LoopConfig",
    "LoopError",
    "LoopOutcome",
    "LoopState",
    "RebuildError",
    "build_fix_prompt",
    "git_commit",
    "rebuild",
    "run_fix_step",
    "run_loop",
]
