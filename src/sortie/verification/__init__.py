"""Sortie verification - browser checks against the deployed app."""

from sortie.verification.runner import (
    VerificationResult,
    attach_verification,
    discover_endpoint,
    generate_playwright_test,
    parse_verification_output,
    read_env_values,
    run_verification,
    verify_scenario,
)

__all__ = [
    "VerificationResult",
    "attach_verification",
    "discover_endpoint",
    "generate_playwright_test",
    "parse_verification_output",
    "read_env_values",
    "run_verification",
    "verify_scenario",
]
