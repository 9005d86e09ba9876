"""Load rule policy (thresholds, windows, target lists) from YAML.

Example policy.yml::

    brute_force:
      threshold: 10
      window_seconds: 600
    suspicious_user:
      threshold: 3
    privilege_escalation:
      sensitive_targets: [/etc/shadow, /etc/sudoers, visudo]

Rules or fields left out keep their defaults.
"""

from dataclasses import replace
from pathlib import Path

import yaml

from threat_detector.rules import DEFAULT_POLICY, RulePolicy

_INT_FIELDS = ("threshold", "window_seconds")

# Fields each rule reads
_RULE_FIELDS = {
    "brute_force": _INT_FIELDS,
    "suspicious_user": _INT_FIELDS,
    "privilege_escalation": ("sensitive_targets",),
}


def load_policy(path: str | Path) -> dict[str, RulePolicy]:
    """Parse *path* and return {rule_id: RulePolicy} for every known rule."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Policy file not found: {path}")

    with open(path) as f:
        document = yaml.safe_load(f) or {}

    if not isinstance(document, dict):
        raise ValueError(f"{path.name}: top level must be a mapping of rule ids")

    policy = dict(DEFAULT_POLICY)
    for rule_id, body in document.items():
        if rule_id not in DEFAULT_POLICY:
            raise ValueError(f"{path.name}: unknown rule '{rule_id}'")
        policy[rule_id] = _parse_rule(path, rule_id, body, DEFAULT_POLICY[rule_id])
    return policy


def _parse_rule(path: Path, rule_id: str, body, default: RulePolicy) -> RulePolicy:
    if body is None:
        return default
    if not isinstance(body, dict):
        raise ValueError(f"{path.name}: '{rule_id}' must be a mapping")

    allowed = _RULE_FIELDS[rule_id]
    for field in body:
        if field not in allowed:
            raise ValueError(f"{path.name}: '{rule_id}' has unknown field '{field}'")

    changes = {}
    for field in _INT_FIELDS:
        if field in body:
            value = body[field]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(
                    f"{path.name}: '{rule_id}.{field}' must be a positive integer"
                )
            changes[field] = value

    if "sensitive_targets" in body:
        targets = body["sensitive_targets"]
        if (not isinstance(targets, list) or not targets
                or not all(isinstance(t, str) and t for t in targets)):
            raise ValueError(
                f"{path.name}: '{rule_id}.sensitive_targets' must be a "
                f"non-empty list of strings"
            )
        changes["sensitive_targets"] = tuple(targets)

    return replace(default, **changes)
