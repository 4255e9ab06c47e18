"""Plan artifacts written for later inspection."""

import json
from datetime import datetime, timezone
from pathlib import Path
from ..plan.models import Plan
from ..utils.errors import ConvergeError
from ..utils.logging import get_logger

logger = get_logger("report.artifact")

ARTIFACT_FORMAT_VERSION = "1.0.0"


def _write_json(path: Path, payload) -> None:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, default=str)
        logger.debug(f"Written {path.name}: {path}")
    except (OSError, TypeError) as e:
        raise ConvergeError(f"Failed to write {path.name}: {e}")


def generate_artifacts(plan: Plan, output_dir: Path, engine_version: str) -> None:
    """
    Write plan artifacts.

    Creates the following files in output_dir:
    - plan.json: Full plan (diffs carry redacted sensitive values)
    - summary.json: Counts per operation
    - metadata.json: Engine version and generation time

    Raises:
        ConvergeError: If a file cannot be written
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConvergeError(f"Failed to create output directory: {e}")

    _write_json(output_dir / "plan.json", plan.model_dump(mode="json"))

    summary = plan.summary()
    _write_json(output_dir / "summary.json", {
        "create": summary.create,
        "update": summary.update,
        "replace": summary.replace,
        "delete": summary.delete,
        "no_op": summary.no_op,
        "changes": summary.changes,
        "drifted": sorted(plan.drift),
    })

    _write_json(output_dir / "metadata.json", {
        "converge_version": engine_version,
        "artifact_version": ARTIFACT_FORMAT_VERSION,
        "source": plan.source,
        "state_serial": plan.state_serial,
        "destroy": plan.destroy,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "generator": "converge plan --out",
    })

    logger.info(f"Generated artifacts in: {output_dir}")
