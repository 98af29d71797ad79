"""Run report generation module."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from unmapped_pkg.pipeline import RunResult, RunState
from unmapped_pkg.utils.path_utils import get_incremented_path

__all__ = ['RunReport']


class RunReport:
    """Plain-text or JSON summary of one extraction run."""

    def __init__(self, report_path: Path):
        self.report_path = Path(report_path)
        self.report_path.parent.mkdir(parents=True, exist_ok=True)

        # Auto-increment if file exists
        self.report_path = get_incremented_path(self.report_path)
        self.generated = datetime.now()

    @property
    def format(self) -> str:
        return "json" if self.report_path.suffix.lower() == ".json" else "text"

    def write(self, result: RunResult) -> Path:
        """Write the report for result and return its path."""
        if self.format == "json":
            text = json.dumps(self._to_data(result), indent=2, ensure_ascii=False)
        else:
            text = '\n'.join(self._to_lines(result)) + '\n'

        self.report_path.write_text(text, encoding='utf-8')
        return self.report_path

    @staticmethod
    def _inputs(result: RunResult) -> Dict[str, str]:
        config = result.config
        names = ('alignment', 'reference', 'reads1', 'reads2')
        return {
            name: str(getattr(config, name))
            for name in names
            if getattr(config, name) is not None
        }

    def _to_data(self, result: RunResult) -> Dict[str, Any]:
        config = result.config
        return {
            "report_metadata": {
                "generated": self.generated.isoformat(),
                "duration_seconds": result.elapsed_time,
            },
            "status": "PASSED" if result.state == RunState.FINALIZED else "FAILED",
            "state": result.state.value,
            "mode": config.mode.value,
            "filter_mode": config.filter_mode.value,
            "threads": config.threads,
            "inputs": self._inputs(result),
            "outputs": [str(p) for p in result.outputs.all()] if result.state == RunState.FINALIZED else [],
            "records_kept": result.records_kept,
            "read_pairs": result.read_pairs,
            "error": result.error,
        }

    def _to_lines(self, result: RunResult) -> List[str]:
        data = self._to_data(result)
        passed = data["status"] == "PASSED"

        lines = []
        lines.append("=" * 80)
        lines.append("")
        lines.append("  UNMAPPED READ EXTRACTION REPORT")
        lines.append("")
        lines.append("=" * 80)
        lines.append("")
        lines.append(f"  Generated:       {self.generated.strftime('%Y-%m-%d %H:%M:%S')}")
        if result.elapsed_time is not None:
            lines.append(f"  Total Duration:  {result.elapsed_time:.2f}s")
        lines.append(f"  Status:          {'✓ PASSED' if passed else '✗ FAILED'} ({data['state']})")
        lines.append("")
        lines.append(f"  Mode:            {data['mode']}")
        lines.append(f"  Predicate:       {data['filter_mode']}")
        lines.append(f"  Threads:         {data['threads']}")
        lines.append("")

        lines.append("  Inputs:")
        for name, path in data["inputs"].items():
            lines.append(f"    {name}: {path}")
        lines.append("")

        if data["outputs"]:
            lines.append("  Outputs:")
            for path in data["outputs"]:
                lines.append(f"    {path}")
            lines.append("")

        if result.records_kept is not None:
            lines.append(f"  Records kept:    {result.records_kept:,}")
        if result.read_pairs is not None:
            lines.append(f"  Read pairs:      {result.read_pairs:,}")

        if result.error:
            lines.append("")
            lines.append(f"  Error: {result.error}")

        return lines
