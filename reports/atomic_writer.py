"""
Atomic file writer - ensures no partial writes or corrupted files.
Implements temp-write → fsync → rename pattern for durability.
"""

import os
import json
import logging
import tempfile
import time
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


def write_text_atomic(content: str, output_path: Path) -> Dict[str, Any]:
    """
    Write text content atomically to prevent partial files.

    Uses temp-write → fsync → rename pattern for atomicity; the temp file
    lives in the target directory so the rename never crosses filesystems.

    Args:
        content: Text to write
        output_path: Final path for the file

    Returns:
        Dictionary with write results (status completed/failed)
    """
    output_path = Path(output_path)
    start_time = time.time()
    temp_path: Optional[Path] = None

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path_str = tempfile.mkstemp(
            suffix='.tmp',
            prefix=f'{output_path.stem}_',
            dir=output_path.parent
        )
        temp_path = Path(temp_path_str)

        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        # os.replace overwrites atomically on POSIX and Windows
        os.replace(temp_path, output_path)

        return {
            'status': 'completed',
            'output_path': str(output_path),
            'bytes_written': len(content.encode('utf-8')),
            'duration_seconds': time.time() - start_time
        }

    except OSError as e:
        if temp_path is not None and temp_path.exists():
            _remove_quietly(temp_path)
        logger.error(f"Atomic write to {output_path} failed: {e}")
        return {
            'status': 'failed',
            'error': str(e),
            'output_path': str(output_path),
            'bytes_written': 0,
            'duration_seconds': time.time() - start_time
        }


def write_json_atomic(metrics: Dict[str, Any], output_path: Path) -> Dict[str, Any]:
    """
    Write a metrics JSON document atomically.

    NaN and infinity are refused so the file is strict JSON.

    Args:
        metrics: MetricsJSON dictionary (already sanitized)
        output_path: Path for the JSON file

    Returns:
        Dictionary with write results
    """
    try:
        # Serialize first to catch errors before touching the filesystem
        json_content = json.dumps(metrics, indent=2, default=str, allow_nan=False)
    except (TypeError, ValueError) as e:
        return {
            'status': 'failed',
            'error': f'JSON serialization failed: {e}',
            'output_path': str(output_path),
            'bytes_written': 0
        }

    return write_text_atomic(json_content, output_path)


def write_both_atomic(
    report_content: str,
    metrics: Dict[str, Any],
    report_path: Path,
    metrics_path: Path
) -> Dict[str, Any]:
    """
    Write both the markdown report and its metrics JSON.

    If the metrics write fails the report is removed (all-or-nothing).

    Args:
        report_content: Markdown report content
        metrics: MetricsJSON dictionary
        report_path: Path for report file
        metrics_path: Path for metrics file

    Returns:
        Dictionary with combined write results
    """
    report_result = write_text_atomic(report_content, report_path)

    if report_result['status'] != 'completed':
        return {
            'status': 'failed',
            'error': f"Report write failed: {report_result.get('error', 'Unknown')}",
            'report_written': False,
            'metrics_written': False
        }

    metrics_result = write_json_atomic(metrics, metrics_path)

    if metrics_result['status'] != 'completed':
        _remove_quietly(Path(report_path))
        return {
            'status': 'failed',
            'error': f"Metrics write failed: {metrics_result.get('error', 'Unknown')}",
            'report_written': False,
            'metrics_written': False
        }

    return {
        'status': 'completed',
        'report_path': str(report_path),
        'metrics_path': str(metrics_path),
        'report_bytes': report_result['bytes_written'],
        'metrics_bytes': metrics_result['bytes_written'],
        'report_written': True,
        'metrics_written': True
    }


def verify_file_integrity(file_path: Path, expected_size: Optional[int] = None) -> bool:
    """
    Verify file integrity after atomic write.

    Args:
        file_path: Path to file to verify
        expected_size: Expected file size in bytes (optional)

    Returns:
        True if file appears intact, False otherwise
    """
    file_path = Path(file_path)
    if not file_path.exists():
        return False

    try:
        if expected_size is not None and file_path.stat().st_size != expected_size:
            return False

        with open(file_path, 'r', encoding='utf-8') as f:
            f.read()
        return True

    except (OSError, UnicodeDecodeError):
        return False
